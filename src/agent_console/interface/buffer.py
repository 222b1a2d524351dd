"""Bounded line buffer backing the output pane."""

from collections import deque
from itertools import islice
from typing import Deque, List


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


class OutputBuffer:
    """Append-only list of output lines with FIFO eviction."""

    def __init__(self, max_lines: int = 2000):
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self.max_lines = max_lines
        self._lines: Deque[str] = deque([""], maxlen=max_lines)

    def push_text(self, text: str) -> int:
        """Append text, returning how many new lines were started.

        The first segment continues the current last line; every newline
        starts a new one. The oldest lines are dropped past ``max_lines``.
        """
        if not text:
            return 0
        segments = normalize_newlines(text).split("\n")
        self._lines[-1] += segments[0]
        self._lines.extend(segments[1:])
        return len(segments) - 1

    def clear(self) -> None:
        self._lines.clear()
        self._lines.append("")

    def lines(self) -> List[str]:
        return list(self._lines)

    def tail(self, count: int) -> List[str]:
        """The last ``count`` lines, oldest first."""
        return list(islice(reversed(self._lines), max(count, 0)))[::-1]

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines)
