"""Inline highlighting of the input line."""

import re
import threading
from typing import Optional

from rich.color import ColorSystem
from rich.style import Style

FILE_REFERENCE = re.compile(r"@([^\s@]+)")


class InputFormatter:
    """Highlights ``@file`` references with rich styles.

    Only escape sequences are added, so the visible characters of the result
    match the input one for one. The last result is cached.
    """

    def __init__(self, style: str = "bold bright_white on blue", enabled: bool = True):
        self.style = Style.parse(style)
        self.enabled = enabled
        self._lock = threading.Lock()
        self._cached_input: Optional[str] = None
        self._cached_output = ""

    def __call__(self, text: str) -> str:
        return self.format_input(text)

    def format_input(self, text: str) -> str:
        if not self.enabled or "@" not in text:
            return text
        with self._lock:
            if text == self._cached_input:
                return self._cached_output
        formatted = self._highlight(text)
        with self._lock:
            self._cached_input = text
            self._cached_output = formatted
        return formatted

    def _highlight(self, text: str) -> str:
        parts = []
        last = 0
        for match in FILE_REFERENCE.finditer(text):
            parts.append(text[last:match.start()])
            parts.append(self.style.render(match.group(0), color_system=ColorSystem.STANDARD))
            last = match.end()
        parts.append(text[last:])
        return "".join(parts)
