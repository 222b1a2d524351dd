"""Tab completion for slash commands and @file references."""

import os
from pathlib import Path
from typing import List, Optional, Sequence

from .layout import char_index

DEFAULT_COMMANDS = ["/help", "/clear", "/history", "/exit", "/quit"]


def common_prefix(names: Sequence[str]) -> str:
    return os.path.commonprefix(list(names))


class Completer:
    """Completes the input line.

    ``@partial/path`` before the cursor is completed against the file system
    relative to ``root``; otherwise an input starting with ``/`` is completed
    against the known commands.
    """

    def __init__(self, commands: Optional[List[str]] = None, root: Optional[Path] = None):
        self.commands = list(commands or DEFAULT_COMMANDS)
        self.root = root

    def __call__(self, text: str, cursor_pos: int) -> Optional[str]:
        return self.complete(text, cursor_pos)

    def complete(self, text: str, cursor_pos: int) -> Optional[str]:
        """Return the completed input, or None when nothing applies."""
        cursor = char_index(text, cursor_pos)
        completion = self._complete_file(text, cursor)
        if completion is not None:
            return completion

        stripped = text.strip()
        if stripped.startswith("/") and " " not in stripped:
            for command in self.commands:
                if command.startswith(stripped) and command != stripped:
                    return command
        return None

    def _complete_file(self, text: str, cursor: int) -> Optional[str]:
        before = text[:cursor]
        at = before.rfind("@")
        if at == -1:
            return None
        partial = before[at + 1:]
        if any(char.isspace() for char in partial):
            return None
        completed = self.complete_path(partial)
        if completed is None or completed == partial:
            return None
        return f"{text[:at]}@{completed}{text[cursor:]}"

    def complete_path(self, partial: str) -> Optional[str]:
        """Complete ``partial`` to the single match or the common prefix."""
        directory, _, prefix = partial.rpartition("/")
        base = self.root or Path.cwd()
        search_dir = base / directory if directory else base
        try:
            entries = list(search_dir.iterdir())
        except OSError:
            return None

        matches = sorted(
            entry.name + ("/" if entry.is_dir() else "")
            for entry in entries
            if entry.name.startswith(prefix)
        )
        if not matches:
            return None
        name = matches[0] if len(matches) == 1 else common_prefix(matches)
        return f"{directory}/{name}" if directory else name
