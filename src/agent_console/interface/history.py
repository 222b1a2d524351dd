"""Input history with up/down navigation and reverse-incremental search."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ReverseSearchState:
    """Progress of a reverse-incremental search."""
    query: str = ""
    matches: List[int] = field(default_factory=list)
    index: int = 0
    matched: Optional[str] = None


class InputHistory:
    """Submitted inputs, oldest first."""

    def __init__(self, limit: int = 1000):
        self.limit = limit
        self.entries: List[str] = []
        self._position: Optional[int] = None
        self._temp_input = ""
        self._search = ReverseSearchState()

    def add_entry(self, entry: str) -> None:
        """Record a submission; blank entries and immediate repeats are skipped."""
        if entry.strip() and (not self.entries or self.entries[-1] != entry):
            self.entries.append(entry)
            if len(self.entries) > self.limit:
                del self.entries[:len(self.entries) - self.limit]
        self.reset_navigation()

    def reset_navigation(self) -> None:
        self._position = None
        self._temp_input = ""

    def navigate_up(self, current_input: str) -> Optional[str]:
        """Step to an older entry; the first step saves ``current_input``."""
        if not self.entries:
            return None
        if self._position is None:
            self._temp_input = current_input
            self._position = len(self.entries) - 1
        elif self._position > 0:
            self._position -= 1
        return self.entries[self._position]

    def navigate_down(self) -> Optional[str]:
        """Step to a newer entry; past the newest, the saved input comes back."""
        if self._position is None:
            return None
        if self._position < len(self.entries) - 1:
            self._position += 1
            return self.entries[self._position]
        self._position = None
        return self._temp_input

    # Reverse search

    def start_reverse_search(self, current_input: str) -> None:
        self._temp_input = current_input
        self._position = None
        self._search = ReverseSearchState()

    def update_reverse_search(self, query: str) -> None:
        """Recompute matches for ``query``, most recent first."""
        self._search.query = query
        self._search.index = 0
        if not query:
            self._search.matches = []
            self._search.matched = None
            return
        needle = query.lower()
        self._search.matches = [
            index for index in range(len(self.entries) - 1, -1, -1)
            if needle in self.entries[index].lower()
        ]
        self._select_match()

    def _select_match(self) -> None:
        if self._search.matches:
            self._search.matched = self.entries[self._search.matches[self._search.index]]
        else:
            self._search.matched = None

    def next_match(self) -> None:
        """Move to the next older match, wrapping around."""
        if self._search.matches:
            self._search.index = (self._search.index + 1) % len(self._search.matches)
            self._select_match()

    def prev_match(self) -> None:
        """Move to the next newer match, wrapping around."""
        if self._search.matches:
            self._search.index = (self._search.index - 1) % len(self._search.matches)
            self._select_match()

    def search_state(self) -> ReverseSearchState:
        return self._search

    def finish_reverse_search(self) -> str:
        """End the search with the matched entry, or the saved input if none."""
        matched = self._search.matched
        if matched is None:
            matched = self._temp_input
        self._search = ReverseSearchState()
        self.reset_navigation()
        return matched

    def cancel_reverse_search(self) -> str:
        """End the search, returning the input saved when it started."""
        temp = self._temp_input
        self._search = ReverseSearchState()
        self.reset_navigation()
        return temp

    def __len__(self) -> int:
        return len(self.entries)
