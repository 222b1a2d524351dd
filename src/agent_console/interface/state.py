"""Shared console state, its snapshots and the input mode state machine."""

from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Deque, Iterable, Optional, Tuple

from .backend import KeyCode, KeyEvent, KeyModifiers, MouseKind
from .buffer import OutputBuffer, normalize_newlines
from .history import InputHistory
from .layout import (
    Selection, TextPosition, byte_len, delete_before, insert_at, next_char_boundary,
    previous_char_boundary, selected_text, wrap_ansi_line,
)

Completion = Callable[[str, int], Optional[str]]


class InputMode(str, Enum):
    NORMAL = "normal"
    REVERSE_SEARCH = "reverse_search"


class ResultKind(str, Enum):
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"
    EXIT = "exit"


@dataclass(frozen=True)
class InputResult:
    """Outcome of one ``read_input`` call."""
    kind: ResultKind
    text: str = ""

    @classmethod
    def submitted(cls, text: str) -> "InputResult":
        return cls(ResultKind.SUBMITTED, text)

    @classmethod
    def cancelled(cls) -> "InputResult":
        return cls(ResultKind.CANCELLED)

    @classmethod
    def exit(cls) -> "InputResult":
        return cls(ResultKind.EXIT)


@dataclass(frozen=True)
class TodoItem:
    """One entry of the agent's task list."""
    description: str
    completed: bool = False


@dataclass(frozen=True)
class ConsoleSnapshot:
    """Immutable copy of everything a render pass needs."""
    output_lines: Tuple[str, ...]
    queued: Tuple[str, ...]
    input: str
    cursor_pos: int
    mode: InputMode = InputMode.NORMAL
    search_line: str = ""
    output_scroll: int = 0
    revision: int = 0
    input_display: Optional[str] = None
    todos: Tuple[TodoItem, ...] = ()
    selection: Optional[Selection] = None

    def editor_text(self) -> Tuple[str, str, int]:
        """Raw text, display text and cursor offset of the input pane."""
        if self.mode is InputMode.REVERSE_SEARCH:
            return self.search_line, self.search_line, byte_len(self.search_line)
        display = self.input if self.input_display is None else self.input_display
        return self.input, display, self.cursor_pos

    def formatted(self, formatter: Callable[[str], str]) -> "ConsoleSnapshot":
        """Copy with the display text produced by ``formatter``."""
        if self.mode is InputMode.REVERSE_SEARCH:
            return self
        return replace(self, input_display=formatter(self.input))


class ConsoleState:
    """Mutable state shared by the input worker, output producers and renders.

    Not thread safe; the console guards every access with one lock.
    """

    def __init__(self, max_output_lines: int = 2000, history: Optional[InputHistory] = None,
                 completer: Optional[Completion] = None, scroll_step: int = 3):
        self.output = OutputBuffer(max_output_lines)
        self.input = ""
        self.cursor_pos = 0
        self.queued: Deque[str] = deque()
        self.history = history if history is not None else InputHistory()
        self.completer = completer
        self.mode = InputMode.NORMAL
        self.output_scroll = 0
        self.scroll_step = scroll_step
        # Columns of the last drawn frame; scroll offsets count rows at this width.
        self.output_width = 0
        self.todos: Tuple[TodoItem, ...] = ()
        self.selection_start: Optional[TextPosition] = None
        self.selection_end: Optional[TextPosition] = None
        self.selecting = False
        self.output_dirty = False
        self.last_render = 0.0
        self._revision = 0

    def snapshot(self) -> ConsoleSnapshot:
        self._revision += 1
        return ConsoleSnapshot(
            output_lines=tuple(self.output),
            queued=tuple(self.queued),
            input=self.input,
            cursor_pos=self.cursor_pos,
            mode=self.mode,
            search_line=self.search_line(),
            output_scroll=self.output_scroll,
            revision=self._revision,
            todos=self.todos,
            selection=self.selection(),
        )

    def search_line(self) -> str:
        if self.mode is not InputMode.REVERSE_SEARCH:
            return ""
        search = self.history.search_state()
        return f"(reverse-i-search)`{search.query}`: {search.matched or ''}"

    # Output side

    def _row_count(self, line: str) -> int:
        if self.output_width <= 0:
            return 1
        return len(wrap_ansi_line(line, self.output_width))

    def append_output(self, text: str) -> None:
        lines_before = len(self.output)
        tail_rows = self._row_count(self.output.tail(1)[0]) if self.output_scroll > 0 else 0
        added = self.output.push_text(text)
        # Keep a scrolled-up view on the same content: the offset grows by the
        # rows the tail gained at the last drawn width.
        if self.output_scroll > 0:
            grown = sum(self._row_count(line) for line in self.output.tail(added + 1))
            self.output_scroll += grown - tail_rows
        evicted = lines_before + added - len(self.output)
        if evicted:
            self._shift_selection(evicted)
        self.output_dirty = True

    def clear_output(self) -> None:
        self.output.clear()
        self.output_scroll = 0
        self.clear_selection()
        self.output_dirty = True

    def set_queue(self, items: Iterable[str]) -> None:
        self.queued = deque(items)

    def set_todos(self, todos: Iterable[TodoItem]) -> None:
        self.todos = tuple(todos)

    def scroll_output(self, kind: MouseKind) -> bool:
        """Apply a wheel event; True if the offset changed."""
        before = self.output_scroll
        if kind is MouseKind.SCROLL_UP:
            self.output_scroll += self.scroll_step
        else:
            self.output_scroll = max(self.output_scroll - self.scroll_step, 0)
        self.output_dirty = True
        return self.output_scroll != before

    # Selection

    def selection(self) -> Optional[Selection]:
        if self.selection_start is None or self.selection_end is None:
            return None
        return self.selection_start, self.selection_end

    def start_selection(self, position: TextPosition) -> None:
        self.selection_start = self.selection_end = position
        self.selecting = True

    def extend_selection(self, position: TextPosition) -> bool:
        """Move the free end of an active drag; True if it moved."""
        if not self.selecting or position == self.selection_end:
            return False
        self.selection_end = position
        return True

    def finish_selection(self) -> None:
        self.selecting = False

    def clear_selection(self) -> bool:
        """Drop the selection; True if there was one."""
        had = self.selection_start is not None
        self.selection_start = self.selection_end = None
        self.selecting = False
        return had

    def take_selection(self) -> Optional[str]:
        """Selected text, clearing the selection; None without one."""
        selection = self.selection()
        if selection is None:
            return None
        self.clear_selection()
        return selected_text(self.output.lines(), selection)

    def _shift_selection(self, evicted: int) -> None:
        selection = self.selection()
        if selection is None:
            return
        start, end = selection
        if min(start.line, end.line) < evicted:
            self.clear_selection()
            return
        self.selection_start = TextPosition(start.line - evicted, start.offset)
        self.selection_end = TextPosition(end.line - evicted, end.offset)

    # Input side

    def _set_input(self, text: str) -> None:
        self.input = text
        self.cursor_pos = byte_len(text)

    def insert_text(self, text: str) -> None:
        """Insert text at the cursor, as for a paste."""
        if not text:
            return
        self.input, self.cursor_pos = insert_at(self.input, self.cursor_pos, normalize_newlines(text))
        self.history.reset_navigation()

    def handle_key(self, event: KeyEvent) -> Optional[InputResult]:
        """Apply a key event; returns an outcome when input is finished."""
        if event.is_interrupt:
            return InputResult.exit()
        self.clear_selection()
        if self.mode is InputMode.REVERSE_SEARCH:
            self._handle_search_key(event)
            return None
        return self._handle_normal_key(event)

    def _handle_normal_key(self, event: KeyEvent) -> Optional[InputResult]:
        code = event.code
        if event.is_ctrl("r"):
            self.history.start_reverse_search(self.input)
            self.mode = InputMode.REVERSE_SEARCH
        elif code is KeyCode.ENTER:
            if event.modifiers:
                self.input, self.cursor_pos = insert_at(self.input, self.cursor_pos, "\n")
                return None
            return self.submit()
        elif code is KeyCode.TAB:
            if self.completer is not None:
                completion = self.completer(self.input, self.cursor_pos)
                if completion:
                    self._set_input(completion)
        elif code is KeyCode.BACKSPACE:
            self.input, self.cursor_pos = delete_before(self.input, self.cursor_pos)
            self.history.reset_navigation()
        elif code is KeyCode.LEFT:
            self.cursor_pos = previous_char_boundary(self.input, self.cursor_pos)
        elif code is KeyCode.RIGHT:
            self.cursor_pos = next_char_boundary(self.input, self.cursor_pos)
        elif code is KeyCode.UP:
            entry = self.history.navigate_up(self.input)
            if entry is not None:
                self._set_input(entry)
        elif code is KeyCode.DOWN:
            entry = self.history.navigate_down()
            if entry is not None:
                self._set_input(entry)
        elif code is KeyCode.ESCAPE:
            self._set_input("")
            self.history.reset_navigation()
            return InputResult.cancelled()
        elif code is KeyCode.CHAR and not event.modifiers & KeyModifiers.CONTROL:
            self.input, self.cursor_pos = insert_at(self.input, self.cursor_pos, event.char)
            self.history.reset_navigation()
        return None

    def submit(self) -> InputResult:
        """Submit the current input and clear the editor."""
        submitted = self.input
        self.history.add_entry(submitted)
        self._set_input("")
        return InputResult.submitted(submitted)

    def _handle_search_key(self, event: KeyEvent) -> None:
        history = self.history
        code = event.code
        if event.is_ctrl("r") or code is KeyCode.DOWN:
            history.next_match()
        elif code is KeyCode.UP:
            history.prev_match()
        elif code is KeyCode.ENTER:
            self._set_input(history.finish_reverse_search())
            self.mode = InputMode.NORMAL
        elif code is KeyCode.ESCAPE:
            self._set_input(history.cancel_reverse_search())
            self.mode = InputMode.NORMAL
        elif code is KeyCode.BACKSPACE:
            history.update_reverse_search(history.search_state().query[:-1])
        elif code is KeyCode.CHAR and not event.modifiers & KeyModifiers.CONTROL:
            history.update_reverse_search(history.search_state().query + event.char)
