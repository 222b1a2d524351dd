"""Screen renderer: turns a snapshot into a frame and draws it."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .backend import TerminalBackend, TerminalSize
from .layout import (
    SGR_BOLD, SGR_DIM, SGR_GREEN, SGR_RESET, TODO_DONE_PREFIX,
    build_input_layout, build_input_view, build_output_with_menu,
    build_permission_lines, build_queue_layout, build_todo_layout, truncate_visible,
    visible_output_window,
)
from .permission import PermissionMenu, PermissionPrompt
from .state import ConsoleSnapshot


@dataclass(frozen=True)
class PaneHeights:
    output: int
    queue: int
    input: int
    todo: int = 0


@dataclass(frozen=True)
class Frame:
    """Rows to draw, top to bottom, and the hardware cursor position."""
    rows: Tuple[str, ...]
    cursor: Tuple[int, int]
    heights: PaneHeights


def _style_todo_row(row: str) -> str:
    if row.startswith(TODO_DONE_PREFIX):
        mark = TODO_DONE_PREFIX.index("✓")
        return f"{SGR_DIM}{row[:mark]}{SGR_GREEN}✓{SGR_RESET}{SGR_DIM}{row[mark + 1:]}{SGR_RESET}"
    return f"{SGR_BOLD}{row}{SGR_RESET}"


def compose_frame(snapshot: ConsoleSnapshot, size: TerminalSize, prompt_marker: str = "> ",
                  continuation_marker: str = "| ", min_output_height: int = 3,
                  prompt: Optional[PermissionPrompt] = None,
                  menu: Optional[PermissionMenu] = None) -> Frame:
    """Lay out the output, queue, todo and input panes for one terminal size.

    The input pane is its wrapped rows plus two rules, capped so
    ``min_output_height`` rows stay for output. The queue pane takes what it
    needs of the remaining budget, the todo pane what it needs of the rest,
    and the output pane gets whatever is left. With a permission ``prompt``
    the menu is drawn under the output content, inside the output pane.
    """
    width, height = size.columns, size.rows

    layout = build_input_layout(snapshot, width, prompt_marker, continuation_marker)
    max_input_height = max(height - min_output_height, 2)
    input_height = min(len(layout.lines) + 2, max_input_height)
    queue_budget = max(height - min_output_height - input_height, 0)
    queue_height, queue_lines = build_queue_layout(snapshot.queued, width, queue_budget)
    todo_budget = max(height - min_output_height - input_height - queue_height, 0)
    todo_height, todo_lines = build_todo_layout(snapshot.todos, width, todo_budget)
    output_height = max(height - input_height - queue_height - todo_height, 0)

    if prompt is not None:
        menu = menu or PermissionMenu(len(prompt.options))
        menu_lines = build_permission_lines(prompt, menu.selected, menu.buffer, width)
        output_rows = build_output_with_menu(
            snapshot.output_lines, width, output_height, snapshot.output_scroll, menu_lines,
            snapshot.selection)
    else:
        output_rows = visible_output_window(
            snapshot.output_lines, width, output_height, snapshot.output_scroll, snapshot.selection)

    rows: List[str] = list(output_rows) + [""] * (output_height - len(output_rows))

    if queue_height:
        title = f"{SGR_BOLD}{truncate_visible(f'Queued ({len(snapshot.queued)})', width)}{SGR_RESET}"
        queue_rows = [title] + queue_lines
        rows.extend(queue_rows + [""] * (queue_height - len(queue_rows)))

    if todo_height:
        title = f"{SGR_BOLD}{truncate_visible(f'Todos ({len(snapshot.todos)})', width)}{SGR_RESET}"
        todo_rows = [title] + [_style_todo_row(row) for row in todo_lines]
        todo_rows = todo_rows[:todo_height]
        rows.extend(todo_rows + [""] * (todo_height - len(todo_rows)))

    rule = f"{SGR_DIM}{'─' * width}{SGR_RESET}"
    view, cursor_row, cursor_col = build_input_view(layout, width, input_height - 2)
    rows.append(rule)
    rows.extend(view + [""] * (input_height - 2 - len(view)))
    rows.append(rule)

    cursor = (output_height + queue_height + todo_height + 1 + cursor_row, cursor_col)
    rows = rows[:max(height, 0)]
    cursor = (min(cursor[0], max(height - 1, 0)), cursor[1])
    return Frame(tuple(rows), cursor, PaneHeights(output_height, queue_height, input_height, todo_height))


class ConsoleScreen:
    """Owns drawing to the backend.

    The screen is cleared before a draw when forced, on the first draw, and
    whenever the terminal size changed since the previous draw. Snapshots
    older than the last drawn one are skipped.
    """

    def __init__(self, backend: TerminalBackend, prompt_marker: str = "> ",
                 continuation_marker: str = "| ", min_output_height: int = 3):
        self.backend = backend
        self.prompt_marker = prompt_marker
        self.continuation_marker = continuation_marker
        self.min_output_height = min_output_height
        self._last_size: Optional[TerminalSize] = None
        self._last_heights: Optional[PaneHeights] = None
        self._last_revision = -1
        self._needs_clear = True

    @property
    def output_area(self) -> Optional[Tuple[int, int]]:
        """Width and height of the output pane as last drawn."""
        if self._last_size is None or self._last_heights is None:
            return None
        return self._last_size.columns, self._last_heights.output

    def invalidate(self) -> None:
        """Clear the whole screen on the next draw."""
        self._needs_clear = True

    def render(self, snapshot: ConsoleSnapshot, force_full: bool = False,
               prompt: Optional[PermissionPrompt] = None,
               menu: Optional[PermissionMenu] = None) -> bool:
        """Draw ``snapshot``; returns False when it was skipped as stale."""
        if snapshot.revision < self._last_revision and not force_full:
            return False
        size = self.backend.size()
        clear = force_full or self._needs_clear or size != self._last_size
        frame = compose_frame(snapshot, size, self.prompt_marker, self.continuation_marker,
                              self.min_output_height, prompt, menu)
        self.backend.draw(frame.rows, frame.cursor, clear)
        self._last_size = size
        self._last_heights = frame.heights
        self._last_revision = max(self._last_revision, snapshot.revision)
        self._needs_clear = False
        return True
