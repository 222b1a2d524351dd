"""Pure layout functions for the console screen.

ANSI-preserving line wrapping, UTF-8 byte-offset cursor arithmetic and the
row computations for the output, queue, todo, input and permission regions.
Nothing here touches the terminal.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .permission import PermissionPrompt

ESC = "\x1b"
SGR_RESET = "\x1b[0m"
SGR_BOLD = "\x1b[1m"
SGR_DIM = "\x1b[2m"
SGR_REVERSE = "\x1b[7m"
SGR_GREEN = "\x1b[32m"


def _escape_end(text: str, start: int) -> int:
    """Index just past the escape sequence that begins at ``start``.

    ``ESC [ ... m`` is consumed up to and including the ``m``; an unterminated
    sequence runs to the end of the text. A lone ESC is a single character.
    """
    if start + 1 < len(text) and text[start + 1] == "[":
        end = text.find("m", start + 2)
        return len(text) if end == -1 else end + 1
    return start + 1


def strip_ansi_codes(text: str) -> str:
    """Remove SGR escape sequences, keeping visible characters."""
    if ESC not in text:
        return text
    visible = []
    index = 0
    while index < len(text):
        if text[index] == ESC:
            index = _escape_end(text, index)
            continue
        visible.append(text[index])
        index += 1
    return "".join(visible)


def visible_width(text: str) -> int:
    return len(strip_ansi_codes(text))


def wrap_ansi_line(line: str, width: int) -> List[str]:
    """Split ``line`` into segments of at most ``width`` visible characters.

    Escape sequences are copied atomically and take no width. A width below 1
    is treated as 1. Escape sequences trailing a full segment stay on that
    segment, so every segment but the last holds exactly ``width`` visible
    characters and the concatenation of all segments equals ``line``.
    """
    width = max(width, 1)
    segments: List[str] = []
    current: List[str] = []
    visible = 0
    index = 0
    while index < len(line):
        char = line[index]
        if char == ESC:
            end = _escape_end(line, index)
            current.append(line[index:end])
            index = end
            continue
        if visible == width:
            segments.append("".join(current))
            current = []
            visible = 0
        current.append(char)
        visible += 1
        index += 1
    segments.append("".join(current))
    return segments


def truncate_visible(text: str, width: int) -> str:
    """First ``width`` visible characters of ``text``."""
    if width <= 0:
        return ""
    return wrap_ansi_line(text, width)[0]


def _active_styles(segment: str, active: str) -> str:
    index = 0
    while True:
        index = segment.find(ESC, index)
        if index == -1:
            return active
        end = _escape_end(segment, index)
        code = segment[index:end]
        if code in (SGR_RESET, "\x1b[m"):
            active = ""
        elif code.endswith("m"):
            active += code
        index = end


def _carry_styles(segments: List[str]) -> List[str]:
    """Re-open styles that were active at the end of the previous segment."""
    carried = []
    active = ""
    for segment in segments:
        carried.append(active + segment)
        active = _active_styles(segment, active)
    return carried


# UTF-8 cursor arithmetic. Cursor offsets are byte indices into the UTF-8
# encoding of the text and always sit on a character boundary.

def _utf8(text: str) -> bytes:
    return text.encode("utf-8", "surrogatepass")


def _is_continuation(byte: int) -> bool:
    return byte & 0xC0 == 0x80


def byte_len(text: str) -> int:
    return len(_utf8(text))


def normalize_cursor_pos(text: str, pos: int) -> int:
    """Clamp ``pos`` into the text and move it back onto a boundary."""
    data = _utf8(text)
    pos = min(max(pos, 0), len(data))
    while 0 < pos < len(data) and _is_continuation(data[pos]):
        pos -= 1
    return pos


def previous_char_boundary(text: str, pos: int) -> int:
    data = _utf8(text)
    pos = min(max(pos, 0), len(data))
    if pos == 0:
        return 0
    pos -= 1
    while pos > 0 and _is_continuation(data[pos]):
        pos -= 1
    return pos


def next_char_boundary(text: str, pos: int) -> int:
    data = _utf8(text)
    pos = min(max(pos, 0), len(data))
    if pos >= len(data):
        return len(data)
    pos += 1
    while pos < len(data) and _is_continuation(data[pos]):
        pos += 1
    return pos


def char_index(text: str, pos: int) -> int:
    """Character index for the byte offset ``pos``."""
    pos = normalize_cursor_pos(text, pos)
    return len(_utf8(text)[:pos].decode("utf-8", "surrogatepass"))


def insert_at(text: str, pos: int, insertion: str) -> Tuple[str, int]:
    """Insert at byte offset ``pos``; returns the new text and cursor."""
    pos = normalize_cursor_pos(text, pos)
    index = char_index(text, pos)
    return text[:index] + insertion + text[index:], pos + byte_len(insertion)


def delete_before(text: str, pos: int) -> Tuple[str, int]:
    """Delete the character preceding byte offset ``pos``."""
    pos = normalize_cursor_pos(text, pos)
    if pos == 0:
        return text, 0
    index = char_index(text, pos)
    return text[:index - 1] + text[index:], previous_char_boundary(text, pos)


def cursor_position_in_lines(text: str, byte_offset: int) -> Tuple[int, int]:
    """Return ``(line_index, column_in_chars)`` of a byte offset."""
    prefix = text[:char_index(text, byte_offset)]
    line = prefix.count("\n")
    column = len(prefix) - (prefix.rfind("\n") + 1)
    return line, column


@dataclass(frozen=True)
class InputLayout:
    """Wrapped input rows with the cursor's row and column."""
    lines: Tuple[str, ...]
    cursor_row: int
    cursor_col: int


def build_input_layout(snapshot, width: int, prompt_marker: str = "> ",
                       continuation_marker: str = "| ") -> InputLayout:
    """Wrap the editor text of ``snapshot`` for a pane ``width`` columns wide.

    The first physical line carries ``prompt_marker``, later physical lines
    ``continuation_marker``; wrapped rows are indented by the marker width.
    Cursor math runs on the raw text, drawing uses the formatted text.
    """
    raw, display, cursor = snapshot.editor_text()
    marker_width = visible_width(prompt_marker)
    available = max(width - marker_width, 1)

    raw_lines = raw.split("\n")
    display_lines = display.split("\n")
    if len(display_lines) != len(raw_lines):
        display_lines = raw_lines

    cursor_line, cursor_column = cursor_position_in_lines(raw, cursor)
    padding = " " * marker_width
    rows: List[str] = []
    cursor_row = 0
    cursor_col = marker_width

    for index, display_line in enumerate(display_lines):
        marker = prompt_marker if index == 0 else continuation_marker
        segments = wrap_ansi_line(display_line, available)
        if index == cursor_line:
            segment_index, column = divmod(cursor_column, available)
            # Cursor right after a line that exactly fills its last row.
            if segment_index >= len(segments):
                segments.append("")
            cursor_row = len(rows) + segment_index
            cursor_col = marker_width + column
        for number, segment in enumerate(_carry_styles(segments)):
            rows.append((marker if number == 0 else padding) + segment)

    return InputLayout(tuple(rows), cursor_row, cursor_col)


def build_input_view(layout: InputLayout, width: int, height: int) -> Tuple[List[str], int, int]:
    """Rows visible in an input pane ``height`` rows tall.

    Scrolls so the cursor row stays visible. Returns the rows and the cursor
    position relative to them.
    """
    column = min(layout.cursor_col, max(width - 1, 0))
    if height <= 0:
        return [], 0, column
    start = 0
    if layout.cursor_row >= height:
        start = layout.cursor_row - height + 1
    rows = [truncate_visible(row, width) for row in layout.lines[start:start + height]]
    return rows, layout.cursor_row - start, column


def build_output_lines(lines: Iterable[str], width: int) -> List[str]:
    """Wrap output lines to screen rows."""
    rows: List[str] = []
    for line in lines:
        rows.extend(_carry_styles(wrap_ansi_line(line, width)))
    return rows


@dataclass(frozen=True, order=True)
class TextPosition:
    """A character of the output buffer: line index and visible char offset."""
    line: int
    offset: int


Selection = Tuple[TextPosition, TextPosition]


def _line_rows(index: int, line: str, width: int) -> List[Tuple[int, int, str]]:
    # (line index, offset of the row's first char, row text)
    segments = wrap_ansi_line(line, width)
    rows = []
    start = 0
    for segment, row in zip(segments, _carry_styles(segments)):
        rows.append((index, start, row))
        start += visible_width(segment)
    return rows


def _output_window(lines: Sequence[str], width: int, height: int,
                   scroll: int) -> List[Tuple[int, int, str]]:
    if height <= 0:
        return []
    needed = height + max(scroll, 0)
    chunks: List[List[Tuple[int, int, str]]] = []
    total = 0
    for index in range(len(lines) - 1, -1, -1):
        chunk = _line_rows(index, lines[index], width)
        chunks.append(chunk)
        total += len(chunk)
        if total >= needed:
            break
    rows = [row for chunk in reversed(chunks) for row in chunk]
    scroll = min(max(scroll, 0), max(len(rows) - height, 0))
    end = len(rows) - scroll
    return rows[max(end - height, 0):end]


def _highlight_row(row: str, index: int, row_start: int, selection: Selection) -> str:
    start, end = selection
    if not start.line <= index <= end.line:
        return row
    visible = strip_ansi_codes(row)
    first = start.offset if index == start.line else 0
    last = end.offset + 1 if index == end.line else row_start + len(visible)
    first = min(max(first - row_start, 0), len(visible))
    last = min(max(last - row_start, 0), len(visible))
    if first >= last:
        return row
    return f"{visible[:first]}{SGR_REVERSE}{visible[first:last]}{SGR_RESET}{visible[last:]}"


def visible_output_window(lines: Sequence[str], width: int, height: int, scroll: int,
                          selection: Optional[Selection] = None) -> List[str]:
    """Screen rows of the output pane.

    ``scroll`` counts rows up from the bottom; it is clamped so the window
    never runs past the first row. Only as many lines as needed are wrapped.
    Rows touched by ``selection`` are drawn unstyled with the selected range
    in reverse video.
    """
    window = _output_window(lines, width, height, scroll)
    if selection is None:
        return [row for _, _, row in window]
    selection = (min(selection), max(selection))
    return [_highlight_row(row, index, start, selection) for index, start, row in window]


def output_position_at(lines: Sequence[str], width: int, height: int, scroll: int,
                       row: int, column: int) -> Optional[TextPosition]:
    """Text position under a cell of the output pane; None off the content."""
    if row < 0 or column < 0:
        return None
    window = _output_window(lines, width, height, scroll)
    if row >= len(window):
        return None
    index, start, text = window[row]
    return TextPosition(index, start + min(column, visible_width(text)))


def selected_text(lines: Sequence[str], selection: Selection) -> str:
    """Visible text of ``selection``, both ends included, one line per row."""
    start, end = min(selection), max(selection)
    parts = []
    for index in range(max(start.line, 0), min(end.line, len(lines) - 1) + 1):
        visible = strip_ansi_codes(lines[index])
        first = start.offset if index == start.line else 0
        last = end.offset + 1 if index == end.line else len(visible)
        parts.append(visible[first:last])
    return "\n".join(parts)


def _queue_item_rows(number: int, item: str, width: int) -> List[str]:
    prefix = f"{number}) "
    available = max(width - len(prefix), 1)
    rows = []
    for line_index, line in enumerate(item.split("\n")):
        for segment_index, segment in enumerate(wrap_ansi_line(line, available)):
            lead = prefix if line_index == 0 and segment_index == 0 else " " * len(prefix)
            rows.append(truncate_visible(lead + segment, width))
    return rows


def build_queue_lines(queue: Sequence[str], width: int, max_lines: int) -> List[str]:
    """Numbered, wrapped queue rows within ``max_lines``.

    Items are shown whole or not at all. When any item is left out, the last
    row is an ``... (N more)`` indicator.
    """
    if max_lines <= 0 or width <= 0:
        return []
    lines: List[str] = []
    shown = 0
    for index, item in enumerate(queue):
        rows = _queue_item_rows(index + 1, item, width)
        is_last = index == len(queue) - 1
        budget = max_lines if is_last else max_lines - 1
        if len(lines) + len(rows) > budget:
            break
        lines.extend(rows)
        shown += 1
    hidden = len(queue) - shown
    if hidden:
        lines.append(truncate_visible(f"... ({hidden} more)", width))
    return lines


def build_queue_layout(queue: Sequence[str], width: int, max_height: int) -> Tuple[int, List[str]]:
    """Height of the queue pane (title and spacing included) and its rows."""
    if not queue or width <= 0 or max_height < 3:
        return 0, []
    lines = build_queue_lines(queue, width, max_height - 2)
    return len(lines) + 2, lines


TODO_ITEM_LIMIT = 10
TODO_DONE_PREFIX = "  [✓] "
TODO_PENDING_PREFIX = "  [ ] "


def build_todo_lines(todos: Sequence, width: int, max_lines: int) -> List[str]:
    """Checkbox rows for the todo pane, pending items before completed ones.

    At most ``TODO_ITEM_LIMIT`` items are listed. An item may be cut short
    when the rows run out; items not listed at all are counted on a
    ``...(N more)...`` row when there is room for it.
    """
    if max_lines <= 0 or width <= 0:
        return []
    ordered = [todo for todo in todos if not todo.completed] + [todo for todo in todos if todo.completed]
    lines: List[str] = []
    shown = 0
    for todo in ordered[:TODO_ITEM_LIMIT]:
        if len(lines) >= max_lines:
            break
        prefix = TODO_DONE_PREFIX if todo.completed else TODO_PENDING_PREFIX
        available = max(width - len(prefix), 1)
        for index, segment in enumerate(wrap_ansi_line(todo.description.replace("\n", " "), available)):
            if len(lines) >= max_lines:
                break
            lead = prefix if index == 0 else " " * len(prefix)
            lines.append(truncate_visible(lead + segment, width))
        shown += 1
    hidden = len(ordered) - shown
    if hidden and len(lines) < max_lines:
        lines.append(truncate_visible(f"  ...({hidden} more)...", width))
    return lines


def build_todo_layout(todos: Sequence, width: int, max_height: int) -> Tuple[int, List[str]]:
    """Height of the todo pane (title and spacing included) and its rows.

    The pane is hidden when there is nothing left to do.
    """
    if not todos or all(todo.completed for todo in todos) or width <= 0 or max_height < 3:
        return 0, []
    lines = build_todo_lines(todos, width, max_height - 2)
    return min(len(lines) + 2, max_height), lines


def build_permission_lines(prompt: PermissionPrompt, selected: int, buffer: str, width: int) -> List[str]:
    """Wrapped rows of the inline permission menu."""
    lines = [f"{SGR_BOLD}{line}{SGR_RESET}" for line in prompt.summary.split("\n")]
    if prompt.detail:
        lines.append("")
        lines.extend(prompt.detail.split("\n"))
    lines.append("")
    for index, label in enumerate(prompt.options):
        if index == selected:
            lines.append(f"{SGR_REVERSE}> {index + 1}. {label}{SGR_RESET}")
        else:
            lines.append(f"  {index + 1}. {label}")
    if buffer:
        lines.append("")
        lines.append(f"Selection: {buffer}")
    return build_output_lines(lines, width)


def build_output_with_menu(lines: Sequence[str], width: int, height: int, scroll: int,
                           menu: List[str], selection: Optional[Selection] = None) -> List[str]:
    """Output rows followed by the menu rows, within ``height``.

    The menu keeps its rows at the bottom; the output window shrinks to what
    is left. When the menu alone is taller than ``height`` only its tail is
    shown.
    """
    if height <= 0:
        return []
    if len(menu) >= height:
        return menu[-height:]
    output_height = height - len(menu) - 1
    output = visible_output_window(lines, width, output_height, scroll, selection)
    padding = [""] * (output_height - len(output))
    return output + padding + [""] + menu
