"""Tests for the pure layout functions."""

import pytest
from agent_console.interface.layout import (
    SGR_BOLD, SGR_RESET, SGR_REVERSE, TextPosition,
    build_input_layout, build_input_view, build_output_lines, build_output_with_menu,
    build_permission_lines, build_queue_layout, build_queue_lines, build_todo_layout,
    build_todo_lines, byte_len, output_position_at, selected_text,
    cursor_position_in_lines, delete_before, insert_at, next_char_boundary,
    normalize_cursor_pos, previous_char_boundary, strip_ansi_codes, visible_output_window,
    visible_width, wrap_ansi_line,
)
from agent_console.interface.permission import PermissionPrompt
from agent_console.interface.state import ConsoleSnapshot, InputMode, TodoItem

RED = "\x1b[31m"
RESET = "\x1b[0m"


def snapshot(text: str, cursor=None, **kwargs) -> ConsoleSnapshot:
    if cursor is None:
        cursor = byte_len(text)
    return ConsoleSnapshot(output_lines=(), queued=(), input=text, cursor_pos=cursor, **kwargs)


class TestWrapAnsiLine:
    """Test ANSI-aware wrapping."""

    def test_plain_text(self):
        assert wrap_ansi_line("abcdef", 2) == ["ab", "cd", "ef"]
        assert wrap_ansi_line("abcdef", 4) == ["abcd", "ef"]
        assert wrap_ansi_line("abc", 10) == ["abc"]

    def test_empty_line(self):
        assert wrap_ansi_line("", 5) == [""]

    def test_zero_width_gives_one_character_per_segment(self):
        assert wrap_ansi_line("abc", 0) == ["a", "b", "c"]

    def test_escape_sequences_take_no_width(self):
        line = f"{RED}abcd{RESET}"
        segments = wrap_ansi_line(line, 2)

        assert segments == [f"{RED}ab", f"cd{RESET}"]
        assert [visible_width(segment) for segment in segments] == [2, 2]

    def test_unterminated_sequence_is_copied_verbatim(self):
        segments = wrap_ansi_line("ab\x1b[31", 1)
        assert segments == ["a", "b\x1b[31"]
        assert strip_ansi_codes("ab\x1b[31") == "ab"

    @pytest.mark.parametrize("line", [
        "hello world",
        f"{RED}red{RESET} plain {RED}again",
        "世界 wide chars",
        "\x1b[1m\x1b[4mstacked\x1b[0m",
        "x" * 37,
    ])
    @pytest.mark.parametrize("width", [1, 3, 7, 80])
    def test_segments_reassemble_input(self, line, width):
        segments = wrap_ansi_line(line, width)

        assert "".join(segments) == line
        assert strip_ansi_codes("".join(segments)) == strip_ansi_codes(line)
        for segment in segments[:-1]:
            assert visible_width(segment) == width
        assert visible_width(segments[-1]) <= width

    def test_output_lines_reopen_styles_on_wrapped_rows(self):
        rows = build_output_lines([f"{RED}abcd{RESET}"], 2)
        assert rows == [f"{RED}ab", f"{RED}cd{RESET}"]


class TestCharBoundaries:
    """Test UTF-8 cursor arithmetic."""

    def test_multibyte_steps(self):
        text = "世界"
        assert next_char_boundary(text, 0) == 3
        assert next_char_boundary(text, 3) == 6
        assert previous_char_boundary(text, 6) == 3
        assert previous_char_boundary(text, 3) == 0

    def test_clamping(self):
        text = "世界"
        assert next_char_boundary(text, 6) == 6
        assert next_char_boundary(text, 100) == 6
        assert previous_char_boundary(text, 0) == 0
        assert previous_char_boundary(text, -4) == 0

    @pytest.mark.parametrize("text", ["", "ascii", "héllo", "世界", "a😀b", "é\n世"])
    def test_boundaries_are_inverse(self, text):
        boundary = 0
        while boundary < byte_len(text):
            after = next_char_boundary(text, boundary)
            assert after > boundary
            assert previous_char_boundary(text, after) == boundary
            boundary = after
        assert boundary == byte_len(text)

    def test_normalize_moves_back_to_boundary(self):
        assert normalize_cursor_pos("世界", 4) == 3
        assert normalize_cursor_pos("世界", 99) == 6

    def test_insert_and_delete(self):
        assert insert_at("héllo", 3, "X") == ("héXllo", 4)
        assert insert_at("", 0, "世") == ("世", 3)
        assert delete_before("héllo", 3) == ("hllo", 1)
        assert delete_before("abc", 0) == ("abc", 0)

    def test_cursor_position_in_lines(self):
        assert cursor_position_in_lines("ab\ncd", 4) == (1, 1)
        assert cursor_position_in_lines("世\n界", 4) == (1, 0)
        assert cursor_position_in_lines("世\n界", 7) == (1, 1)
        assert cursor_position_in_lines("abc", 99) == (0, 3)


class TestInputLayout:
    """Test input wrapping and cursor placement."""

    def test_single_line(self):
        layout = build_input_layout(snapshot("hi"), 20)
        assert layout.lines == ("> hi",)
        assert (layout.cursor_row, layout.cursor_col) == (0, 4)

    def test_line_wrapping_more_than_once(self):
        layout = build_input_layout(snapshot("abcdefghij", cursor=5), 6)

        assert layout.lines == ("> abcd", "  efgh", "  ij")
        assert (layout.cursor_row, layout.cursor_col) == (1, 3)

    def test_cursor_after_exactly_full_row(self):
        layout = build_input_layout(snapshot("abcdefgh"), 6)

        assert layout.lines == ("> abcd", "  efgh", "  ")
        assert (layout.cursor_row, layout.cursor_col) == (2, 2)

    def test_continuation_marker_on_physical_lines(self):
        layout = build_input_layout(snapshot("ab\ncd"), 20)

        assert layout.lines == ("> ab", "| cd")
        assert (layout.cursor_row, layout.cursor_col) == (1, 4)

    def test_multibyte_cursor(self):
        layout = build_input_layout(snapshot("世界", cursor=3), 20)
        assert (layout.cursor_row, layout.cursor_col) == (0, 3)

    def test_formatted_display_keeps_cursor(self):
        shot = snapshot("see @file", input_display=f"see {RED}@file{RESET}")
        layout = build_input_layout(shot, 20)

        assert layout.lines == (f"> see {RED}@file{RESET}",)
        assert layout.cursor_col == 2 + len("see @file")

    def test_reverse_search_line(self):
        line = "(reverse-i-search)`ab`: abc"
        shot = snapshot("draft", cursor=0, mode=InputMode.REVERSE_SEARCH, search_line=line)
        layout = build_input_layout(shot, 80)

        assert layout.lines == (f"> {line}",)
        assert layout.cursor_col == 2 + len(line)

    def test_view_scrolls_to_cursor(self):
        layout = build_input_layout(snapshot("1\n2\n3\n4\n5"), 20)
        rows, cursor_row, cursor_col = build_input_view(layout, 20, 2)

        assert rows == ["| 4", "| 5"]
        assert (cursor_row, cursor_col) == (1, 3)

    def test_view_clamps_cursor_column(self):
        layout = build_input_layout(snapshot("abc"), 20)
        _, _, cursor_col = build_input_view(layout, 3, 1)
        assert cursor_col == 2


class TestOutputWindow:
    """Test the scrolled output window."""

    LINES = [str(n) for n in range(1, 11)]

    def test_pinned_to_bottom(self):
        assert visible_output_window(self.LINES, 10, 3, 0) == ["8", "9", "10"]

    def test_scrolled_up(self):
        assert visible_output_window(self.LINES, 10, 3, 2) == ["6", "7", "8"]

    def test_scroll_is_clamped_at_top(self):
        assert visible_output_window(self.LINES, 10, 3, 100) == ["1", "2", "3"]

    def test_short_output(self):
        assert visible_output_window(["a", "b"], 10, 5, 0) == ["a", "b"]

    def test_counts_wrapped_rows(self):
        assert visible_output_window(["abcdef", "x"], 2, 3, 0) == ["cd", "ef", "x"]

    def test_zero_height(self):
        assert visible_output_window(self.LINES, 10, 0, 0) == []

    def test_selection_is_reverse_video(self):
        selection = (TextPosition(0, 3), TextPosition(0, 1))
        rows = visible_output_window([f"{RED}abcdef{RESET}"], 4, 2, 0, selection)
        assert rows == [f"a{SGR_REVERSE}bcd{SGR_RESET}", f"{RED}ef{RESET}"]

    def test_selection_across_lines_and_rows(self):
        selection = (TextPosition(0, 2), TextPosition(1, 4))
        rows = visible_output_window(["abc", "vwxyz", "tail"], 3, 5, 0, selection)
        assert rows == [
            f"ab{SGR_REVERSE}c{SGR_RESET}",
            f"{SGR_REVERSE}vwx{SGR_RESET}",
            f"{SGR_REVERSE}yz{SGR_RESET}",
            "tai",
            "l",
        ]


class TestOutputPositions:
    """Test mapping output pane cells back to buffer text."""

    LINES = ["short", "abcdefghij", "end"]

    def test_maps_wrapped_rows(self):
        # Rows at width 4: shor, t, abcd, efgh, ij, end
        assert output_position_at(self.LINES, 4, 6, 0, 0, 2) == TextPosition(0, 2)
        assert output_position_at(self.LINES, 4, 6, 0, 3, 1) == TextPosition(1, 5)
        assert output_position_at(self.LINES, 4, 6, 0, 5, 0) == TextPosition(2, 0)

    def test_column_clamped_to_row_text(self):
        assert output_position_at(self.LINES, 4, 6, 0, 4, 3) == TextPosition(1, 10)

    def test_follows_scroll(self):
        assert output_position_at(self.LINES, 4, 2, 1, 0, 0) == TextPosition(1, 4)

    def test_outside_content(self):
        assert output_position_at(self.LINES, 4, 10, 0, 6, 0) is None
        assert output_position_at(self.LINES, 4, 6, 0, -1, 0) is None
        assert output_position_at([], 4, 6, 0, 0, 0) is None

    def test_selected_text_strips_styles(self):
        lines = [f"{RED}alpha{RESET}", "beta", "gamma"]
        assert selected_text(lines, (TextPosition(2, 1), TextPosition(0, 3))) == "ha\nbeta\nga"
        assert selected_text(lines, (TextPosition(1, 2), TextPosition(1, 2))) == "t"


class TestQueueLayout:
    """Test queue pane rows."""

    def test_numbered_items(self):
        assert build_queue_lines(["one", "two"], 20, 5) == ["1) one", "2) two"]

    def test_indicator_when_truncated(self):
        assert build_queue_lines(["one", "two", "three"], 20, 2) == ["1) one", "... (2 more)"]

    def test_no_indicator_when_everything_fits(self):
        lines = build_queue_lines(["one", "two", "three"], 20, 3)
        assert lines == ["1) one", "2) two", "3) three"]

    def test_wrapped_item(self):
        assert build_queue_lines(["abcdefgh"], 6, 5) == ["1) abc", "   def", "   gh"]

    @pytest.mark.parametrize("budget", range(0, 9))
    def test_never_exceeds_budget(self, budget):
        items = ["short", "a much longer queued request that wraps", "x\ny", "last"]
        lines = build_queue_lines(items, 12, budget)

        assert len(lines) <= budget
        truncated = any(line.startswith("... (") for line in lines)
        shown = sum(1 for line in lines if line[:1].isdigit())
        assert truncated == (shown < len(items) and budget > 0)

    def test_layout_heights(self):
        assert build_queue_layout([], 20, 10) == (0, [])
        assert build_queue_layout(["a"], 20, 2) == (0, [])
        assert build_queue_layout(["a"], 0, 10) == (0, [])
        assert build_queue_layout(["a", "b"], 20, 10) == (4, ["1) a", "2) b"])


class TestTodoLayout:
    """Test todo pane rows."""

    def test_pending_items_come_first(self):
        todos = [TodoItem("done", completed=True), TodoItem("first"), TodoItem("second")]
        assert build_todo_lines(todos, 20, 5) == ["  [ ] first", "  [ ] second", "  [✓] done"]

    def test_wrapped_item_is_indented(self):
        assert build_todo_lines([TodoItem("abcdefghij")], 12, 5) == ["  [ ] abcdef", "      ghij"]

    def test_item_limit_indicator(self):
        lines = build_todo_lines([TodoItem(f"t{n}") for n in range(12)], 20, 20)
        assert len(lines) == 11
        assert lines[-1] == "  ...(2 more)..."

    def test_rows_run_out(self):
        todos = [TodoItem("a"), TodoItem("b"), TodoItem("c")]
        assert build_todo_lines(todos, 20, 2) == ["  [ ] a", "  [ ] b"]

    def test_layout_heights(self):
        assert build_todo_layout([], 20, 10) == (0, [])
        assert build_todo_layout([TodoItem("a", completed=True)], 20, 10) == (0, [])
        assert build_todo_layout([TodoItem("a")], 20, 2) == (0, [])
        assert build_todo_layout([TodoItem("a")], 0, 10) == (0, [])
        assert build_todo_layout([TodoItem("a")], 20, 10) == (3, ["  [ ] a"])


class TestPermissionLines:
    """Test the inline permission menu rows."""

    PROMPT = PermissionPrompt(summary="Run ls", options=["Yes", "No"])

    def test_options_and_selection(self):
        lines = build_permission_lines(self.PROMPT, 1, "", 40)

        assert SGR_BOLD in lines[0] and "Run ls" in lines[0]
        assert lines[1] == ""
        assert lines[2] == "  1. Yes"
        assert lines[3].startswith(SGR_REVERSE) and "> 2. No" in lines[3]
        assert not any("Selection" in line for line in lines)

    def test_detail_and_buffer(self):
        prompt = PermissionPrompt(summary="Write file", detail="path: a.txt\nsize: 3", options=["Yes", "No"])
        lines = build_permission_lines(prompt, 0, "2", 40)

        assert lines[1:4] == ["", "path: a.txt", "size: 3"]
        assert lines[-1] == "Selection: 2"

    def test_menu_keeps_its_rows(self):
        menu = ["m1", "m2"]
        rows = build_output_with_menu(["o1", "o2", "o3"], 10, 4, 0, menu)
        assert rows == ["o3", "", "m1", "m2"]

    def test_tall_menu_shows_tail(self):
        rows = build_output_with_menu(["o1"], 10, 2, 0, ["m1", "m2", "m3"])
        assert rows == ["m2", "m3"]
