"""Tests for input history and reverse search."""

from agent_console.interface.history import InputHistory


def make_history(*entries) -> InputHistory:
    history = InputHistory()
    for entry in entries:
        history.add_entry(entry)
    return history


class TestInputHistory:
    """Test history recording and navigation."""

    def test_skips_blank_and_repeated_entries(self):
        history = make_history("a", "a", "   ", "b", "a")
        assert history.entries == ["a", "b", "a"]

    def test_limit_drops_oldest(self):
        history = InputHistory(limit=3)
        for entry in "abcde":
            history.add_entry(entry)
        assert history.entries == ["c", "d", "e"]

    def test_navigate_up_and_down_restores_draft(self):
        history = make_history("first", "second")

        assert history.navigate_up("draft") == "second"
        assert history.navigate_up("ignored") == "first"
        assert history.navigate_up("ignored") == "first"
        assert history.navigate_down() == "second"
        assert history.navigate_down() == "draft"
        assert history.navigate_down() is None

    def test_navigation_on_empty_history(self):
        history = InputHistory()
        assert history.navigate_up("x") is None
        assert history.navigate_down() is None

    def test_reset_navigation(self):
        history = make_history("first", "second")
        history.navigate_up("")
        history.navigate_up("")
        history.reset_navigation()
        assert history.navigate_up("") == "second"


class TestReverseSearch:
    """Test reverse-incremental search."""

    def test_most_recent_match_first(self):
        history = make_history("apple pie", "banana", "Apple tart")
        history.start_reverse_search("draft")
        history.update_reverse_search("apple")

        state = history.search_state()
        assert state.matched == "Apple tart"
        assert state.index == 0
        assert [history.entries[i] for i in state.matches] == ["Apple tart", "apple pie"]

    def test_next_and_prev_cycle(self):
        history = make_history("A1", "B", "A2")
        history.start_reverse_search("")
        history.update_reverse_search("a")

        history.next_match()
        assert history.search_state().matched == "A1"
        history.next_match()
        assert history.search_state().matched == "A2"
        history.prev_match()
        assert history.search_state().matched == "A1"

    def test_empty_query_clears_matches(self):
        history = make_history("abc")
        history.start_reverse_search("")
        history.update_reverse_search("a")
        history.update_reverse_search("")

        assert history.search_state().matched is None
        assert history.search_state().matches == []

    def test_finish_returns_match_or_draft(self):
        history = make_history("git status")
        history.start_reverse_search("draft")
        history.update_reverse_search("stat")
        assert history.finish_reverse_search() == "git status"

        history.start_reverse_search("draft")
        history.update_reverse_search("nothing")
        assert history.finish_reverse_search() == "draft"

    def test_cancel_returns_draft(self):
        history = make_history("git status")
        history.start_reverse_search("draft")
        history.update_reverse_search("git")
        assert history.cancel_reverse_search() == "draft"
        assert history.search_state().query == ""
