"""Unit tests for incremental output extraction."""

from cli_agent_monitor.detection.differ import diff_output


class TestDiffOutput:
    """Tests for diff_output()."""

    def test_unchanged_output(self):
        assert diff_output("a\nb", "a\nb") is None

    def test_first_capture_is_all_new(self):
        assert diff_output("", "a\nb") == "a\nb"

    def test_empty_to_empty(self):
        assert diff_output("", "") is None

    def test_appended_lines(self):
        assert diff_output("a\nb", "a\nb\nc\nd") == "c\nd"

    def test_append_after_scroll(self):
        """Lines scrolled off the top do not matter while the anchor is visible."""
        assert diff_output("a\nb\nc", "b\nc\nd") == "d"

    def test_anchor_scrolled_away(self):
        """Anchor gone -> lines never seen before, in order."""
        assert diff_output("a\nb\nc", "x\ny\nz") == "x\ny\nz"

    def test_redraw_in_place(self):
        """Anchor still the last line -> only changed lines are reported."""
        assert diff_output("✽ Cooking… (1s)\n❯ ", "✽ Cooking… (2s)\n❯ ") == "✽ Cooking… (2s)"

    def test_cleared_screen(self):
        assert diff_output("a\nb", "") is None

    def test_blank_line_only(self):
        assert diff_output("a", "a\n") is None
