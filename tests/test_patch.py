"""Tests for mapping patch lines to diff positions."""

import pytest

from reviewbot.review.patch import HunkHeader, MalformedPatchError, parse_hunk_header, parse_patch


class TestParseHunkHeader:
    def test_full_header(self):
        assert parse_hunk_header("@@ -10,2 +12,3 @@") == HunkHeader(10, 2, 12, 3)

    def test_lengths_default_to_one(self):
        assert parse_hunk_header("@@ -1 +1 @@") == HunkHeader(1, 1, 1, 1)

    def test_section_heading_after_header(self):
        header = parse_hunk_header("@@ -5,6 +7,8 @@ def handler(event):")
        assert header is not None
        assert header.new_start == 7

    @pytest.mark.parametrize("line", [" context", "+@@ added", "@@ broken @@", ""])
    def test_non_header_lines(self, line):
        assert parse_hunk_header(line) is None


class TestParsePatch:
    def test_single_addition(self):
        """An addition at new-file line 2 sits at diff position 2."""
        patch = "@@ -1,2 +1,3 @@\n context\n+added line\n context2"
        assert parse_patch(patch) == {2: 2}

    def test_positions_continue_across_hunks(self):
        patch = "\n".join(
            [
                "@@ -1,3 +1,4 @@",
                " a",
                "-b",
                "+c",
                "+d",
                " e",
                "@@ -10,2 +12,3 @@",
                "+y",
                " x",
                "+z",
            ]
        )
        line_map = parse_patch(patch)

        # First hunk ends at position 5; the second hunk starts again from 6
        # while its file lines restart at new_start.
        assert line_map == {2: 3, 3: 4, 12: 6, 14: 8}

    def test_deletions_take_a_position_but_no_file_line(self):
        patch = "@@ -1,2 +1,1 @@\n-old\n-older\n+new"
        assert parse_patch(patch) == {1: 3}

    def test_no_newline_marker_after_deletion(self):
        """The marker takes a position but does not shift the additions after it."""
        patch = "@@ -1 +1,2 @@\n-foo\n\\ No newline at end of file\n+foo\n+bar"
        assert parse_patch(patch) == {1: 3, 2: 4}

    def test_no_newline_marker_at_end_of_hunk(self):
        patch = "\n".join(
            [
                "@@ -1,2 +1,2 @@",
                " keep",
                "-old",
                "\\ No newline at end of file",
                "+new",
                "\\ No newline at end of file",
                "@@ -9 +9,2 @@",
                " tail",
                "+more",
            ]
        )
        assert parse_patch(patch) == {2: 4, 10: 7}

    def test_only_additions_become_keys(self):
        patch = "\n".join(
            [
                "@@ -3,4 +3,5 @@ class Widget:",
                "     name = None",
                "-    size = 0",
                "+    size = 1",
                "+    colour = 'red'",
                "     weight = 2",
                "     height = 3",
            ]
        )
        line_map = parse_patch(patch)

        assert sorted(line_map) == [4, 5]
        assert line_map[4] == 3
        assert line_map[5] == 4

    def test_positions_strictly_increase_with_file_lines(self):
        patch = "@@ -1,1 +1,4 @@\n+one\n+two\n keep\n+three\n@@ -20 +23,2 @@\n+four\n tail"
        line_map = parse_patch(patch)

        lines = sorted(line_map)
        positions = [line_map[line] for line in lines]
        assert positions == sorted(positions)
        assert len(set(positions)) == len(positions)
        assert line_map == {1: 1, 2: 2, 4: 4, 23: 5}

    def test_new_file_patch(self):
        patch = "@@ -0,0 +1,3 @@\n+a = 1\n+b = 2\n+c = 3"
        assert parse_patch(patch) == {1: 1, 2: 2, 3: 3}

    @pytest.mark.parametrize("patch", ["", None])
    def test_empty_patch(self, patch):
        assert parse_patch(patch) == {}

    def test_header_only(self):
        assert parse_patch("@@ -1,0 +1,0 @@") == {}

    def test_content_before_first_header_is_rejected(self):
        with pytest.raises(MalformedPatchError):
            parse_patch("+orphan line\n context")

    def test_pure_function(self):
        patch = "@@ -1,2 +1,3 @@\n context\n+added line\n context2"
        assert parse_patch(patch) == parse_patch(patch)
