"""Tests for the content matcher: block matching, boundary checks, splicing."""

import pytest

from memoff.core.errors import (
    AmbiguousMatchError,
    BoundaryMismatchError,
    ErrorKind,
    NoMatchError,
    RangeOutOfBoundsError,
)
from memoff.editor.lines import find_block, match_block, splice_lines, verify_boundaries


LINES = ["a", "b", "c", "a", "b", "d", "e"]


class TestMatchBlock:
    def test_unique_block(self):
        assert match_block(LINES, ["b", "d"]) == 5

    def test_single_line(self):
        assert match_block(LINES, ["c"]) == 3

    def test_block_at_end(self):
        assert match_block(LINES, ["d", "e"]) == 6

    def test_no_match(self):
        with pytest.raises(NoMatchError) as exc_info:
            match_block(LINES, ["x"])
        assert exc_info.value.kind is ErrorKind.NO_MATCH

    def test_ambiguous_lists_candidates(self):
        with pytest.raises(AmbiguousMatchError) as exc_info:
            match_block(LINES, ["a", "b"])
        assert exc_info.value.kind is ErrorKind.AMBIGUOUS_MATCH
        assert exc_info.value.candidates == [1, 4]
        assert "1, 4" in exc_info.value.message

    def test_order_sensitive(self):
        with pytest.raises(NoMatchError):
            match_block(LINES, ["b", "a", "c"])

    def test_exact_equality_only(self):
        with pytest.raises(NoMatchError):
            match_block(LINES, ["C"])
        with pytest.raises(NoMatchError):
            match_block(LINES, ["c "])

    def test_search_range_disambiguates(self):
        assert match_block(LINES, ["a", "b"], 3, 7) == 4
        assert match_block(LINES, ["a", "b"], 1, 3) == 1

    def test_block_must_end_inside_range(self):
        with pytest.raises(NoMatchError):
            match_block(LINES, ["a", "b"], 4, 4)

    def test_empty_block_never_matches(self):
        with pytest.raises(NoMatchError):
            match_block(LINES, [])

    def test_block_longer_than_file(self):
        assert find_block(["a"], ["a", "b"]) == []


class TestVerifyBoundaries:
    def test_valid_range(self):
        verify_boundaries(LINES, 2, 3, "b", "c")

    def test_single_line_range(self):
        verify_boundaries(LINES, 7, 7, "e", "e")

    def test_begin_mismatch(self):
        with pytest.raises(BoundaryMismatchError) as exc_info:
            verify_boundaries(LINES, 2, 3, "x", "c")
        assert exc_info.value.kind is ErrorKind.BOUNDARY_MISMATCH

    def test_end_mismatch(self):
        with pytest.raises(BoundaryMismatchError):
            verify_boundaries(LINES, 2, 3, "b", "x")

    def test_past_end_of_file(self):
        with pytest.raises(RangeOutOfBoundsError) as exc_info:
            verify_boundaries(LINES, 6, 8, "d", "x")
        assert exc_info.value.kind is ErrorKind.RANGE_OUT_OF_BOUNDS

    def test_inverted_range(self):
        with pytest.raises(RangeOutOfBoundsError):
            verify_boundaries(LINES, 3, 2, "c", "b")

    def test_zero_line_number(self):
        with pytest.raises(RangeOutOfBoundsError):
            verify_boundaries(LINES, 0, 1, "a", "a")

    def test_outside_search_range(self):
        with pytest.raises(RangeOutOfBoundsError):
            verify_boundaries(LINES, 2, 3, "b", "c", search_start=3, search_end=7)


class TestSpliceLines:
    def test_replace_range(self):
        assert splice_lines(LINES, 2, 3, ["X"]) == ["a", "X", "a", "b", "d", "e"]

    def test_delete_leaves_no_gap(self):
        assert splice_lines(LINES, 2, 3, []) == ["a", "a", "b", "d", "e"]

    def test_pure_insertion(self):
        assert splice_lines(["a", "b"], 2, 1, ["X"]) == ["a", "X", "b"]

    def test_does_not_mutate_input(self):
        original = list(LINES)
        splice_lines(original, 1, 2, ["z"])
        assert original == LINES

    @pytest.mark.parametrize("begin,end", [(1, 1), (2, 4), (6, 7), (1, 7)])
    def test_delete_then_reinsert_restores(self, begin, end):
        removed = LINES[begin - 1 : end]
        deleted = splice_lines(LINES, begin, end, [])
        assert splice_lines(deleted, begin, begin - 1, removed) == LINES

    @pytest.mark.parametrize("begin,end", [(2, 4), (6, 7)])
    def test_reinsert_after_preceding_line(self, begin, end):
        removed = LINES[begin - 1 : end]
        deleted = splice_lines(LINES, begin, end, [])
        anchor = deleted[begin - 2]
        assert splice_lines(deleted, begin - 1, begin - 1, [anchor] + removed) == LINES
