"""
Unit tests for interval merging and subtraction.
"""

import pytest
from datetime import time

from core.exceptions import InvalidInterval
from services.interval_merger import IntervalMerger
from shared_types.availability import ResolvedInterval, SourceInterval


def src(start_hour, start_minute, end_hour, end_minute, source_id):
    return SourceInterval(time(start_hour, start_minute), time(end_hour, end_minute), source_id)


class TestMerge:
    """Test IntervalMerger.merge."""

    def test_empty(self):
        assert IntervalMerger.merge([]) == []

    def test_disjoint_intervals_stay_separate(self):
        result = IntervalMerger.merge([src(13, 0, 14, 0, "block:2"), src(9, 0, 10, 0, "block:1")])
        assert [(r.start, r.end) for r in result] == [(time(9, 0), time(10, 0)), (time(13, 0), time(14, 0))]
        assert result[0].source_ids == ["block:1"]
        assert result[1].source_ids == ["block:2"]

    def test_touching_intervals_merge(self):
        """[09:00, 10:00) and [10:00, 11:00) form one contiguous block."""
        result = IntervalMerger.merge([src(9, 0, 10, 0, "block:1"), src(10, 0, 11, 0, "block:2")])
        assert len(result) == 1
        assert (result[0].start, result[0].end) == (time(9, 0), time(11, 0))
        assert result[0].source_ids == ["block:1", "block:2"]

    def test_overlapping_and_contained_intervals(self):
        result = IntervalMerger.merge([
            src(9, 0, 12, 0, "block:1"),
            src(10, 0, 11, 0, "exception:5"),
            src(11, 30, 13, 0, "block:2"),
        ])
        assert len(result) == 1
        assert (result[0].start, result[0].end) == (time(9, 0), time(13, 0))
        assert set(result[0].source_ids) == {"block:1", "exception:5", "block:2"}

    def test_duplicate_source_ids_are_not_repeated(self):
        result = IntervalMerger.merge([src(9, 0, 10, 0, "block:1"), src(9, 30, 10, 30, "block:1")])
        assert result[0].source_ids == ["block:1"]

    def test_merge_is_idempotent(self):
        intervals = [src(9, 0, 10, 0, "a"), src(9, 30, 11, 0, "b"), src(14, 0, 15, 0, "c")]
        once = IntervalMerger.merge(intervals)
        twice = IntervalMerger.merge(once)
        assert twice == once

    def test_output_sorted_and_non_overlapping(self):
        result = IntervalMerger.merge([
            src(16, 0, 17, 0, "d"), src(8, 0, 9, 0, "a"), src(12, 0, 13, 0, "c"), src(8, 30, 9, 15, "b"),
        ])
        for earlier, later in zip(result, result[1:]):
            assert earlier.end < later.start

    def test_union_coverage_preserved(self):
        intervals = [src(9, 0, 10, 0, "a"), src(9, 30, 10, 30, "b"), src(11, 0, 11, 15, "c")]
        result = IntervalMerger.merge(intervals)
        assert IntervalMerger.total_minutes(result) == 90 + 15

    @pytest.mark.parametrize("start,end", [(time(10, 0), time(10, 0)), (time(11, 0), time(10, 0))])
    def test_rejects_empty_or_inverted(self, start, end):
        with pytest.raises(InvalidInterval):
            IntervalMerger.merge([src(9, 0, 10, 0, "ok"), SourceInterval(start, end, "bad")])


class TestSubtract:
    """Test IntervalMerger.subtract."""

    def test_blackout_in_middle_splits(self):
        resolved = [ResolvedInterval(time(9, 0), time(17, 0), ["block:1"])]
        result = IntervalMerger.subtract(resolved, [src(12, 0, 13, 0, "time_block:1")])
        assert [(r.start, r.end) for r in result] == [(time(9, 0), time(12, 0)), (time(13, 0), time(17, 0))]
        assert all(r.source_ids == ["block:1"] for r in result)

    def test_blackout_over_edge_trims(self):
        resolved = [ResolvedInterval(time(9, 0), time(12, 0), ["block:1"])]
        result = IntervalMerger.subtract(resolved, [src(8, 0, 10, 0, "time_block:1")])
        assert [(r.start, r.end) for r in result] == [(time(10, 0), time(12, 0))]

    def test_blackout_covering_removes(self):
        resolved = [ResolvedInterval(time(9, 0), time(12, 0), ["block:1"])]
        assert IntervalMerger.subtract(resolved, [src(9, 0, 12, 0, "time_block:1")]) == []

    def test_touching_blackout_changes_nothing(self):
        resolved = [ResolvedInterval(time(9, 0), time(12, 0), ["block:1"])]
        result = IntervalMerger.subtract(resolved, [src(12, 0, 13, 0, "time_block:1")])
        assert [(r.start, r.end) for r in result] == [(time(9, 0), time(12, 0))]

    def test_multiple_blackouts_across_intervals(self):
        resolved = [
            ResolvedInterval(time(9, 0), time(12, 0), ["block:1"]),
            ResolvedInterval(time(13, 0), time(17, 0), ["block:2"]),
        ]
        result = IntervalMerger.subtract(resolved, [
            src(11, 0, 14, 0, "time_block:1"),
            src(15, 0, 15, 30, "time_block:2"),
        ])
        assert [(r.start, r.end) for r in result] == [
            (time(9, 0), time(11, 0)),
            (time(14, 0), time(15, 0)),
            (time(15, 30), time(17, 0)),
        ]

    def test_input_not_mutated(self):
        resolved = [ResolvedInterval(time(9, 0), time(12, 0), ["block:1"])]
        IntervalMerger.subtract(resolved, [src(10, 0, 11, 0, "time_block:1")])
        assert (resolved[0].start, resolved[0].end) == (time(9, 0), time(12, 0))

    def test_rejects_inverted_blackout(self):
        with pytest.raises(InvalidInterval):
            IntervalMerger.subtract([], [src(12, 0, 11, 0, "time_block:1")])


class TestOverlaps:
    """Test the half-open overlap check."""

    def test_overlap_cases(self):
        assert IntervalMerger.overlaps(time(9, 0), time(10, 0), time(9, 30), time(10, 30))
        assert IntervalMerger.overlaps(time(9, 0), time(12, 0), time(10, 0), time(11, 0))
        assert not IntervalMerger.overlaps(time(9, 0), time(10, 0), time(10, 0), time(11, 0))
        assert not IntervalMerger.overlaps(time(9, 0), time(10, 0), time(11, 0), time(12, 0))
