"""
Interval merging for single-day availability.

Pure functions - no database access. All intervals are half-open
``[start, end)`` wall-clock ranges on one calendar date in one zone.
"""

import logging
from datetime import time
from typing import Iterable, List, Sequence, Tuple, Union

from core.exceptions import InvalidInterval
from shared_types.availability import ResolvedInterval, SourceInterval

logger = logging.getLogger(__name__)

MergeInput = Union[SourceInterval, ResolvedInterval]


class IntervalMerger:
    """
    Merges labeled intervals into maximal contiguous blocks and subtracts
    blackout periods from them, keeping provenance throughout.
    """

    @staticmethod
    def validate(start: time, end: time, label: str = "interval") -> None:
        """
        Reject zero-length and inverted intervals.

        Raises:
            InvalidInterval: If end <= start
        """
        if end <= start:
            raise InvalidInterval(
                f"Invalid {label}: end {end.isoformat()} must be after start {start.isoformat()}",
                field=label,
            )

    @staticmethod
    def overlaps(start1: time, end1: time, start2: time, end2: time) -> bool:
        """Check if two half-open intervals overlap (touching does not count)."""
        return start1 < end2 and start2 < end1

    @staticmethod
    def _parts(item: MergeInput) -> Tuple[time, time, Tuple[str, ...]]:
        if isinstance(item, ResolvedInterval):
            return item.start, item.end, tuple(item.source_ids)
        return item.start, item.end, (item.source_id,)

    @staticmethod
    def merge(intervals: Iterable[MergeInput]) -> List[ResolvedInterval]:
        """
        Merge overlapping or touching intervals.

        Inputs are sorted by start, then end, then id. A running block absorbs
        the next interval whenever that interval starts at or before the
        running end, so [09:00, 10:00) and [10:00, 11:00) become one block.

        Accepts already-merged ResolvedIntervals, so merging is idempotent.

        Args:
            intervals: SourceIntervals and/or ResolvedIntervals for one date

        Returns:
            ResolvedIntervals ordered by start, each listing the ids of every
            input it absorbed

        Raises:
            InvalidInterval: If any input has end <= start
        """
        parts = [IntervalMerger._parts(item) for item in intervals]
        for start, end, ids in parts:
            IntervalMerger.validate(start, end, label="interval " + ",".join(ids))

        parts.sort(key=lambda p: (p[0], p[1], p[2]))

        merged: List[ResolvedInterval] = []
        current: ResolvedInterval | None = None
        for start, end, ids in parts:
            if current is not None and start <= current.end:
                if end > current.end:
                    current.end = end
                for source_id in ids:
                    if source_id not in current.source_ids:
                        current.source_ids.append(source_id)
                continue

            current = ResolvedInterval(start=start, end=end, source_ids=list(dict.fromkeys(ids)))
            merged.append(current)

        return merged

    @staticmethod
    def subtract(
        resolved: Sequence[ResolvedInterval],
        blackouts: Iterable[SourceInterval]
    ) -> List[ResolvedInterval]:
        """
        Remove blackout time from resolved intervals.

        Strict interval difference: a blackout inside an interval splits it in
        two, one overlapping an edge shrinks it, one covering it removes it.
        Remnants keep the provenance of the interval they came from.

        Raises:
            InvalidInterval: If any blackout has end <= start
        """
        blackout_list = sorted(blackouts, key=lambda b: (b.start, b.end, b.source_id))
        for blackout in blackout_list:
            IntervalMerger.validate(blackout.start, blackout.end, label=f"time block {blackout.source_id}")

        remaining = [
            ResolvedInterval(start=r.start, end=r.end, source_ids=list(r.source_ids))
            for r in resolved
        ]
        for blackout in blackout_list:
            next_remaining: List[ResolvedInterval] = []
            for interval in remaining:
                if not IntervalMerger.overlaps(interval.start, interval.end, blackout.start, blackout.end):
                    next_remaining.append(interval)
                    continue

                if interval.start < blackout.start:
                    next_remaining.append(ResolvedInterval(
                        start=interval.start, end=blackout.start, source_ids=list(interval.source_ids)
                    ))
                if blackout.end < interval.end:
                    next_remaining.append(ResolvedInterval(
                        start=blackout.end, end=interval.end, source_ids=list(interval.source_ids)
                    ))
            remaining = next_remaining

        remaining.sort(key=lambda r: (r.start, r.end))
        return remaining

    @staticmethod
    def total_minutes(intervals: Iterable[ResolvedInterval]) -> int:
        """Sum of interval durations in minutes."""
        return sum(interval.duration_minutes for interval in intervals)
