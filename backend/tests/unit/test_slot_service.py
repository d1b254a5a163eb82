"""
Unit tests for slot generation.

Uses a fixed reference instant (``now``) or a patched ``utc_now`` so
booking-window checks are deterministic.
"""

import pytest
from datetime import date, datetime, time, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

from core.exceptions import InvalidTimeZone, NotFoundError
from services.slot_service import SlotService
from shared_types.availability import AvailabilityConfig, ResolvedInterval
from tests.conftest import (
    create_appointment, create_clinician, create_settings, create_time_block, create_weekly_block
)

CHICAGO = ZoneInfo("America/Chicago")
MONDAY = date(2025, 6, 9)
TUESDAY = date(2025, 6, 10)
# Monday noon in Chicago; Tuesday is one day ahead
MONDAY_NOON = datetime(2025, 6, 9, 12, 0, tzinfo=CHICAGO)


def local_starts(slots):
    return [slot.local_start for slot in slots]


class TestSliceIntervals:
    """Test fixed-width slicing."""

    def test_slices_from_interval_start(self):
        slots = SlotService.slice_intervals([ResolvedInterval(time(9, 0), time(11, 0), [])], 30)
        assert slots == [(540, 570), (570, 600), (600, 630), (630, 660)]

    def test_trailing_partial_slot_is_dropped(self):
        slots = SlotService.slice_intervals([ResolvedInterval(time(9, 0), time(10, 45), [])], 30)
        assert slots == [(540, 570), (570, 600), (600, 630)]

    def test_interval_shorter_than_granularity(self):
        assert SlotService.slice_intervals([ResolvedInterval(time(9, 0), time(9, 45), [])], 60) == []

    def test_off_grid_start_is_kept(self):
        slots = SlotService.slice_intervals([ResolvedInterval(time(9, 10), time(10, 10), [])], 30)
        assert slots == [(550, 580), (580, 610)]

    def test_seconds_round_inward(self):
        """A start at 09:00:30 begins slicing at 09:01; an end at 10:00:45 counts as 10:00."""
        assert SlotService.slice_intervals([ResolvedInterval(time(9, 0, 30), time(10, 0), [])], 30) == [(541, 571)]
        assert SlotService.slice_intervals([ResolvedInterval(time(9, 0), time(10, 0, 45), [])], 30) == [(540, 570), (570, 600)]

    def test_minute_range_rounds_outward(self):
        assert SlotService.minute_range(time(9, 0, 30), time(9, 30, 30)) == (540, 571)
        assert SlotService.minute_range(time(9, 0), time(9, 30)) == (540, 570)


class TestBookingWindow:
    """Test the date-level booking window."""

    @pytest.mark.parametrize("days_ahead,expected", [(-1, False), (0, False), (1, True), (30, True), (31, False)])
    def test_default_window(self, days_ahead, expected):
        today = date(2025, 6, 9)
        requested = date.fromordinal(today.toordinal() + days_ahead)
        assert SlotService.is_within_booking_window(requested, today, AvailabilityConfig.defaults()) is expected

    def test_zero_notice_allows_today(self):
        config = AvailabilityConfig(min_notice_days=0)
        assert SlotService.is_within_booking_window(date(2025, 6, 9), date(2025, 6, 9), config) is True


class TestGenerateSlots:
    """Test SlotService.generate_slots against the database."""

    def test_appointment_marks_only_overlapping_slot(self, db_session):
        """9:00-11:00 at 30 minutes with an appointment 9:30-10:00."""
        clinician = create_clinician(db_session)
        create_settings(db_session, clinician, time_granularity=30)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(11, 0))
        create_appointment(db_session, clinician, TUESDAY, time(9, 30), time(10, 0))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "America/Chicago", now=MONDAY_NOON)

        assert local_starts(slots) == [time(9, 0), time(9, 30), time(10, 0), time(10, 30)]
        assert [slot.available for slot in slots] == [True, False, True, True]

    def test_partial_overlap_marks_slot_unavailable(self, db_session):
        clinician = create_clinician(db_session)
        create_settings(db_session, clinician, time_granularity=60)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(12, 0))
        create_appointment(db_session, clinician, TUESDAY, time(10, 30), time(10, 45))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "America/Chicago", now=MONDAY_NOON)

        assert [slot.available for slot in slots] == [True, False, True]

    def test_cancelled_appointments_do_not_block(self, db_session):
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(10, 0))
        create_appointment(db_session, clinician, TUESDAY, time(9, 0), time(10, 0), status="cancelled")

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "America/Chicago", now=MONDAY_NOON)

        assert [slot.available for slot in slots] == [True]

    def test_utc_and_client_display(self, db_session):
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(10, 0))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "America/New_York", now=MONDAY_NOON)

        assert len(slots) == 1
        assert slots[0].start_utc == datetime(2025, 6, 10, 14, 0, tzinfo=timezone.utc)
        assert slots[0].end_utc == datetime(2025, 6, 10, 15, 0, tzinfo=timezone.utc)
        assert slots[0].start_local_display == "2025-06-10 10:00"
        assert slots[0].end_local_display == "2025-06-10 11:00"

    def test_client_display_can_cross_midnight(self, db_session):
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 1, time(20, 0), time(21, 0))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "Asia/Tokyo", now=MONDAY_NOON)

        assert slots[0].start_local_display == "2025-06-11 10:00"

    def test_time_blocks_remove_slots(self, db_session):
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(12, 0))
        create_time_block(db_session, clinician, TUESDAY, time(10, 0), time(11, 0))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON)

        assert local_starts(slots) == [time(9, 0), time(11, 0)]

    def test_time_block_ending_mid_minute(self, db_session):
        """A blackout until 09:30:30 leaves nothing bookable before 09:31."""
        clinician = create_clinician(db_session)
        create_settings(db_session, clinician, time_granularity=30)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(11, 0))
        create_time_block(db_session, clinician, TUESDAY, time(9, 0), time(9, 30, 30))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON)

        assert local_starts(slots) == [time(9, 31), time(10, 1)]
        assert all(slot.local_start >= time(9, 30, 30) for slot in slots)

    def test_block_starting_mid_minute(self, db_session):
        clinician = create_clinician(db_session)
        create_settings(db_session, clinician, time_granularity=30)
        create_weekly_block(db_session, clinician, 1, time(9, 0, 30), time(10, 0))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON)

        assert [(slot.local_start, slot.local_end) for slot in slots] == [(time(9, 1), time(9, 31))]

    def test_appointment_ending_mid_minute_blocks_next_slot(self, db_session):
        clinician = create_clinician(db_session)
        create_settings(db_session, clinician, time_granularity=30)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(10, 0))
        create_appointment(db_session, clinician, TUESDAY, time(9, 0), time(9, 30, 30))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON)

        assert [slot.available for slot in slots] == [False, False]

    def test_output_sorted_across_intervals(self, db_session):
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 1, time(14, 0), time(16, 0))
        create_weekly_block(db_session, clinician, 1, time(8, 0), time(9, 0))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON)

        assert local_starts(slots) == [time(8, 0), time(14, 0), time(15, 0)]
        assert [s.start_utc for s in slots] == sorted(s.start_utc for s in slots)

    def test_empty_day(self, db_session):
        clinician = create_clinician(db_session)
        assert SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON) == []

    def test_buffer_widens_appointments(self, db_session):
        clinician = create_clinician(db_session)
        create_settings(db_session, clinician, time_granularity=30, buffer_minutes=15)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(12, 0))
        create_appointment(db_session, clinician, TUESDAY, time(10, 0), time(10, 30))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON)

        available = {slot.local_start: slot.available for slot in slots}
        assert available == {
            time(9, 0): True,
            time(9, 30): False,
            time(10, 0): False,
            time(10, 30): False,
            time(11, 0): True,
            time(11, 30): True,
        }

    def test_min_notice_hours(self, db_session):
        """Slots starting less than 24 hours after Monday noon are unavailable."""
        clinician = create_clinician(db_session)
        create_settings(db_session, clinician, min_notice_hours=24)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(14, 0))

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC", now=MONDAY_NOON)

        assert [slot.available for slot in slots] == [False, False, False, True, True]

    def test_dst_gap_slot_starts_are_skipped(self, db_session):
        """On 2025-03-09 in Chicago, 02:00-03:00 does not exist."""
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 6, time(1, 0), time(4, 0))
        now = datetime(2025, 3, 8, 0, 0, tzinfo=CHICAGO)

        slots = SlotService.generate_slots(db_session, clinician.id, date(2025, 3, 9), "UTC", now=now)

        assert local_starts(slots) == [time(1, 0), time(3, 0)]
        assert slots[1].start_utc == datetime(2025, 3, 9, 8, 0, tzinfo=timezone.utc)

    def test_slot_ending_in_dst_gap_keeps_its_length(self, db_session):
        """01:00 CST plus one hour is 03:00 CDT."""
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 6, time(1, 0), time(4, 0))
        now = datetime(2025, 3, 8, 0, 0, tzinfo=CHICAGO)

        slots = SlotService.generate_slots(db_session, clinician.id, date(2025, 3, 9), "UTC", now=now)

        assert slots[0].start_utc == datetime(2025, 3, 9, 7, 0, tzinfo=timezone.utc)
        assert slots[0].end_utc == datetime(2025, 3, 9, 8, 0, tzinfo=timezone.utc)
        assert slots[0].local_end == time(3, 0)
        assert slots[0].end_utc == slots[1].start_utc

    def test_unknown_client_zone(self, db_session):
        clinician = create_clinician(db_session)
        with pytest.raises(InvalidTimeZone):
            SlotService.generate_slots(db_session, clinician.id, TUESDAY, "Atlantis/Capital", now=MONDAY_NOON)

    def test_unknown_clinician(self, db_session):
        with pytest.raises(NotFoundError):
            SlotService.generate_slots(db_session, 999999, TUESDAY, "UTC", now=MONDAY_NOON)


class TestWindowEnforcement:
    """Test the booking window against the clinician's today."""

    def test_today_is_empty_and_tomorrow_is_normal(self, db_session):
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 0, time(9, 0), time(17, 0))
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(17, 0))
        # Monday 08:00 in Chicago
        fixed_now = datetime(2025, 6, 9, 13, 0, tzinfo=timezone.utc)

        with patch("utils.datetime_utils.utc_now", return_value=fixed_now):
            today_slots = SlotService.generate_slots(db_session, clinician.id, MONDAY, "UTC")
            tomorrow_slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "UTC")

        assert today_slots == []
        assert len(tomorrow_slots) == 8
        assert all(slot.available for slot in tomorrow_slots)

    def test_past_and_far_future_dates(self, db_session):
        clinician = create_clinician(db_session)
        for day in range(7):
            create_weekly_block(db_session, clinician, day, time(9, 0), time(10, 0))

        assert SlotService.generate_slots(db_session, clinician.id, date(2025, 6, 1), "UTC", now=MONDAY_NOON) == []
        assert SlotService.generate_slots(db_session, clinician.id, date(2025, 7, 9), "UTC", now=MONDAY_NOON) != []
        assert SlotService.generate_slots(db_session, clinician.id, date(2025, 7, 10), "UTC", now=MONDAY_NOON) == []

    def test_today_uses_clinician_zone_not_client_zone(self, db_session):
        """At 23:30 Monday in Chicago it is already Tuesday in Tokyo, but Tuesday is still bookable."""
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(10, 0))
        now = datetime(2025, 6, 9, 23, 30, tzinfo=CHICAGO)

        slots = SlotService.generate_slots(db_session, clinician.id, TUESDAY, "Asia/Tokyo", now=now)

        assert len(slots) == 1

    def test_range(self, db_session):
        clinician = create_clinician(db_session)
        create_weekly_block(db_session, clinician, 1, time(9, 0), time(10, 0))

        result = SlotService.generate_slots_for_range(db_session, clinician.id, MONDAY, "2025-06-11", "UTC", now=MONDAY_NOON)

        assert list(result.keys()) == [MONDAY, TUESDAY, date(2025, 6, 11)]
        assert result[MONDAY] == []
        assert len(result[TUESDAY]) == 1
