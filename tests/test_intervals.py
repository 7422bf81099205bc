"""
Tests for half-open time ranges and slot iteration.
"""

from datetime import date, datetime, time

import pytest

from salon_booking.services.scheduling.intervals import (
    TimeRange,
    day_bounds,
    iter_slots,
    overlaps,
    parse_clock,
)


class TestOverlap:
    def test_touching_ranges_do_not_overlap(self):
        """An appointment ending at 11:00 does not clash with one starting at 11:00"""
        first = TimeRange(datetime(2026, 11, 3, 10), datetime(2026, 11, 3, 11))
        second = TimeRange(datetime(2026, 11, 3, 11), datetime(2026, 11, 3, 12))
        assert not first.overlaps(second)
        assert not second.overlaps(first)

    def test_partial_overlap(self):
        assert overlaps(
            datetime(2026, 11, 3, 10), datetime(2026, 11, 3, 11),
            datetime(2026, 11, 3, 10, 30), datetime(2026, 11, 3, 11, 30),
        )

    def test_containment_overlaps(self):
        outer = TimeRange(datetime(2026, 11, 3, 9), datetime(2026, 11, 3, 17))
        inner = TimeRange(datetime(2026, 11, 3, 12), datetime(2026, 11, 3, 13))
        assert outer.overlaps(inner)
        assert inner.overlaps(outer)

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValueError):
            TimeRange(datetime(2026, 11, 3, 11), datetime(2026, 11, 3, 10))


class TestHelpers:
    def test_from_duration_and_minutes(self):
        slot = TimeRange.from_duration(datetime(2026, 11, 3, 10), 150)
        assert slot.end == datetime(2026, 11, 3, 12, 30)
        assert slot.minutes == 150

    def test_day_bounds(self):
        start, end = day_bounds(date(2026, 11, 3))
        assert start == datetime(2026, 11, 3, 0, 0)
        assert end == datetime(2026, 11, 4, 0, 0)

    def test_parse_clock_accepts_seconds(self):
        assert parse_clock("09:00") == time(9, 0)
        assert parse_clock(" 18:30:00 ") == time(18, 30)

    def test_iter_slots_only_yields_slots_that_fit(self):
        slots = list(
            iter_slots(datetime(2026, 11, 3, 9), datetime(2026, 11, 3, 11), 30, 60)
        )
        assert [s.start.strftime("%H:%M") for s in slots] == ["09:00", "09:30", "10:00"]
        assert slots[-1].end == datetime(2026, 11, 3, 11)
