"""
Tests for the pure conflict checker.
"""
from datetime import date, time
from itertools import product

import pytest

from campusconnect.conflicts import overlaps, check, ensure_available, find_conflict
from campusconnect.exceptions import SlotUnavailable
from campusconnect.models import Booking, BookingStatus
from campusconnect.resources import HourlyRange, StayRange


def hourly_booking(start, end, status=BookingStatus.PENDING, day=date(2024, 5, 1), booking_id="b-1"):
    return Booking(
        booking_id=booking_id,
        resource_id="auditorium",
        requester_email="a@nec.edu.in",
        booking_date=day,
        start_time=start,
        end_time=end,
        status=status,
    )


def stay_booking(check_in, check_out, status=BookingStatus.APPROVED, booking_id="s-1"):
    return Booking(
        booking_id=booking_id,
        resource_id="delegate",
        requester_email="a@nec.edu.in",
        check_in_date=check_in,
        check_out_date=check_out,
        status=status,
    )


class TestOverlap:

    def test_overlap_matches_half_open_definition(self):
        """Every pair of hour ranges in a small grid obeys s1 < e2 and s2 < e1."""
        hours = range(8, 13)
        ranges = [(s, e) for s, e in product(hours, hours) if s < e]
        for (s1, e1), (s2, e2) in product(ranges, ranges):
            expected = s1 < e2 and s2 < e1
            assert overlaps(time(s1), time(e1), time(s2), time(e2)) is expected

    def test_adjacent_ranges_do_not_overlap(self):
        assert not overlaps(time(9), time(10), time(10), time(11))
        assert not overlaps(time(10), time(11), time(9), time(10))

    def test_contained_range_overlaps(self):
        assert overlaps(time(9), time(12), time(10), time(11))


class TestCheck:

    def test_free_slot_is_available(self):
        candidate = HourlyRange(date(2024, 5, 1), time(10), time(11))
        result = check(candidate, [hourly_booking(time(9), time(10))])

        assert result.available
        assert result.conflict_details() is None

    def test_pending_booking_blocks_slot(self):
        candidate = HourlyRange(date(2024, 5, 1), time(9, 30), time(10, 30))
        result = check(candidate, [hourly_booking(time(9), time(10))])

        assert not result.available
        assert result.conflict_details() == {
            "id": "b-1",
            "date": "2024-05-01",
            "startTime": "09:00",
            "endTime": "10:00",
        }

    def test_approved_booking_blocks_slot(self):
        candidate = HourlyRange(date(2024, 5, 1), time(9), time(10))
        assert not check(candidate, [hourly_booking(time(9), time(10), BookingStatus.APPROVED)]).available

    def test_cancelled_booking_never_conflicts(self):
        candidate = HourlyRange(date(2024, 5, 1), time(9), time(10))
        active = [hourly_booking(time(9), time(10), BookingStatus.CANCELLED)]

        assert check(candidate, active).available

    def test_other_day_is_ignored(self):
        candidate = HourlyRange(date(2024, 5, 2), time(9), time(10))
        assert find_conflict(candidate, [hourly_booking(time(9), time(10))]) is None

    def test_stay_ranges_use_day_granularity(self):
        existing = [stay_booking(date(2024, 5, 1), date(2024, 5, 3))]

        assert not check(StayRange(date(2024, 5, 2), date(2024, 5, 4)), existing).available
        # check-out day is free for the next arrival
        assert check(StayRange(date(2024, 5, 3), date(2024, 5, 5)), existing).available

    def test_stay_and_hourly_shapes_never_collide(self):
        candidate = StayRange(date(2024, 5, 1), date(2024, 5, 2))
        assert check(candidate, [hourly_booking(time(9), time(10))]).available

    def test_ensure_available_raises_with_conflict_details(self):
        candidate = HourlyRange(date(2024, 5, 1), time(9), time(9, 30))

        with pytest.raises(SlotUnavailable) as exc:
            ensure_available(candidate, [hourly_booking(time(9), time(10), booking_id="x-9")])

        assert exc.value.status_code == 409
        assert exc.value.to_dict()["conflictingBooking"]["id"] == "x-9"
