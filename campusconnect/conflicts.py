"""
Slot conflict decisions.

Everything here is pure: callers fetch the active bookings for a resource
from the store and ask whether a candidate range fits. Ranges are half-open,
so a booking ending at 10:00 never collides with one starting at 10:00.
"""
from dataclasses import dataclass

from .exceptions import SlotUnavailable
from .models import Booking, BookingStatus
from .resources import HourlyRange, StayRange


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class Availability:
    available: bool
    conflicting: Booking | None = None

    def conflict_details(self) -> dict | None:
        if self.conflicting is None:
            return None
        return {"id": self.conflicting.booking_id, **self.conflicting.describe_range()}


def collides(candidate, booking: Booking) -> bool:
    if booking.status == BookingStatus.CANCELLED:
        return False

    if isinstance(candidate, StayRange):
        if not booking.is_span:
            return False
        return overlaps(
            candidate.check_in, candidate.check_out,
            booking.check_in_date, booking.check_out_date,
        )

    if booking.is_span or booking.booking_date != candidate.day:
        return False
    return overlaps(candidate.start, candidate.end, booking.start_time, booking.end_time)


def find_conflict(candidate: HourlyRange | StayRange, active: list[Booking]) -> Booking | None:
    for booking in active:
        if collides(candidate, booking):
            return booking
    return None


def check(candidate: HourlyRange | StayRange, active: list[Booking]) -> Availability:
    conflicting = find_conflict(candidate, active)
    return Availability(available=conflicting is None, conflicting=conflicting)


def ensure_available(candidate: HourlyRange | StayRange, active: list[Booking]) -> None:
    availability = check(candidate, active)
    if not availability.available:
        raise SlotUnavailable(
            "This time slot is already booked",
            conflictingBooking=availability.conflict_details(),
        )
