"""
Venue catalog and boundary validation.

Hourly venues are booked as ``date + [start, end)``; the delegate residence is
booked as ``[check_in, check_out)`` with day granularity. The catalog decides
which shape applies, so a request never carries both.
"""
import re
from dataclasses import dataclass
from datetime import date, time

from .config import CAMPUS_EMAIL_DOMAIN
from .exceptions import ValidationError

HOURLY = "hourly"
SPAN = "span"

GUESTS_PER_ROOM = 2

_CLOCK_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


@dataclass(frozen=True)
class Resource:
    resource_id: str
    label: str
    kind: str
    capacity: int | None = None
    required: tuple[str, ...] = ()


RESOURCES = {
    r.resource_id: r
    for r in (
        Resource("alumni", "Alumni Hall", HOURLY, 60, ("eventName",)),
        Resource("assembly", "Assembly Hall", HOURLY, 300, ("eventName",)),
        Resource("auditorium", "Auditorium", HOURLY, 500, ("eventName",)),
        Resource("library", "Library Seminar Hall", HOURLY, 50, ("eventName",)),
        Resource("techpark", "Tech Park", HOURLY, 100, ("purpose",)),
        Resource(
            "delegate",
            "Delegate Residence",
            SPAN,
            None,
            ("guestName", "guestDesignation", "organization", "purpose"),
        ),
    )
}


@dataclass(frozen=True)
class HourlyRange:
    day: date
    start: time
    end: time

    def describe(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "startTime": self.start.strftime("%H:%M"),
            "endTime": self.end.strftime("%H:%M"),
        }


@dataclass(frozen=True)
class StayRange:
    check_in: date
    check_out: date

    def describe(self) -> dict:
        return {
            "checkInDate": self.check_in.isoformat(),
            "checkOutDate": self.check_out.isoformat(),
        }


def get_resource(resource_id: str) -> Resource:
    resource = RESOURCES.get((resource_id or "").strip().lower())
    if not resource:
        raise ValidationError(
            f"Unknown resource: {resource_id}. Allowed: {sorted(RESOURCES)}"
        )
    return resource


def parse_clock(value) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    m = _CLOCK_RE.match(str(value or "").strip())
    if not m:
        raise ValidationError(f"Invalid time format (HH:MM): {value}")
    return time(int(m.group(1)), int(m.group(2)))


def parse_day(value, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip())
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value}")


def build_hourly_range(day, start, end, today: date | None = None) -> HourlyRange:
    rng = HourlyRange(parse_day(day), parse_clock(start), parse_clock(end))
    if rng.start >= rng.end:
        raise ValidationError("startTime must be before endTime")
    if today and rng.day < today:
        raise ValidationError("date cannot be in the past")
    return rng


def build_stay_range(check_in, check_out, today: date | None = None) -> StayRange:
    rng = StayRange(parse_day(check_in, "checkInDate"), parse_day(check_out, "checkOutDate"))
    if rng.check_out <= rng.check_in:
        raise ValidationError("checkOutDate must be after checkInDate")
    if today and rng.check_in < today:
        raise ValidationError("checkInDate cannot be in the past")
    return rng


def build_range(resource: Resource, payload: dict, today: date | None = None):
    if resource.kind == SPAN:
        if not payload.get("checkInDate") or not payload.get("checkOutDate"):
            raise ValidationError(f"{resource.resource_id} bookings need checkInDate and checkOutDate")
        return build_stay_range(payload["checkInDate"], payload["checkOutDate"], today)

    if not payload.get("date") or not payload.get("startTime") or not payload.get("endTime"):
        raise ValidationError(f"{resource.resource_id} bookings need date, startTime and endTime")
    return build_hourly_range(payload["date"], payload["startTime"], payload["endTime"], today)


def _positive_int(attributes: dict, key: str) -> int:
    try:
        value = int(attributes.get(key))
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a whole number")
    if value < 1:
        raise ValidationError(f"{key} must be at least 1")
    return value


def validate_attributes(resource: Resource, attributes: dict | None) -> dict:
    attrs = dict(attributes or {})

    missing = [k for k in resource.required if not str(attrs.get(k) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields for {resource.label}: {', '.join(missing)}")

    if resource.kind == SPAN:
        rooms = _positive_int(attrs, "numRooms")
        guests = _positive_int(attrs, "numGuests")
        if guests > rooms * GUESTS_PER_ROOM:
            raise ValidationError(f"Maximum {GUESTS_PER_ROOM} guests per room allowed")
        attrs["numRooms"], attrs["numGuests"] = rooms, guests
        return attrs

    attendees = _positive_int(attrs, "numAttendees")
    if attendees > resource.capacity:
        raise ValidationError(
            f"Number of attendees must be between 1 and {resource.capacity}"
        )
    attrs["numAttendees"] = attendees
    return attrs


def validate_requester_email(email: str) -> str:
    normalized = (email or "").strip().lower()
    local, _, domain = normalized.partition("@")
    if not local or domain != CAMPUS_EMAIL_DOMAIN:
        raise ValidationError(f"Email must be a valid {CAMPUS_EMAIL_DOMAIN} address")
    return normalized
