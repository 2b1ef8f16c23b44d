from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import Booking


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateBookingRequest(CamelModel):
    # venue-specific form fields (eventName, numAttendees, ...) may be sent
    # flat next to these; they are folded into attributes
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    resource_id: str
    requester_email: str | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    check_in_date: str | None = None
    check_out_date: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    def time_range(self) -> dict:
        return {
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "checkInDate": self.check_in_date,
            "checkOutDate": self.check_out_date,
        }

    def all_attributes(self) -> dict:
        merged = dict(self.model_extra or {})
        merged.update(self.attributes)
        return merged


class CreateBookingResponse(CamelModel):
    booking_id: str
    status: str


class AvailabilityResponse(CamelModel):
    available: bool


class DecisionRequest(CamelModel):
    status: str
    admin_notes: str | None = None


class Decision(CamelModel):
    by: str
    at: datetime


class BookingResponse(CamelModel):
    booking_id: str
    resource_id: str
    requester_email: str
    status: str
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    check_in_date: str | None = None
    check_out_date: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    admin_notes: str | None = None
    decision: Decision | None = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        when = booking.describe_range()
        decision = None
        if booking.decided_by and booking.decided_at:
            decision = Decision(by=booking.decided_by, at=booking.decided_at)
        return cls(
            booking_id=booking.booking_id,
            resource_id=booking.resource_id,
            requester_email=booking.requester_email,
            status=booking.status,
            date=when.get("date"),
            start_time=when.get("startTime"),
            end_time=when.get("endTime"),
            check_in_date=when.get("checkInDate"),
            check_out_date=when.get("checkOutDate"),
            attributes=booking.attributes or {},
            admin_notes=booking.admin_notes,
            decision=decision,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            cancelled_at=booking.cancelled_at,
        )


class BookingListResponse(CamelModel):
    bookings: list[BookingResponse]


class StatisticsResponse(CamelModel):
    total: int
    by_status: dict[str, int]
    by_resource: dict[str, dict[str, int]] | None = None
    pending_approvals: int | None = None
