from sqlalchemy import Column, Integer, String, Date, Time, DateTime, Text, JSON, Index
from .db import Base


class BookingStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    ALL = (PENDING, APPROVED, REJECTED, CANCELLED)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_slot", "resource_id", "booking_date", "status"),
        Index("ix_bookings_span", "resource_id", "check_in_date", "check_out_date"),
    )

    id = Column(Integer, primary_key=True)
    booking_id = Column(String, unique=True, nullable=False, index=True)

    resource_id = Column(String, nullable=False)
    requester_email = Column(String, nullable=False, index=True)

    # hourly venues
    booking_date = Column(Date, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)

    # delegate residence
    check_in_date = Column(Date, nullable=True)
    check_out_date = Column(Date, nullable=True)

    status = Column(String, nullable=False, index=True)  # pending/approved/rejected/cancelled
    attributes = Column(JSON, nullable=False, default=dict)

    admin_notes = Column(Text, nullable=True)
    decided_by = Column(String, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_span(self) -> bool:
        return self.check_in_date is not None

    def describe_range(self) -> dict:
        if self.is_span:
            return {
                "checkInDate": self.check_in_date.isoformat(),
                "checkOutDate": self.check_out_date.isoformat(),
            }
        return {
            "date": self.booking_date.isoformat(),
            "startTime": self.start_time.strftime("%H:%M"),
            "endTime": self.end_time.strftime("%H:%M"),
        }
