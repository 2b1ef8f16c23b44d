import json
import uuid
from datetime import datetime, timezone

from .models import Booking


def build_event(event_type: str, data: dict) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def booking_payload(booking: Booking) -> dict:
    return {
        "booking_id": booking.booking_id,
        "resource_id": booking.resource_id,
        "requester_email": booking.requester_email,
        "status": booking.status,
        **booking.describe_range(),
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)
