from .config import EMAIL_FROM
from .events import build_event, booking_payload, to_json
from .logging_config import get_logger
from .models import Booking
from .resources import RESOURCES

logger = get_logger(__name__)

ROUTING_KEY = "notification.email_requested"


def render_decision_email(to_email: str, booking: Booking, status: str, notes: str | None) -> dict:
    resource = RESOURCES.get(booking.resource_id)
    venue = resource.label if resource else booking.resource_id
    attrs = booking.attributes or {}
    when = booking.describe_range()

    if booking.is_span:
        dates = f"from {when['checkInDate']} to {when['checkOutDate']}"
        timing = f"Stay: {when['checkInDate']} - {when['checkOutDate']}"
    else:
        dates = f"on {when['date']}"
        timing = f"Time: {when['startTime']} - {when['endTime']}"

    lines = [
        "Hello,",
        "",
        f"Your booking for {venue} {dates} has been {status}.",
        "",
    ]
    if notes:
        lines += [f"Admin notes: {notes}", ""]
    lines += [
        "Booking details:",
        f"Event: {attrs.get('eventName') or attrs.get('purpose') or 'N/A'}",
        timing,
        "",
        "If you have questions, please contact the administration.",
        "",
        "Regards,",
        "Campus Connect Team",
    ]

    return {
        "from": EMAIL_FROM,
        "to": to_email,
        "subject": f"Your booking has been {status}",
        "text": "\n".join(lines),
    }


class DecisionMailer:
    """Hands decision emails to the notification pipeline over the event bus."""

    def __init__(self, publisher):
        self.publisher = publisher

    async def send_decision_email(self, to_email: str, booking: Booking, status: str, notes: str | None = None):
        message = render_decision_email(to_email, booking, status, notes)
        event = build_event(
            ROUTING_KEY,
            {"email": message, "booking": booking_payload(booking)},
        )
        try:
            await self.publisher.publish(ROUTING_KEY, to_json(event))
        except Exception as e:
            # the decision is already committed
            logger.error("decision_email_failed", booking_id=booking.booking_id, to=to_email, error=str(e))
            return False
        logger.info("decision_email_queued", booking_id=booking.booking_id, to=to_email, status=status)
        return True
