from dataclasses import dataclass

from .exceptions import Forbidden
from .models import Booking, BookingStatus


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity layer."""

    email: str
    is_admin: bool = False


def is_owner(actor: Actor, booking: Booking) -> bool:
    return actor.email.lower() == (booking.requester_email or "").lower()


def can_transition(actor: Actor, booking: Booking, target_status: str) -> bool:
    if actor.is_admin:
        return True
    # faculty may only withdraw their own requests; whether the move is legal
    # from the current status is the state machine's call
    return target_status == BookingStatus.CANCELLED and is_owner(actor, booking)


def can_view(actor: Actor, booking: Booking) -> bool:
    return actor.is_admin or is_owner(actor, booking)


def require_transition(actor: Actor, booking: Booking, target_status: str) -> None:
    if not can_transition(actor, booking, target_status):
        raise Forbidden(f"Not authorized to move this booking to {target_status}")


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise Forbidden(f"Admin access required to {action}")


def require_self_or_admin(actor: Actor, email: str, action: str) -> None:
    if not actor.is_admin and actor.email.lower() != (email or "").lower():
        raise Forbidden(f"Not authorized to {action} for {email}")
