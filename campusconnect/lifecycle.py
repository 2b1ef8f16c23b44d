"""
Booking status state machine.

    pending --approve--> approved
    pending --reject---> rejected
    pending --cancel---> cancelled
    cancelled --rollback--> pending

approved and rejected are terminal; nothing else is reachable.
"""
from .exceptions import InvalidTransition
from .models import BookingStatus

TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.APPROVED): "approve",
    (BookingStatus.PENDING, BookingStatus.REJECTED): "reject",
    (BookingStatus.PENDING, BookingStatus.CANCELLED): "cancel",
    (BookingStatus.CANCELLED, BookingStatus.PENDING): "rollback",
}

DECISIONS = (BookingStatus.APPROVED, BookingStatus.REJECTED)


def is_legal(current: str, target: str) -> bool:
    return (current, target) in TRANSITIONS


def action_for(current: str, target: str) -> str | None:
    return TRANSITIONS.get((current, target))


def ensure_transition(current: str, target: str) -> str:
    action = action_for(current, target)
    if action is None:
        raise InvalidTransition(
            f"Cannot move a {current} booking to {target}",
            currentStatus=current,
            targetStatus=target,
        )
    return action


def allowed_targets(current: str) -> list[str]:
    return [to for (frm, to) in TRANSITIONS if frm == current]
