"""
Booking lifecycle service.

Request flow for a new booking:

    validate -> lock(resource, day) -> load active bookings -> conflict check
             -> insert pending -> unlock -> notify observers / publish event

Status changes hold the per-booking lock and still write through a
compare-and-set, so a second worker racing on the same booking gets
``Conflict`` rather than a lost update. Side effects after the commit
(observer hints, domain events, decision email) are best-effort and never
undo the commit.
"""
from datetime import datetime, timezone

from . import conflicts, lifecycle, rbac
from .config import DB_TIMEOUT_SECONDS
from .events import build_event, booking_payload, to_json
from .exceptions import ValidationError, SlotUnavailable, Forbidden
from .locks import SlotLocks, slot_key, booking_key
from .logging_config import get_logger
from .models import Booking, BookingStatus
from .notifier import ChangeNotifier
from .rbac import Actor
from .resources import (
    HourlyRange,
    StayRange,
    get_resource,
    build_range,
    validate_attributes,
    validate_requester_email,
)
from .store import BookingStore

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def booking_range(booking: Booking) -> HourlyRange | StayRange:
    if booking.is_span:
        return StayRange(booking.check_in_date, booking.check_out_date)
    return HourlyRange(booking.booking_date, booking.start_time, booking.end_time)


class BookingService:
    def __init__(
        self,
        sessions,
        notifier: ChangeNotifier | None = None,
        locks=None,
        publisher=None,
        mailer=None,
        clock=utcnow,
        db_timeout: float = DB_TIMEOUT_SECONDS,
    ):
        self.sessions = sessions
        self.notifier = notifier or ChangeNotifier()
        self.locks = locks or SlotLocks()
        self.publisher = publisher
        self.mailer = mailer
        self.clock = clock
        self.db_timeout = db_timeout

    def _store(self, db) -> BookingStore:
        return BookingStore(db, timeout=self.db_timeout)

    # ---------------- reads ----------------

    async def check_availability(self, resource_id: str, time_range: dict) -> conflicts.Availability:
        resource = get_resource(resource_id)
        candidate = build_range(resource, time_range)

        async with self.sessions() as db:
            store = self._store(db)
            if isinstance(candidate, StayRange):
                hit = await store.find_active_stay_overlap(
                    resource.resource_id, candidate.check_in, candidate.check_out
                )
            else:
                hit = await store.find_active_overlap(
                    resource.resource_id, candidate.day, candidate.start, candidate.end
                )
        return conflicts.Availability(available=hit is None, conflicting=hit)

    async def get_booking(self, booking_id: str, actor: Actor) -> Booking:
        async with self.sessions() as db:
            booking = await self._store(db).find_by_id(booking_id)
        if not rbac.can_view(actor, booking):
            raise Forbidden("Not authorized to view this booking")
        return booking

    async def list_mine(self, actor: Actor) -> list[Booking]:
        async with self.sessions() as db:
            return await self._store(db).find_by_requester(actor.email)

    async def list_all(self, actor: Actor, status: str | None = None, resource_id: str | None = None) -> list[Booking]:
        rbac.require_admin(actor, "list all bookings")
        if status and status not in BookingStatus.ALL:
            raise ValidationError(f"Invalid status: {status}")
        if resource_id:
            resource_id = get_resource(resource_id).resource_id
        async with self.sessions() as db:
            return await self._store(db).find_all(status=status, resource_id=resource_id)

    async def statistics(self, actor: Actor) -> dict:
        async with self.sessions() as db:
            store = self._store(db)
            if not actor.is_admin:
                by_status = await store.count_by_status(requester_email=actor.email)
                return {
                    "total": sum(n for s, n in by_status.items() if s != BookingStatus.CANCELLED),
                    "byStatus": {s: by_status.get(s, 0) for s in BookingStatus.ALL},
                }

            by_status = await store.count_by_status()
            by_resource = await store.count_by_resource()
        return {
            "total": sum(by_status.values()),
            "byStatus": {s: by_status.get(s, 0) for s in BookingStatus.ALL},
            "byResource": by_resource,
            "pendingApprovals": by_status.get(BookingStatus.PENDING, 0),
        }

    # ---------------- creation ----------------

    async def create_booking(
        self,
        actor: Actor,
        resource_id: str,
        time_range: dict,
        requester_email: str | None = None,
        attributes: dict | None = None,
    ) -> Booking:
        resource = get_resource(resource_id)
        email = validate_requester_email(requester_email or actor.email)
        rbac.require_self_or_admin(actor, email, "create a booking")

        now = self.clock()
        candidate = build_range(resource, time_range, today=now.date())
        attrs = validate_attributes(resource, attributes)

        async with self.locks.hold(*slot_key(resource.resource_id, candidate)):
            async with self.sessions() as db:
                store = self._store(db)
                active = await store.find_active(resource.resource_id, candidate)
                try:
                    conflicts.ensure_available(candidate, active)
                except SlotUnavailable as e:
                    logger.info(
                        "booking_slot_unavailable",
                        resource_id=resource.resource_id,
                        requester=email,
                        conflicting=e.extra.get("conflictingBooking"),
                    )
                    raise

                booking = Booking(
                    resource_id=resource.resource_id,
                    requester_email=email,
                    attributes=attrs,
                )
                if isinstance(candidate, StayRange):
                    booking.check_in_date = candidate.check_in
                    booking.check_out_date = candidate.check_out
                else:
                    booking.booking_date = candidate.day
                    booking.start_time = candidate.start
                    booking.end_time = candidate.end

                booking = await store.insert(booking, now)

        logger.info(
            "booking_created",
            booking_id=booking.booking_id,
            resource_id=booking.resource_id,
            requester=email,
            **booking.describe_range(),
        )
        await self._announce("created", booking)
        return booking

    # ---------------- transitions ----------------

    async def decide(self, booking_id: str, actor: Actor, target_status: str, notes: str | None = None) -> Booking:
        if target_status not in lifecycle.DECISIONS:
            raise ValidationError(f"Decision must be one of {list(lifecycle.DECISIONS)}")
        rbac.require_admin(actor, f"mark bookings {target_status}")

        def fields(booking, now):
            return {
                "admin_notes": notes,
                "decided_by": actor.email,
                "decided_at": now,
                "updated_at": now,
            }

        booking = await self._transition(booking_id, actor, target_status, fields)

        if self.mailer is not None:
            try:
                await self.mailer.send_decision_email(booking.requester_email, booking, target_status, notes)
            except Exception as e:
                logger.error("decision_email_failed", booking_id=booking_id, error=str(e))
        return booking

    async def cancel(self, booking_id: str, actor: Actor) -> Booking:
        def fields(booking, now):
            return {"cancelled_at": now, "updated_at": now}

        return await self._transition(booking_id, actor, BookingStatus.CANCELLED, fields)

    async def rollback(self, booking_id: str, actor: Actor) -> Booking:
        rbac.require_admin(actor, "roll back bookings")

        def fields(booking, now):
            return {"cancelled_at": None, "updated_at": now}

        return await self._transition(booking_id, actor, BookingStatus.PENDING, fields, recheck_slot=True)

    async def _transition(self, booking_id: str, actor: Actor, target: str, fields, recheck_slot: bool = False) -> Booking:
        async with self.locks.hold(*booking_key(booking_id)):
            async with self.sessions() as db:
                store = self._store(db)
                booking = await store.find_by_id(booking_id)

                # policy before state: a stranger learns nothing about the booking's status
                rbac.require_transition(actor, booking, target)
                action = lifecycle.ensure_transition(booking.status, target)
                expected = booking.status
                now = self.clock()

                if recheck_slot:
                    # the released slot may have been taken while this booking sat cancelled
                    candidate = booking_range(booking)
                    async with self.locks.hold(*slot_key(booking.resource_id, candidate)):
                        active = await store.find_active(booking.resource_id, candidate)
                        conflicts.ensure_available(candidate, [b for b in active if b.booking_id != booking_id])
                        updated = await store.update_status(booking_id, expected, target, **fields(booking, now))
                else:
                    updated = await store.update_status(booking_id, expected, target, **fields(booking, now))

        logger.info(
            "booking_transitioned",
            booking_id=booking_id,
            action=action,
            from_status=expected,
            to_status=target,
            actor=actor.email,
        )
        await self._announce(action, updated)
        return updated

    # ---------------- side effects ----------------

    async def _announce(self, action: str, booking: Booking) -> None:
        reason = {
            "approve": "approved",
            "reject": "rejected",
            "cancel": "cancelled",
            "rollback": "rolled-back",
        }.get(action, action)

        try:
            self.notifier.notify(reason, booking.booking_id, status=booking.status)
        except Exception as e:
            logger.warning("notifier_failed", booking_id=booking.booking_id, error=str(e))

        if self.publisher is None:
            return
        routing_key = f"booking.{reason.replace('-', '_')}"
        try:
            await self.publisher.publish(routing_key, to_json(build_event(routing_key, booking_payload(booking))))
        except Exception as e:
            logger.warning("domain_event_failed", booking_id=booking.booking_id, routing_key=routing_key, error=str(e))
