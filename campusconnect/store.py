"""
Booking store backed by async SQLAlchemy.

One ``BookingStore`` wraps one ``AsyncSession``. Every write commits on its
own, and any driver failure rolls the session back before surfacing as
``PersistenceError`` so a caller never observes a half-written record.
"""
import asyncio
import uuid
from datetime import date, datetime, time

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import DB_TIMEOUT_SECONDS
from .exceptions import NotFound, Conflict, PersistenceError
from .logging_config import get_logger
from .models import Booking, BookingStatus
from .resources import HourlyRange, StayRange

logger = get_logger(__name__)

_TRANSIENT = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class BookingStore:
    def __init__(self, session: AsyncSession, timeout: float = DB_TIMEOUT_SECONDS):
        self.session = session
        self.timeout = timeout

    async def _run(self, operation: str, work):
        try:
            return await asyncio.wait_for(work(), timeout=self.timeout)
        except _TRANSIENT as e:
            try:
                await self.session.rollback()
            except _TRANSIENT:
                logger.warning("store_rollback_failed", operation=operation)
            logger.error("store_unavailable", operation=operation, error=str(e))
            raise PersistenceError(f"Booking store unavailable during {operation}") from e

    async def insert(self, booking: Booking, now: datetime) -> Booking:
        booking.booking_id = str(uuid.uuid4())
        booking.status = BookingStatus.PENDING
        booking.created_at = now
        booking.updated_at = now
        booking.cancelled_at = None

        async def work():
            self.session.add(booking)
            await self.session.commit()
            return booking

        return await self._run("insert", work)

    async def find_by_id(self, booking_id: str) -> Booking:
        async def work():
            res = await self.session.execute(
                select(Booking)
                .where(Booking.booking_id == booking_id)
                .execution_options(populate_existing=True)
            )
            return res.scalar_one_or_none()

        booking = await self._run("find_by_id", work)
        if not booking:
            raise NotFound("Booking not found", bookingId=booking_id)
        return booking

    async def find_active_overlap(
        self, resource_id: str, day: date, start: time, end: time
    ) -> Booking | None:
        async def work():
            res = await self.session.execute(
                select(Booking)
                .where(
                    Booking.resource_id == resource_id,
                    Booking.booking_date == day,
                    Booking.status != BookingStatus.CANCELLED,
                    Booking.start_time < end,
                    Booking.end_time > start,
                )
                .order_by(Booking.start_time)
                .limit(1)
            )
            return res.scalar_one_or_none()

        return await self._run("find_active_overlap", work)

    async def find_active_stay_overlap(
        self, resource_id: str, check_in: date, check_out: date
    ) -> Booking | None:
        async def work():
            res = await self.session.execute(
                select(Booking)
                .where(
                    Booking.resource_id == resource_id,
                    Booking.status != BookingStatus.CANCELLED,
                    Booking.check_in_date < check_out,
                    Booking.check_out_date > check_in,
                )
                .order_by(Booking.check_in_date)
                .limit(1)
            )
            return res.scalar_one_or_none()

        return await self._run("find_active_stay_overlap", work)

    async def find_active(self, resource_id: str, candidate: HourlyRange | StayRange) -> list[Booking]:
        """Active bookings on the candidate's resource that could collide with it."""
        if isinstance(candidate, StayRange):
            scope = Booking.check_in_date.is_not(None)
        else:
            scope = Booking.booking_date == candidate.day

        async def work():
            res = await self.session.execute(
                select(Booking).where(
                    Booking.resource_id == resource_id,
                    Booking.status != BookingStatus.CANCELLED,
                    scope,
                )
            )
            return list(res.scalars().all())

        return await self._run("find_active", work)

    async def find_by_requester(self, email: str) -> list[Booking]:
        async def work():
            res = await self.session.execute(
                select(Booking)
                .where(
                    Booking.requester_email == email,
                    Booking.status != BookingStatus.CANCELLED,
                )
                .order_by(
                    func.coalesce(Booking.booking_date, Booking.check_in_date).asc(),
                    Booking.start_time.asc(),
                    Booking.id.asc(),
                )
            )
            return list(res.scalars().all())

        return await self._run("find_by_requester", work)

    async def find_all(self, status: str | None = None, resource_id: str | None = None) -> list[Booking]:
        stmt = select(Booking)
        if status:
            stmt = stmt.where(Booking.status == status)
        if resource_id:
            stmt = stmt.where(Booking.resource_id == resource_id)
        stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc())

        async def work():
            res = await self.session.execute(stmt)
            return list(res.scalars().all())

        return await self._run("find_all", work)

    async def update_status(
        self, booking_id: str, expected_status: str, new_status: str, **fields
    ) -> Booking:
        """
        Compare-and-set: the row only changes if it still carries
        ``expected_status``. A missing row raises NotFound, a row that moved
        on raises Conflict.
        """
        async def work():
            res = await self.session.execute(
                update(Booking)
                .where(
                    Booking.booking_id == booking_id,
                    Booking.status == expected_status,
                )
                .values(status=new_status, **fields)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 1:
                await self.session.commit()
                return True
            await self.session.rollback()
            return False

        changed = await self._run("update_status", work)
        if not changed:
            current = await self.find_by_id(booking_id)
            logger.warning(
                "status_cas_lost",
                booking_id=booking_id,
                expected=expected_status,
                actual=current.status,
            )
            raise Conflict(
                "Booking was modified by another request; reload and retry",
                bookingId=booking_id,
                currentStatus=current.status,
            )
        return await self.find_by_id(booking_id)

    async def count_by_status(self, requester_email: str | None = None) -> dict[str, int]:
        stmt = select(Booking.status, func.count()).group_by(Booking.status)
        if requester_email:
            stmt = stmt.where(Booking.requester_email == requester_email)

        async def work():
            res = await self.session.execute(stmt)
            return {status: count for status, count in res.all()}

        return await self._run("count_by_status", work)

    async def count_by_resource(self) -> dict[str, dict[str, int]]:
        async def work():
            res = await self.session.execute(
                select(Booking.resource_id, Booking.status, func.count())
                .group_by(Booking.resource_id, Booking.status)
            )
            breakdown: dict[str, dict[str, int]] = {}
            for resource_id, status, count in res.all():
                breakdown.setdefault(resource_id, {})[status] = count
            return breakdown

        return await self._run("count_by_resource", work)
