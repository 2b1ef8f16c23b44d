import json

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from .config import SSE_KEEPALIVE_SECONDS
from .notifier import ChangeNotifier
from .rbac import Actor
from .schemas import (
    CreateBookingRequest,
    CreateBookingResponse,
    AvailabilityResponse,
    DecisionRequest,
    BookingResponse,
    BookingListResponse,
    StatisticsResponse,
)
from .security import get_current_actor
from .service import BookingService

router = APIRouter()


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_notifier(request: Request) -> ChangeNotifier:
    return request.app.state.booking_service.notifier


@router.get("/bookings/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    resource_id: str = Query(alias="resourceId"),
    date: str | None = None,
    start_time: str | None = Query(default=None, alias="startTime"),
    end_time: str | None = Query(default=None, alias="endTime"),
    check_in_date: str | None = Query(default=None, alias="checkInDate"),
    check_out_date: str | None = Query(default=None, alias="checkOutDate"),
    svc: BookingService = Depends(get_booking_service),
):
    availability = await svc.check_availability(
        resource_id,
        {
            "date": date,
            "startTime": start_time,
            "endTime": end_time,
            "checkInDate": check_in_date,
            "checkOutDate": check_out_date,
        },
    )
    return AvailabilityResponse(available=availability.available)


@router.post("/bookings", response_model=CreateBookingResponse, status_code=201)
async def create_booking(
    data: CreateBookingRequest,
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    booking = await svc.create_booking(
        actor,
        data.resource_id,
        data.time_range(),
        requester_email=data.requester_email,
        attributes=data.all_attributes(),
    )
    return CreateBookingResponse(booking_id=booking.booking_id, status=booking.status)


@router.get("/bookings/mine", response_model=BookingListResponse)
async def list_mine(
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    bookings = await svc.list_mine(actor)
    return BookingListResponse(bookings=[BookingResponse.from_booking(b) for b in bookings])


@router.get("/bookings/statistics", response_model=StatisticsResponse, response_model_exclude_none=True)
async def statistics(
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    return StatisticsResponse(**await svc.statistics(actor))


@router.get("/bookings", response_model=BookingListResponse)
async def list_all(
    status: str | None = None,
    resource_id: str | None = Query(default=None, alias="resourceId"),
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    bookings = await svc.list_all(actor, status=status, resource_id=resource_id)
    return BookingListResponse(bookings=[BookingResponse.from_booking(b) for b in bookings])


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_booking(await svc.get_booking(booking_id, actor))


@router.put("/bookings/{booking_id}/status", response_model=BookingResponse)
async def decide(
    booking_id: str,
    data: DecisionRequest,
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    booking = await svc.decide(booking_id, actor, data.status, data.admin_notes)
    return BookingResponse.from_booking(booking)


@router.put("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_booking(await svc.cancel(booking_id, actor))


@router.put("/bookings/{booking_id}/rollback", response_model=BookingResponse)
async def rollback(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    svc: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_booking(await svc.rollback(booking_id, actor))


@router.get("/events/bookings")
async def booking_events(request: Request, notifier: ChangeNotifier = Depends(get_notifier)):
    """Server-Sent Events stream of "bookings-updated" hints for dashboards."""
    channel = notifier.subscribe()

    async def stream():
        try:
            yield ":ok\n\n"
            while not channel.closed:
                if await request.is_disconnected():
                    break
                event = await channel.receive(timeout=SSE_KEEPALIVE_SECONDS)
                if event is None:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            notifier.unsubscribe(channel)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
