"""Booking lifecycle, photo delivery and meeting point endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from snapnow.api.identity import get_container, require_caller
from snapnow.api.models import (
    BookingCreate,
    BookingOut,
    BookingResponse,
    DeliveryMessage,
    DeliveryOut,
    MeetingPointOut,
    MeetingPointPayload,
    PhaseOut,
    PhotoUrl,
)
from snapnow.containers import AppContainer
from snapnow.domain.identity import Caller
from snapnow.services.bookings import BookingRequest

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> BookingOut:
    """Request a session; places a payment hold for the total amount."""
    service = container.booking_service
    booking = await service.create_booking(
        caller,
        BookingRequest(
            provider_id=payload.provider_id,
            scheduled_date=payload.scheduled_date,
            scheduled_time=payload.scheduled_time,
            duration_hours=payload.duration_hours,
            location=payload.location,
            hourly_rate=payload.hourly_rate,
            customer_notes=payload.customer_notes,
        ),
    )
    return BookingOut.from_booking(
        booking, service.phase_for(booking), service.window_for(booking)
    )


@router.get("")
async def list_bookings(
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> dict[str, list[BookingOut]]:
    views = container.booking_service.list_bookings(caller)
    return {"bookings": [BookingOut.from_view(view) for view in views]}


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> BookingOut:
    view = await container.booking_service.get_booking(caller, booking_id)
    return BookingOut.from_view(view)


@router.get("/{booking_id}/phase")
async def get_booking_phase(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> PhaseOut:
    phase = await container.booking_service.get_booking_phase(caller, booking_id)
    return PhaseOut(booking_id=booking_id, phase=phase)


@router.post("/{booking_id}/respond")
async def respond_to_booking(
    booking_id: UUID,
    payload: BookingResponse,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> BookingOut:
    """Provider accepts (captures payment) or declines (releases it)."""
    service = container.booking_service
    booking = await service.respond_to_booking(caller, booking_id, payload.accept)
    return BookingOut.from_booking(
        booking, service.phase_for(booking), service.window_for(booking)
    )


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> BookingOut:
    service = container.booking_service
    booking = await service.cancel_booking(caller, booking_id)
    return BookingOut.from_booking(
        booking, service.phase_for(booking), service.window_for(booking)
    )


@router.post("/{booking_id}/start")
async def start_session(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> BookingOut:
    service = container.booking_service
    booking = service.start_session(caller, booking_id)
    return BookingOut.from_booking(
        booking, service.phase_for(booking), service.window_for(booking)
    )


@router.get("/{booking_id}/photos")
async def get_delivery(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> DeliveryOut | None:
    delivery = container.booking_service.get_delivery(caller, booking_id)
    return DeliveryOut.from_domain(delivery) if delivery else None


@router.post("/{booking_id}/photos")
async def add_delivery_photo(
    booking_id: UUID,
    payload: PhotoUrl,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> DeliveryOut:
    delivery = container.booking_service.add_delivery_photo(
        caller, booking_id, payload.url
    )
    return DeliveryOut.from_domain(delivery)


@router.post("/{booking_id}/photos/upload")
async def upload_delivery_photo(
    booking_id: UUID,
    request: Request,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> DeliveryOut:
    """Accept raw image bytes as the request body."""
    content = await request.body()
    content_type = request.headers.get("content-type", "application/octet-stream")
    delivery = container.booking_service.upload_delivery_photo(
        caller, booking_id, content, content_type.split(";")[0].strip()
    )
    return DeliveryOut.from_domain(delivery)


@router.post("/{booking_id}/deliver")
async def deliver_photos(
    booking_id: UUID,
    payload: DeliveryMessage,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> BookingOut:
    service = container.booking_service
    booking = service.deliver_photos(caller, booking_id, payload.message)
    return BookingOut.from_booking(
        booking, service.phase_for(booking), service.window_for(booking)
    )


@router.put("/{booking_id}/meeting-point")
async def set_meeting_point(
    booking_id: UUID,
    payload: MeetingPointPayload,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> MeetingPointOut:
    booking = container.meeting_point_service.set_meeting_point(
        caller, booking_id, payload.latitude, payload.longitude, payload.note
    )
    return MeetingPointOut.from_domain(booking.meeting_point)


@router.get("/{booking_id}/meeting-point")
async def get_meeting_point(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> MeetingPointOut | None:
    point = container.meeting_point_service.get_meeting_point(caller, booking_id)
    return MeetingPointOut.from_domain(point)
