"""Live location relay endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from snapnow.api.identity import get_container, require_caller
from snapnow.api.models import LocationPayload, PositionOut
from snapnow.containers import AppContainer
from snapnow.domain.identity import Caller

router = APIRouter(tags=["locations"])


@router.post("/bookings/{booking_id}/live-location")
async def publish_position(
    booking_id: UUID,
    payload: LocationPayload,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> PositionOut:
    """Upsert the caller's position; 409 outside the coordination window."""
    position = container.location_service.publish_position(
        caller,
        booking_id,
        payload.latitude,
        payload.longitude,
        payload.accuracy,
        payload.recorded_at,
    )
    return PositionOut.from_domain(position)


@router.delete(
    "/bookings/{booking_id}/live-location", status_code=status.HTTP_204_NO_CONTENT
)
async def stop_sharing(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> None:
    container.location_service.stop_sharing(caller, booking_id)


@router.get("/bookings/{booking_id}/live-location/counterparty")
async def get_counterparty_position(
    booking_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> PositionOut | None:
    position = container.location_service.get_counterparty_position(
        caller, booking_id
    )
    return PositionOut.from_domain(position) if position else None


@router.get("/live-locations/customers")
async def list_active_customer_positions(
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> dict[str, list[PositionOut]]:
    """Provider view of customers whose coordination window is open."""
    positions = container.location_service.list_active_customer_positions(caller)
    return {"positions": [PositionOut.from_domain(p) for p in positions]}
