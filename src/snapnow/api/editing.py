"""Editing add-on endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from snapnow.api.identity import get_container, require_caller
from snapnow.api.models import (
    DeclinePayload,
    EditingDelivery,
    EditingOfferOut,
    EditingOfferPayload,
    EditingRequestCreate,
    EditingRequestOut,
    RevisionPayload,
)
from snapnow.containers import AppContainer
from snapnow.domain.identity import Caller

router = APIRouter(tags=["editing"])


@router.put("/editing-offer")
async def set_editing_offer(
    payload: EditingOfferPayload,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingOfferOut:
    offer = container.editing_service.set_offer(
        caller,
        payload.pricing_model,
        payload.flat_rate,
        payload.per_photo_rate,
        payload.turnaround_days,
        payload.enabled,
    )
    return EditingOfferOut.from_domain(offer)


@router.get("/providers/{provider_id}/editing-offer")
async def get_editing_offer(
    provider_id: UUID,
    _: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingOfferOut | None:
    offer = container.editing_service.get_offer(provider_id)
    return EditingOfferOut.from_domain(offer) if offer else None


@router.post(
    "/bookings/{booking_id}/editing-requests", status_code=status.HTTP_201_CREATED
)
async def create_editing_request(
    booking_id: UUID,
    payload: EditingRequestCreate,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    """Customer asks for retouching on a completed booking."""
    request = await container.editing_service.create_request(
        caller, booking_id, payload.photo_urls, payload.customer_notes
    )
    return EditingRequestOut.from_domain(request)


@router.get("/editing-requests")
async def list_editing_requests(
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> dict[str, list[EditingRequestOut]]:
    requests = container.editing_service.list_requests(caller)
    return {"requests": [EditingRequestOut.from_domain(r) for r in requests]}


@router.get("/editing-requests/{request_id}")
async def get_editing_request(
    request_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    request = container.editing_service.get_request(caller, request_id)
    return EditingRequestOut.from_domain(request)


@router.post("/editing-requests/{request_id}/accept")
async def accept_editing_request(
    request_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    request = await container.editing_service.accept(caller, request_id)
    return EditingRequestOut.from_domain(request)


@router.post("/editing-requests/{request_id}/start")
async def start_editing_request(
    request_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    request = container.editing_service.start(caller, request_id)
    return EditingRequestOut.from_domain(request)


@router.post("/editing-requests/{request_id}/deliver")
async def deliver_editing_request(
    request_id: UUID,
    payload: EditingDelivery,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    request = container.editing_service.deliver(
        caller, request_id, payload.edited_photo_urls, payload.provider_notes
    )
    return EditingRequestOut.from_domain(request)


@router.post("/editing-requests/{request_id}/approve")
async def approve_editing_request(
    request_id: UUID,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    request = container.editing_service.approve(caller, request_id)
    return EditingRequestOut.from_domain(request)


@router.post("/editing-requests/{request_id}/revision")
async def request_editing_revision(
    request_id: UUID,
    payload: RevisionPayload,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    request = container.editing_service.request_revision(
        caller, request_id, payload.notes
    )
    return EditingRequestOut.from_domain(request)


@router.post("/editing-requests/{request_id}/decline")
async def decline_editing_request(
    request_id: UUID,
    payload: DeclinePayload,
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EditingRequestOut:
    request = await container.editing_service.decline(
        caller, request_id, payload.reason
    )
    return EditingRequestOut.from_domain(request)
