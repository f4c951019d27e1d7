"""Editing add-on workflow scoped to completed bookings."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID, uuid4

from snapnow.domain.bookings import Booking, BookingStatus
from snapnow.domain.editing import (
    EditingOffer,
    EditingQuote,
    EditingRequest,
    EditingStatus,
    PricingModel,
    price_editing,
)
from snapnow.domain.identity import Caller, Role
from snapnow.errors import (
    ConflictError,
    ExternalCollaboratorError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from snapnow.services.bookings import BookingRepository
from snapnow.services.earnings import EarningsService
from snapnow.services.payments import PaymentGateway, editing_payment_key

logger = logging.getLogger(__name__)

_CHARGED_SOURCES = {
    EditingStatus.ACCEPTED: {EditingStatus.REQUESTED},
    EditingStatus.DECLINED: {EditingStatus.REQUESTED, EditingStatus.ACCEPTED},
}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class EditingRepository(Protocol):
    """Persistence interface for editing requests."""

    def create_request(  # noqa: PLR0913
        self,
        request_id: UUID,
        booking_id: UUID,
        customer_id: UUID,
        provider_id: UUID,
        quote: EditingQuote,
        requested_photo_urls: list[str],
        customer_notes: str | None,
        payment_intent_id: str | None,
    ) -> EditingRequest:
        """Create a request; raise ConflictError if one is already open."""

    def get_request(self, request_id: UUID) -> EditingRequest | None:
        """Return a request by id, if present."""

    def get_open_for_booking(self, booking_id: UUID) -> EditingRequest | None:
        """Return the open request for a booking, if any."""

    def list_for_user(self, user_id: UUID) -> list[EditingRequest]:
        """Return requests where the user is customer or provider."""

    def update_request(
        self,
        request_id: UUID,
        expected: EditingStatus,
        changes: dict[str, object],
    ) -> EditingRequest | None:
        """Apply `changes` only if the stored status is `expected`."""


class EditingOfferRepository(Protocol):
    """Persistence interface for provider editing offers."""

    def get_offer(self, provider_id: UUID) -> EditingOffer | None:
        """Return a provider's offer, if configured."""

    def upsert_offer(self, offer: EditingOffer) -> EditingOffer:
        """Create or replace a provider's offer."""


@dataclass
class EditingService:
    """State machine for the optional paid retouching add-on."""

    bookings: BookingRepository
    repository: EditingRepository
    offers: EditingOfferRepository
    earnings: EarningsService
    payments: PaymentGateway
    fee_rate: Decimal = Decimal("0.10")
    commission_rate: Decimal = Decimal("0.20")
    max_revisions: int | None = None
    clock: Callable[[], datetime] = field(default=_utc_now)

    def set_offer(  # noqa: PLR0913
        self,
        caller: Caller,
        pricing_model: PricingModel,
        flat_rate: Decimal | None,
        per_photo_rate: Decimal | None,
        turnaround_days: int = 3,
        enabled: bool = True,
    ) -> EditingOffer:
        """Configure the caller's editing offer."""
        if caller.role is not Role.PROVIDER:
            raise PermissionDeniedError("Only providers offer editing")
        offer = EditingOffer(
            provider_id=caller.user_id,
            pricing_model=pricing_model,
            flat_rate=flat_rate,
            per_photo_rate=per_photo_rate,
            turnaround_days=turnaround_days,
            enabled=enabled,
        )
        _rate_for(offer)
        if turnaround_days <= 0:
            raise ValidationError("Turnaround must be at least one day")
        return self.offers.upsert_offer(offer)

    def get_offer(self, provider_id: UUID) -> EditingOffer | None:
        return self.offers.get_offer(provider_id)

    def quote(self, offer: EditingOffer, photo_count: int) -> EditingQuote:
        """Price a request against an offer."""
        rate = _rate_for(offer)
        if offer.pricing_model is PricingModel.PER_PHOTO and photo_count < 1:
            raise ValidationError("Per-photo editing needs at least one photo")
        return price_editing(
            offer.pricing_model, rate, photo_count, self.fee_rate, self.commission_rate
        )

    async def create_request(
        self,
        caller: Caller,
        booking_id: UUID,
        photo_urls: list[str],
        customer_notes: str | None = None,
    ) -> EditingRequest:
        """Open an editing request on a completed booking.

        The quoted total is authorized before the request is stored; a request
        that cannot be stored gives the authorization back.
        """
        booking = self._require_booking(booking_id)
        if caller.role is not Role.CUSTOMER or caller.user_id != booking.customer_id:
            raise PermissionDeniedError("Only the booking's customer can request edits")
        if booking.status is not BookingStatus.COMPLETED:
            raise ConflictError("Editing is available once the booking is completed")
        offer = self.offers.get_offer(booking.provider_id)
        if offer is None or not offer.enabled:
            raise ValidationError("Provider does not offer editing")
        urls = [url.strip() for url in photo_urls if url and url.strip()]
        if self.repository.get_open_for_booking(booking_id) is not None:
            raise ConflictError("An editing request is already open for this booking")
        quote = self.quote(offer, len(urls))
        request_id = uuid4()
        intent_id = await self.payments.authorize(
            quote.total_amount, editing_payment_key(request_id, "authorize")
        )
        try:
            request = self.repository.create_request(
                request_id=request_id,
                booking_id=booking_id,
                customer_id=booking.customer_id,
                provider_id=booking.provider_id,
                quote=quote,
                requested_photo_urls=urls,
                customer_notes=customer_notes,
                payment_intent_id=intent_id,
            )
        except ConflictError:
            await self.payments.release(
                intent_id, editing_payment_key(request_id, "release")
            )
            raise
        logger.info(
            "Editing requested",
            extra={
                "editing_request_id": str(request.id),
                "booking_id": str(booking_id),
            },
        )
        return request


    def get_request(self, caller: Caller, request_id: UUID) -> EditingRequest:
        request = self._require_request(request_id)
        if caller.user_id not in {request.customer_id, request.provider_id}:
            raise PermissionDeniedError("Not a participant of this request")
        return request

    def list_requests(self, caller: Caller) -> list[EditingRequest]:
        return self.repository.list_for_user(caller.user_id)

    async def accept(self, caller: Caller, request_id: UUID) -> EditingRequest:
        """Capture the customer's payment and open the held add-on earning."""
        request = self._require_provider(caller, request_id)
        updated = await self._charge(
            request,
            "capture",
            EditingStatus.ACCEPTED,
            {"accepted_at": self.clock()},
        )
        self.earnings.open_for_editing(updated)
        return updated


    def start(self, caller: Caller, request_id: UUID) -> EditingRequest:
        request = self._require_provider(caller, request_id)
        return self._move(
            request,
            {EditingStatus.ACCEPTED, EditingStatus.REVISION_REQUESTED},
            EditingStatus.IN_PROGRESS,
            {},
        )

    def deliver(
        self,
        caller: Caller,
        request_id: UUID,
        edited_photo_urls: list[str],
        provider_notes: str | None = None,
    ) -> EditingRequest:
        """Hand edited photos to the customer for a decision."""
        request = self._require_provider(caller, request_id)
        urls = [url.strip() for url in edited_photo_urls if url and url.strip()]
        if not urls:
            raise ValidationError("Deliver at least one edited photo")
        changes: dict[str, object] = {
            "edited_photo_urls": urls,
            "delivered_at": self.clock(),
        }
        if provider_notes:
            changes["provider_notes"] = provider_notes
        return self._move(
            request,
            {
                EditingStatus.ACCEPTED,
                EditingStatus.IN_PROGRESS,
                EditingStatus.REVISION_REQUESTED,
            },
            EditingStatus.DELIVERED,
            changes,
        )

    def approve(self, caller: Caller, request_id: UUID) -> EditingRequest:
        """Customer approval: the only way to complete a request."""
        request = self._require_customer(caller, request_id)
        updated = self._move(
            request,
            {EditingStatus.DELIVERED},
            EditingStatus.COMPLETED,
            {"completed_at": self.clock()},
        )
        self.earnings.release_for_editing(updated.id)
        return updated

    def request_revision(
        self, caller: Caller, request_id: UUID, notes: str
    ) -> EditingRequest:
        """Send delivered edits back to the provider with mandatory notes."""
        request = self._require_customer(caller, request_id)
        if not notes or not notes.strip():
            raise ValidationError("Revision notes are required")
        if (
            self.max_revisions is not None
            and request.revision_count >= self.max_revisions
        ):
            raise ConflictError("Revision limit reached")
        return self._move(
            request,
            {EditingStatus.DELIVERED},
            EditingStatus.REVISION_REQUESTED,
            {
                "revision_notes": notes.strip(),
                "revision_count": request.revision_count + 1,
            },
        )

    async def decline(
        self, caller: Caller, request_id: UUID, reason: str | None = None
    ) -> EditingRequest:
        """Provider refusal before work begins; the customer gets the money back."""
        request = self._require_provider(caller, request_id)
        changes: dict[str, object] = {"declined_at": self.clock()}
        if reason:
            changes["provider_notes"] = reason
        operation = "release"
        if request.status is EditingStatus.ACCEPTED:
            operation = "refund"
        updated = await self._charge(
            request, operation, EditingStatus.DECLINED, changes
        )
        self.earnings.discard_held_for_editing(updated.id)
        return updated

    async def _charge(
        self,
        request: EditingRequest,
        operation: str,
        target: EditingStatus,
        changes: dict[str, object],
    ) -> EditingRequest:
        """Run the payment call, then apply the status change.

        A failed call leaves the request untouched. A request that changed
        while the call was in flight loses with a conflict; a capture made
        for it is refunded.
        """
        allowed = _CHARGED_SOURCES[target]
        if request.status not in allowed:
            raise ConflictError(
                f"Cannot move request from {request.status} to {target}"
            )
        if request.payment_intent_id is not None:
            try:
                await self._pay(request, operation)
            except ExternalCollaboratorError as exc:
                current = self.repository.get_request(request.id)
                if current is not None and current.status is not request.status:
                    raise ConflictError(
                        "Editing request was updated concurrently"
                    ) from exc
                logger.exception(
                    "Editing payment failed; request unchanged",
                    extra={
                        "editing_request_id": str(request.id),
                        "operation": operation,
                    },
                )
                raise
        try:
            return self._move(request, allowed, target, changes)
        except ConflictError:
            if operation == "capture" and request.payment_intent_id is not None:
                await self._refund_lost_capture(request)
            raise

    async def _refund_lost_capture(self, request: EditingRequest) -> None:
        try:
            await self._pay(request, "refund")
        except ExternalCollaboratorError:
            logger.exception(
                "Refund after lost capture failed",
                extra={"editing_request_id": str(request.id), "operation": "refund"},
            )

    async def _pay(self, request: EditingRequest, operation: str) -> None:
        call = {
            "capture": self.payments.capture,
            "release": self.payments.release,
            "refund": self.payments.refund,
        }[operation]
        await call(
            request.payment_intent_id, editing_payment_key(request.id, operation)
        )

    def _move(
        self,
        request: EditingRequest,
        allowed_from: set[EditingStatus],
        target: EditingStatus,
        changes: dict[str, object],
    ) -> EditingRequest:
        if request.status not in allowed_from:
            raise ConflictError(
                f"Cannot move request from {request.status} to {target}"
            )
        updated = self.repository.update_request(
            request.id, request.status, {**changes, "status": target}
        )
        if updated is None:
            raise ConflictError("Editing request was updated concurrently")
        logger.info(
            "Editing request updated",
            extra={"editing_request_id": str(request.id), "status": target},
        )
        return updated

    def _require_booking(self, booking_id: UUID) -> Booking:
        booking = self.bookings.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def _require_request(self, request_id: UUID) -> EditingRequest:
        request = self.repository.get_request(request_id)
        if request is None:
            raise NotFoundError("Editing request not found")
        return request

    def _require_provider(self, caller: Caller, request_id: UUID) -> EditingRequest:
        request = self._require_request(request_id)
        if caller.role is not Role.PROVIDER or caller.user_id != request.provider_id:
            raise PermissionDeniedError("Only the provider can do this")
        return request

    def _require_customer(self, caller: Caller, request_id: UUID) -> EditingRequest:
        request = self._require_request(request_id)
        if caller.role is not Role.CUSTOMER or caller.user_id != request.customer_id:
            raise PermissionDeniedError("Only the customer can do this")
        return request


def _rate_for(offer: EditingOffer) -> Decimal:
    """Return the rate an offer charges, rejecting inconsistent offers."""
    if offer.pricing_model is PricingModel.FLAT:
        rate = offer.flat_rate
    else:
        rate = offer.per_photo_rate
    if rate is None or rate <= 0:
        raise ValidationError(f"{offer.pricing_model} pricing needs a positive rate")
    return rate
