"""Booking state machine: request, response, session and photo delivery."""

import logging
import mimetypes
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Protocol
from uuid import UUID, uuid4

from snapnow.domain.bookings import (
    Booking,
    BookingPhase,
    BookingStatus,
    MeetingPoint,
    NewBooking,
    PhotoDelivery,
    can_transition,
    derive_phase,
    price_booking,
    response_deadline,
)
from snapnow.domain.identity import Caller, Role
from snapnow.domain.windows import (
    COORDINATION_LEAD,
    SessionWindow,
    compute_window,
    normalize_time,
)
from snapnow.errors import (
    ConflictError,
    ExternalCollaboratorError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from snapnow.services.earnings import EarningsService
from snapnow.services.payments import ObjectStore, PaymentGateway, payment_key
from snapnow.services.positions import LivePositionRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class BookingRepository(Protocol):
    """Persistence interface for bookings."""

    def create_booking(self, booking: NewBooking) -> Booking:
        """Persist a new pending booking and return it."""

    def get_booking(self, booking_id: UUID) -> Booking | None:
        """Return a booking by id, if present."""

    def list_for_user(self, user_id: UUID) -> list[Booking]:
        """Return bookings where the user is customer or provider, newest first."""

    def list_for_provider(
        self, provider_id: UUID, statuses: set[BookingStatus]
    ) -> list[Booking]:
        """Return a provider's bookings in the given statuses."""

    def list_overdue_pending(self, now: datetime) -> list[Booking]:
        """Return pending bookings whose response deadline has passed."""

    def compare_and_set_status(
        self, booking_id: UUID, expected: BookingStatus, status: BookingStatus
    ) -> Booking | None:
        """Write `status` only if the stored status is `expected`."""

    def set_meeting_point(
        self, booking_id: UUID, meeting_point: MeetingPoint
    ) -> Booking | None:
        """Replace the meeting point of a booking."""


class PhotoDeliveryRepository(Protocol):
    """Persistence interface for session photo deliveries."""

    def get_delivery(self, booking_id: UUID) -> PhotoDelivery | None:
        """Return the delivery for a booking, if present."""

    def add_photo(
        self, booking_id: UUID, provider_id: UUID, url: str
    ) -> PhotoDelivery:
        """Append a photo URL, creating the delivery when needed."""

    def mark_delivered(
        self, booking_id: UUID, message: str | None, delivered_at: datetime
    ) -> PhotoDelivery:
        """Stamp the delivery as handed over to the customer."""


@dataclass(frozen=True)
class BookingRequest:
    """Customer input for a new session request."""

    provider_id: UUID
    scheduled_date: date
    scheduled_time: str
    duration_hours: int
    location: str
    hourly_rate: Decimal
    customer_notes: str | None = None


@dataclass(frozen=True)
class BookingView:
    """A booking with its derived, time-dependent state."""

    booking: Booking
    phase: BookingPhase
    window: SessionWindow | None


@dataclass
class BookingService:
    """Owns the canonical status of bookings and their derived phase."""

    repository: BookingRepository
    deliveries: PhotoDeliveryRepository
    payments: PaymentGateway
    earnings: EarningsService
    positions: LivePositionRepository
    object_store: ObjectStore
    customer_fee_rate: Decimal = Decimal("0.10")
    commission_rate: Decimal = Decimal("0.20")
    timezone: tzinfo = UTC
    coordination_lead: timedelta = COORDINATION_LEAD
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def create_booking(self, caller: Caller, request: BookingRequest) -> Booking:
        """Validate, authorize payment and store a pending booking."""
        if caller.role is not Role.CUSTOMER:
            raise PermissionDeniedError("Only customers can request sessions")
        if caller.user_id == request.provider_id:
            raise ValidationError("Cannot book yourself")
        scheduled_time = normalize_time(request.scheduled_time)
        if scheduled_time is None:
            raise ValidationError(f"Unrecognized time: {request.scheduled_time!r}")
        if request.duration_hours <= 0:
            raise ValidationError("Duration must be at least one hour")
        if request.hourly_rate <= 0:
            raise ValidationError("Hourly rate must be positive")
        if not request.location.strip():
            raise ValidationError("Location is required")

        now = self.clock()
        window = self._window(
            request.scheduled_date, scheduled_time, request.duration_hours
        )
        if window is None or window.has_started(now):
            raise ValidationError("Session must be scheduled in the future")

        amounts = price_booking(
            request.hourly_rate,
            request.duration_hours,
            self.customer_fee_rate,
            self.commission_rate,
        )
        booking_id = uuid4()
        intent_id = await self.payments.authorize(
            amounts.total_amount, payment_key(booking_id, "authorize")
        )
        booking = self.repository.create_booking(
            NewBooking(
                id=booking_id,
                customer_id=caller.user_id,
                provider_id=request.provider_id,
                scheduled_date=request.scheduled_date,
                scheduled_time=scheduled_time,
                duration_hours=request.duration_hours,
                location=request.location.strip(),
                amounts=amounts,
                payment_intent_id=intent_id,
                expires_at=response_deadline(window.start, now),
                customer_notes=request.customer_notes,
            )
        )
        logger.info(
            "Booking requested",
            extra={
                "booking_id": str(booking.id),
                "provider_id": str(booking.provider_id),
            },
        )
        return booking

    async def get_booking(self, caller: Caller, booking_id: UUID) -> BookingView:
        """Return a booking visible to the caller with its derived phase."""
        booking = self._require_party(caller, booking_id)
        booking = await self._expire_if_overdue(booking)
        return self._view(booking)

    async def get_booking_phase(self, caller: Caller, booking_id: UUID) -> BookingPhase:
        view = await self.get_booking(caller, booking_id)
        return view.phase

    def list_bookings(self, caller: Caller) -> list[BookingView]:
        return [self._view(b) for b in self.repository.list_for_user(caller.user_id)]

    async def respond_to_booking(
        self, caller: Caller, booking_id: UUID, accept: bool
    ) -> Booking:
        """Accept (capture payment) or decline (release payment) a request.

        The status write is a compare-and-set on ``pending``; a concurrent
        response loses with a conflict instead of overwriting.
        """
        booking = self._require_provider(caller, booking_id)
        booking = await self._expire_if_overdue(booking)
        if booking.status is not BookingStatus.PENDING:
            raise ConflictError(f"Booking is {booking.status}, not pending")
        if booking.expires_at is not None and self.clock() >= booking.expires_at:
            raise ConflictError("Response deadline has passed")

        target = BookingStatus.CONFIRMED if accept else BookingStatus.DECLINED
        operation = "capture" if accept else "release"
        updated = await self._transition(booking, target, operation)
        if accept:
            self.earnings.open_for_booking(updated)
        logger.info(
            "Booking answered",
            extra={"booking_id": str(booking_id), "status": updated.status},
        )
        return updated

    async def cancel_booking(self, caller: Caller, booking_id: UUID) -> Booking:
        """Cancel before the session starts, returning the customer's money."""
        booking = self._require_party(caller, booking_id)
        booking = await self._expire_if_overdue(booking)
        if booking.status is BookingStatus.PENDING:
            operation = "release"
        elif booking.status is BookingStatus.CONFIRMED:
            window = self._window_for(booking)
            if window is not None and window.has_started(self.clock()):
                raise ConflictError("Session already started")
            operation = "refund"
        else:
            raise ConflictError(f"Booking is {booking.status}, cannot cancel")

        updated = await self._transition(booking, BookingStatus.CANCELLED, operation)
        self.earnings.discard_held_for_booking(booking_id)
        self.positions.delete_for_booking(booking_id)
        logger.info("Booking cancelled", extra={"booking_id": str(booking_id)})
        return updated

    async def expire_overdue_bookings(self) -> int:
        """Expire every pending booking past its response deadline."""
        expired = 0
        for booking in self.repository.list_overdue_pending(self.clock()):
            result = await self._expire_if_overdue(booking)
            if result.status is BookingStatus.EXPIRED:
                expired += 1
        return expired

    def start_session(self, caller: Caller, booking_id: UUID) -> Booking:
        """Mark a confirmed booking as in progress once its start time passed."""
        booking = self._require_provider(caller, booking_id)
        if booking.status is not BookingStatus.CONFIRMED:
            raise ConflictError(f"Booking is {booking.status}, not confirmed")
        if self._view(booking).phase is not BookingPhase.IN_PROGRESS:
            raise ConflictError("Session is not running")
        return self._set_status(booking, BookingStatus.IN_PROGRESS)

    def add_delivery_photo(
        self, caller: Caller, booking_id: UUID, url: str
    ) -> PhotoDelivery:
        """Attach an already stored photo to the booking's delivery."""
        if not url.strip():
            raise ValidationError("Photo URL is required")
        booking = self._require_delivery_open(caller, booking_id)
        if booking.status is not BookingStatus.PHOTOS_PENDING:
            self._set_status(booking, BookingStatus.PHOTOS_PENDING)
        return self.deliveries.add_photo(booking_id, booking.provider_id, url.strip())

    def upload_delivery_photo(
        self, caller: Caller, booking_id: UUID, content: bytes, content_type: str
    ) -> PhotoDelivery:
        """Store photo bytes in the object store and attach the URL."""
        if not content:
            raise ValidationError("Photo content is empty")
        if not content_type.startswith("image/"):
            raise ValidationError(f"Unsupported content type: {content_type}")
        self._require_delivery_open(caller, booking_id)
        extension = mimetypes.guess_extension(content_type) or ""
        path = f"bookings/{booking_id}/{uuid4()}{extension}"
        url = self.object_store.upload(path, content, content_type)
        return self.add_delivery_photo(caller, booking_id, url)

    def get_delivery(self, caller: Caller, booking_id: UUID) -> PhotoDelivery | None:
        self._require_party(caller, booking_id)
        return self.deliveries.get_delivery(booking_id)

    def deliver_photos(
        self, caller: Caller, booking_id: UUID, message: str | None = None
    ) -> Booking:
        """Hand photos over: completes the booking and releases the earning."""
        booking = self._require_delivery_open(caller, booking_id)
        delivery = self.deliveries.get_delivery(booking_id)
        if delivery is None or not delivery.photos:
            raise ValidationError("Upload at least one photo before delivering")
        updated = self._set_status(booking, BookingStatus.COMPLETED)
        self.deliveries.mark_delivered(booking_id, message, self.clock())
        self.earnings.release_for_booking(booking_id)
        self.positions.delete_for_booking(booking_id)
        logger.info("Photos delivered", extra={"booking_id": str(booking_id)})
        return updated

    def window_for(self, booking: Booking) -> SessionWindow | None:
        """Public access to the window evaluator with this service's settings."""
        return self._window_for(booking)

    def phase_for(self, booking: Booking) -> BookingPhase:
        return self._view(booking).phase

    async def _transition(
        self, booking: Booking, target: BookingStatus, operation: str
    ) -> Booking:
        """Run the payment side effect, then compare-and-set the status.

        A failed payment call blocks the transition and nothing is written.
        If the booking changed while the call was in flight the caller loses
        with a conflict, and a capture made on its behalf is refunded.
        """
        if not can_transition(booking.status, target):
            raise ConflictError(
                f"Cannot move booking from {booking.status} to {target}"
            )
        if booking.payment_intent_id is not None:
            try:
                await self._pay(booking, operation)
            except ExternalCollaboratorError as exc:
                current = self.repository.get_booking(booking.id)
                if current is not None and current.status is not booking.status:
                    raise ConflictError("Booking was updated concurrently") from exc
                logger.exception(
                    "Payment call failed; booking unchanged",
                    extra={"booking_id": str(booking.id), "operation": operation},
                )
                raise
        updated = self.repository.compare_and_set_status(
            booking.id, booking.status, target
        )
        if updated is None:
            if operation == "capture" and booking.payment_intent_id is not None:
                await self._compensate_capture(booking)
            raise ConflictError("Booking was updated concurrently")
        return updated

    async def _pay(self, booking: Booking, operation: str) -> None:
        call = {
            "capture": self.payments.capture,
            "release": self.payments.release,
            "refund": self.payments.refund,
        }[operation]
        await call(booking.payment_intent_id, payment_key(booking.id, operation))

    async def _compensate_capture(self, booking: Booking) -> None:
        logger.warning(
            "Booking changed during capture; refunding",
            extra={"booking_id": str(booking.id), "operation": "refund"},
        )
        try:
            await self._pay(booking, "refund")
        except ExternalCollaboratorError:
            logger.exception(
                "Refund after lost capture failed",
                extra={"booking_id": str(booking.id), "operation": "refund"},
            )


    def _set_status(self, booking: Booking, target: BookingStatus) -> Booking:
        if not can_transition(booking.status, target):
            raise ConflictError(
                f"Cannot move booking from {booking.status} to {target}"
            )
        updated = self.repository.compare_and_set_status(
            booking.id, booking.status, target
        )
        if updated is None:
            raise ConflictError("Booking was updated concurrently")
        return updated

    async def _expire_if_overdue(self, booking: Booking) -> Booking:
        if booking.status is not BookingStatus.PENDING or booking.expires_at is None:
            return booking
        if self.clock() < booking.expires_at:
            return booking
        try:
            return await self._transition(booking, BookingStatus.EXPIRED, "release")
        except ConflictError:
            return self.repository.get_booking(booking.id) or booking
        except ExternalCollaboratorError:
            return booking

    def _view(self, booking: Booking) -> BookingView:
        window = self._window_for(booking)
        return BookingView(
            booking=booking,
            phase=derive_phase(booking.status, window, self.clock()),
            window=window,
        )

    def _window(
        self, scheduled_date: date, scheduled_time: str, duration_hours: int
    ) -> SessionWindow | None:
        return compute_window(
            scheduled_date,
            scheduled_time,
            duration_hours,
            tz=self.timezone,
            lead=self.coordination_lead,
        )

    def _window_for(self, booking: Booking) -> SessionWindow | None:
        return self._window(
            booking.scheduled_date, booking.scheduled_time, booking.duration_hours
        )

    def _require_booking(self, booking_id: UUID) -> Booking:
        booking = self.repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def _require_party(self, caller: Caller, booking_id: UUID) -> Booking:
        booking = self._require_booking(booking_id)
        if booking.party_role(caller.user_id) is None:
            raise PermissionDeniedError("Not a participant of this booking")
        return booking

    def _require_provider(self, caller: Caller, booking_id: UUID) -> Booking:
        booking = self._require_booking(booking_id)
        if caller.role is not Role.PROVIDER or caller.user_id != booking.provider_id:
            raise PermissionDeniedError("Only the booked provider can do this")
        return booking

    def _require_delivery_open(self, caller: Caller, booking_id: UUID) -> Booking:
        booking = self._require_provider(caller, booking_id)
        phase = self._view(booking).phase
        if phase is BookingPhase.AWAITING_DELIVERY:
            return booking
        if booking.status is BookingStatus.IN_PROGRESS:
            return booking
        raise ConflictError(f"Photos cannot be delivered while booking is {phase}")
