"""Meeting point negotiation for bookings."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from uuid import UUID

from snapnow.domain.bookings import Booking, BookingStatus, MeetingPoint
from snapnow.domain.identity import Caller, Role
from snapnow.domain.locations import is_valid_coordinate
from snapnow.domain.windows import COORDINATION_LEAD, compute_window
from snapnow.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from snapnow.services.bookings import BookingRepository

logger = logging.getLogger(__name__)

_EDITABLE_STATUSES = {BookingStatus.PENDING, BookingStatus.CONFIRMED}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MeetingPointService:
    """Provider-authored meeting pin; read-only for the customer."""

    repository: BookingRepository
    timezone: tzinfo = UTC
    coordination_lead: timedelta = COORDINATION_LEAD
    clock: Callable[[], datetime] = field(default=_utc_now)

    def set_meeting_point(
        self,
        caller: Caller,
        booking_id: UUID,
        latitude: float,
        longitude: float,
        note: str | None = None,
    ) -> Booking:
        """Replace the meeting point while the session has not started."""
        booking = self._require_booking(booking_id)
        if caller.role is not Role.PROVIDER or caller.user_id != booking.provider_id:
            raise PermissionDeniedError("Only the provider sets the meeting point")
        if not is_valid_coordinate(latitude, longitude):
            raise ValidationError("Invalid coordinates")
        if booking.status not in _EDITABLE_STATUSES:
            raise ConflictError(
                f"Meeting point is locked while booking is {booking.status}"
            )
        window = compute_window(
            booking.scheduled_date,
            booking.scheduled_time,
            booking.duration_hours,
            tz=self.timezone,
            lead=self.coordination_lead,
        )
        if window is not None and window.has_started(self.clock()):
            raise ConflictError("Meeting point is locked once the session has started")

        cleaned_note = note.strip() if note else None
        updated = self.repository.set_meeting_point(
            booking_id,
            MeetingPoint(
                latitude=latitude, longitude=longitude, note=cleaned_note or None
            ),
        )
        if updated is None:
            raise NotFoundError("Booking not found")
        logger.info("Meeting point set", extra={"booking_id": str(booking_id)})
        return updated

    def get_meeting_point(
        self, caller: Caller, booking_id: UUID
    ) -> MeetingPoint | None:
        """Return the meeting point; None means "not yet set"."""
        booking = self._require_booking(booking_id)
        if booking.party_role(caller.user_id) is None:
            raise PermissionDeniedError("Not a participant of this booking")
        return booking.meeting_point

    def _require_booking(self, booking_id: UUID) -> Booking:
        booking = self.repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking
