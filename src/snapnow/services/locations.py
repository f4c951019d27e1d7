"""Server side of the live location relay."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from uuid import UUID

from snapnow.domain.bookings import Booking, BookingStatus
from snapnow.domain.identity import Caller, Role
from snapnow.domain.locations import LivePosition, is_valid_coordinate
from snapnow.domain.windows import COORDINATION_LEAD, SessionWindow, compute_window
from snapnow.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from snapnow.services.bookings import BookingRepository
from snapnow.services.positions import LivePositionRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class LocationService:
    """Time-gated exchange of the parties' latest positions.

    Positions exist only while the coordination window is open for a live
    booking. Nothing is historized: each (booking, role) keeps one row.
    """

    bookings: BookingRepository
    positions: LivePositionRepository
    timezone: tzinfo = UTC
    coordination_lead: timedelta = COORDINATION_LEAD
    clock: Callable[[], datetime] = field(default=_utc_now)

    def is_sharing_open(self, booking: Booking, now: datetime | None = None) -> bool:
        """Return true iff the booking is live and inside its window."""
        if not booking.status.is_live:
            return False
        window = self._window(booking)
        if window is None:
            return False
        return window.is_coordination_open(now or self.clock())

    def publish_position(  # noqa: PLR0913
        self,
        caller: Caller,
        booking_id: UUID,
        latitude: float,
        longitude: float,
        accuracy: float | None = None,
        recorded_at: datetime | None = None,
    ) -> LivePosition:
        """Upsert the caller's latest position (last write wins)."""
        booking, role = self._require_party(caller, booking_id)
        if not is_valid_coordinate(latitude, longitude):
            raise ValidationError("Invalid coordinates")
        if accuracy is not None and accuracy < 0:
            raise ValidationError("Accuracy must be non-negative")
        now = self.clock()
        if not self.is_sharing_open(booking, now):
            self._purge_if_closed(booking, now)
            raise ConflictError("Location sharing is not open for this booking")

        position = LivePosition(
            booking_id=booking_id,
            role=role,
            user_id=caller.user_id,
            latitude=latitude,
            longitude=longitude,
            accuracy=accuracy,
            updated_at=min(recorded_at or now, now),
        )
        if self.positions.save_if_newer(position):
            return position
        return self.positions.get_position(booking_id, role) or position

    def stop_sharing(self, caller: Caller, booking_id: UUID) -> None:
        """Delete the caller's position so it is never shown as live."""
        _, role = self._require_party(caller, booking_id)
        self.positions.delete_position(booking_id, role)
        logger.info(
            "Location sharing stopped",
            extra={"booking_id": str(booking_id), "role": role},
        )

    def get_counterparty_position(
        self, caller: Caller, booking_id: UUID
    ) -> LivePosition | None:
        """Return the other party's latest position while the window is open."""
        booking, role = self._require_party(caller, booking_id)
        now = self.clock()
        if not self.is_sharing_open(booking, now):
            self._purge_if_closed(booking, now)
            return None
        return self.positions.get_position(booking_id, role.counterparty)

    def list_active_customer_positions(self, caller: Caller) -> list[LivePosition]:
        """Positions of the provider's customers whose window is open now."""
        if caller.role is not Role.PROVIDER:
            raise PermissionDeniedError("Only providers can list customer positions")
        now = self.clock()
        live = self.bookings.list_for_provider(
            caller.user_id, {BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
        )
        results = []
        for booking in live:
            if not self.is_sharing_open(booking, now):
                continue
            position = self.positions.get_position(booking.id, Role.CUSTOMER)
            if position is not None:
                results.append(position)
        return results

    def _purge_if_closed(self, booking: Booking, now: datetime) -> None:
        window = self._window(booking)
        if window is None or window.has_ended(now) or not booking.status.is_live:
            self.positions.delete_for_booking(booking.id)

    def _window(self, booking: Booking) -> SessionWindow | None:
        return compute_window(
            booking.scheduled_date,
            booking.scheduled_time,
            booking.duration_hours,
            tz=self.timezone,
            lead=self.coordination_lead,
        )

    def _require_party(self, caller: Caller, booking_id: UUID) -> tuple[Booking, Role]:
        booking = self.bookings.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        role = booking.party_role(caller.user_id)
        if role is None or role is not caller.role:
            raise PermissionDeniedError("Not a participant of this booking")
        return booking, role
