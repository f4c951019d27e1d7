"""Persistence port for live positions."""

from typing import Protocol
from uuid import UUID

from snapnow.domain.identity import Role
from snapnow.domain.locations import LivePosition


class LivePositionRepository(Protocol):
    """Latest-only store of live positions keyed by (booking, role)."""

    def get_position(self, booking_id: UUID, role: Role) -> LivePosition | None:
        """Return the latest position for a party, if present."""

    def save_if_newer(self, position: LivePosition) -> bool:
        """Store the position unless a later one is already stored.

        Returns False when the stored row is newer and was kept.
        """

    def delete_position(self, booking_id: UUID, role: Role) -> None:
        """Delete the position for a party."""

    def delete_for_booking(self, booking_id: UUID) -> None:
        """Delete every position attached to a booking."""
