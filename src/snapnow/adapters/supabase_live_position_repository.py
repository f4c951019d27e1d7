"""Supabase-backed live position repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from snapnow.adapters.supabase_rows import to_timestamp
from snapnow.domain.identity import Role
from snapnow.domain.locations import LivePosition
from snapnow.services.positions import LivePositionRepository

_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseLivePositionRepository(LivePositionRepository):
    """Supabase implementation keeping one row per (booking, role)."""

    client: Client

    def get_position(self, booking_id: UUID, role: Role) -> LivePosition | None:
        """Return the latest position for a party, if present."""
        response = (
            self.client.table("live_locations")
            .select("*")
            .eq("booking_id", str(booking_id))
            .eq("role", role.value)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return LivePosition(
            booking_id=UUID(str(row["booking_id"])),
            role=Role(row["role"]),
            user_id=UUID(str(row["user_id"])),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            accuracy=None if row.get("accuracy") is None else float(row["accuracy"]),
            updated_at=to_timestamp(row.get("updated_at")) or datetime.now(tz=UTC),
        )

    def save_if_newer(self, position: LivePosition) -> bool:
        """Conditional write keyed on `updated_at`.

        The row is updated only while the stored timestamp is not later than
        the incoming one. A missing row is inserted; losing that insert to a
        concurrent writer falls back to the conditional update.
        """
        table = self.client.table("live_locations")
        payload = _position_payload(position)
        if self._update_if_older(payload):
            return True
        try:
            response = table.insert(payload).execute()
        except APIError as exc:
            if exc.code != _UNIQUE_VIOLATION:
                raise
            return self._update_if_older(payload)
        return bool(response.data)

    def _update_if_older(self, payload: dict[str, object]) -> bool:
        response = (
            self.client.table("live_locations")
            .update(payload)
            .eq("booking_id", payload["booking_id"])
            .eq("role", payload["role"])
            .lte("updated_at", payload["updated_at"])
            .execute()
        )
        return bool(response.data)

    def delete_position(self, booking_id: UUID, role: Role) -> None:
        """Delete the row for one party."""
        self.client.table("live_locations").delete().eq(
            "booking_id", str(booking_id)
        ).eq("role", role.value).execute()

    def delete_for_booking(self, booking_id: UUID) -> None:
        """Delete both parties' rows for a booking."""
        self.client.table("live_locations").delete().eq(
            "booking_id", str(booking_id)
        ).execute()


def _position_payload(position: LivePosition) -> dict[str, object]:
    return {
        "booking_id": str(position.booking_id),
        "role": position.role.value,
        "user_id": str(position.user_id),
        "latitude": position.latitude,
        "longitude": position.longitude,
        "accuracy": position.accuracy,
        "updated_at": position.updated_at.isoformat(),
    }
