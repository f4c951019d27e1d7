"""Supabase-backed photo delivery repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from snapnow.adapters.supabase_rows import to_timestamp
from snapnow.domain.bookings import PhotoDelivery
from snapnow.services.bookings import PhotoDeliveryRepository


@dataclass
class SupabasePhotoDeliveryRepository(PhotoDeliveryRepository):
    """Supabase implementation for photo deliveries."""

    client: Client

    def get_delivery(self, booking_id: UUID) -> PhotoDelivery | None:
        """Return the delivery row for a booking, if present."""
        response = (
            self.client.table("photo_deliveries")
            .select("*")
            .eq("booking_id", str(booking_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_delivery(response.data[0])

    def add_photo(
        self, booking_id: UUID, provider_id: UUID, url: str
    ) -> PhotoDelivery:
        """Append a photo URL, creating the delivery row on first upload."""
        existing = self.get_delivery(booking_id)
        if existing is None:
            response = (
                self.client.table("photo_deliveries")
                .insert(
                    {
                        "booking_id": str(booking_id),
                        "provider_id": str(provider_id),
                        "photos": [url],
                    }
                )
                .execute()
            )
        else:
            response = (
                self.client.table("photo_deliveries")
                .update({"photos": [*existing.photos, url]})
                .eq("booking_id", str(booking_id))
                .execute()
            )
        if not response.data:
            raise RuntimeError("Failed to store delivery photo")
        return _row_to_delivery(response.data[0])

    def mark_delivered(
        self, booking_id: UUID, message: str | None, delivered_at: datetime
    ) -> PhotoDelivery:
        """Stamp the delivery with its message and hand-over time."""
        response = (
            self.client.table("photo_deliveries")
            .update({"message": message, "delivered_at": delivered_at.isoformat()})
            .eq("booking_id", str(booking_id))
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to mark delivery as delivered")
        return _row_to_delivery(response.data[0])


def _row_to_delivery(row: dict[str, object]) -> PhotoDelivery:
    return PhotoDelivery(
        booking_id=UUID(str(row["booking_id"])),
        provider_id=UUID(str(row["provider_id"])),
        photos=list(row.get("photos") or []),
        message=row.get("message"),
        delivered_at=to_timestamp(row.get("delivered_at")),
    )
