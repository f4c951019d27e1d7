"""Supabase-backed booking repository."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import UUID

from supabase import Client

from snapnow.adapters.supabase_rows import to_decimal, to_iso, to_timestamp
from snapnow.domain.bookings import (
    Booking,
    BookingAmounts,
    BookingStatus,
    MeetingPoint,
    NewBooking,
)
from snapnow.services.bookings import BookingRepository

_COLUMNS = (
    "id, customer_id, provider_id, scheduled_date, scheduled_time, duration_hours, "
    "location, base_amount, customer_service_fee, total_amount, platform_fee, "
    "provider_earnings, status, payment_intent_id, expires_at, created_at, "
    "meeting_latitude, meeting_longitude, meeting_notes, customer_notes"
)


@dataclass
class SupabaseBookingRepository(BookingRepository):
    """Supabase implementation for bookings."""

    client: Client

    def create_booking(self, booking: NewBooking) -> Booking:
        """Insert a pending booking row and return it."""
        amounts = booking.amounts
        response = (
            self.client.table("bookings")
            .insert(
                {
                    "id": str(booking.id),
                    "customer_id": str(booking.customer_id),
                    "provider_id": str(booking.provider_id),
                    "scheduled_date": booking.scheduled_date.isoformat(),
                    "scheduled_time": booking.scheduled_time,
                    "duration_hours": booking.duration_hours,
                    "location": booking.location,
                    "base_amount": str(amounts.base_amount),
                    "customer_service_fee": str(amounts.customer_service_fee),
                    "total_amount": str(amounts.total_amount),
                    "platform_fee": str(amounts.platform_fee),
                    "provider_earnings": str(amounts.provider_earnings),
                    "status": BookingStatus.PENDING.value,
                    "payment_intent_id": booking.payment_intent_id,
                    "expires_at": to_iso(booking.expires_at),
                    "customer_notes": booking.customer_notes,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create booking")
        return _row_to_booking(response.data[0])

    def get_booking(self, booking_id: UUID) -> Booking | None:
        """Return a booking by id, if present."""
        response = (
            self.client.table("bookings")
            .select(_COLUMNS)
            .eq("id", str(booking_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_booking(response.data[0])

    def list_for_user(self, user_id: UUID) -> list[Booking]:
        """Return bookings where the user is either party, newest first."""
        response = (
            self.client.table("bookings")
            .select(_COLUMNS)
            .or_(f"customer_id.eq.{user_id},provider_id.eq.{user_id}")
            .order("created_at", desc=True)
            .execute()
        )
        return [_row_to_booking(row) for row in response.data or []]

    def list_for_provider(
        self, provider_id: UUID, statuses: set[BookingStatus]
    ) -> list[Booking]:
        """Return a provider's bookings in the given statuses."""
        response = (
            self.client.table("bookings")
            .select(_COLUMNS)
            .eq("provider_id", str(provider_id))
            .in_("status", sorted(status.value for status in statuses))
            .execute()
        )
        return [_row_to_booking(row) for row in response.data or []]

    def list_overdue_pending(self, now: datetime) -> list[Booking]:
        """Return pending bookings whose response deadline has passed."""
        response = (
            self.client.table("bookings")
            .select(_COLUMNS)
            .eq("status", BookingStatus.PENDING.value)
            .lte("expires_at", now.isoformat())
            .execute()
        )
        return [_row_to_booking(row) for row in response.data or []]

    def compare_and_set_status(
        self, booking_id: UUID, expected: BookingStatus, status: BookingStatus
    ) -> Booking | None:
        """Conditional update: only rows still in `expected` are written."""
        response = (
            self.client.table("bookings")
            .update({"status": status.value})
            .eq("id", str(booking_id))
            .eq("status", expected.value)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_booking(response.data[0])

    def set_meeting_point(
        self, booking_id: UUID, meeting_point: MeetingPoint
    ) -> Booking | None:
        """Overwrite all meeting point columns in one update."""
        response = (
            self.client.table("bookings")
            .update(
                {
                    "meeting_latitude": meeting_point.latitude,
                    "meeting_longitude": meeting_point.longitude,
                    "meeting_notes": meeting_point.note,
                }
            )
            .eq("id", str(booking_id))
            .execute()
        )
        if not response.data:
            return None
        return _row_to_booking(response.data[0])


def _row_to_booking(row: dict[str, object]) -> Booking:
    meeting_point = None
    latitude = row.get("meeting_latitude")
    longitude = row.get("meeting_longitude")
    if latitude is not None and longitude is not None:
        meeting_point = MeetingPoint(
            latitude=float(latitude),
            longitude=float(longitude),
            note=row.get("meeting_notes"),
        )
    scheduled = str(row["scheduled_date"])
    return Booking(
        id=UUID(str(row["id"])),
        customer_id=UUID(str(row["customer_id"])),
        provider_id=UUID(str(row["provider_id"])),
        scheduled_date=date.fromisoformat(scheduled[:10]),
        scheduled_time=str(row["scheduled_time"]),
        duration_hours=int(row["duration_hours"]),
        location=str(row["location"]),
        amounts=BookingAmounts(
            base_amount=to_decimal(row["base_amount"]),
            customer_service_fee=to_decimal(row["customer_service_fee"]),
            total_amount=to_decimal(row["total_amount"]),
            platform_fee=to_decimal(row["platform_fee"]),
            provider_earnings=to_decimal(row["provider_earnings"]),
        ),
        status=BookingStatus(row["status"]),
        created_at=to_timestamp(row.get("created_at")) or datetime.now(tz=UTC),
        payment_intent_id=row.get("payment_intent_id"),
        expires_at=to_timestamp(row.get("expires_at")),
        meeting_point=meeting_point,
        customer_notes=row.get("customer_notes"),
    )
