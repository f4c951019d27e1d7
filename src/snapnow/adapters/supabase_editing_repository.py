"""Supabase-backed editing request repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from snapnow.adapters.supabase_rows import to_decimal, to_timestamp
from snapnow.domain.editing import (
    EditingQuote,
    EditingRequest,
    EditingStatus,
    PricingModel,
)
from snapnow.errors import ConflictError
from snapnow.services.editing import EditingRepository

_UNIQUE_VIOLATION = "23505"
_OPEN_STATUSES = [status.value for status in EditingStatus if status.is_open]


@dataclass
class SupabaseEditingRepository(EditingRepository):
    """Supabase implementation for editing requests.

    A partial unique index on ``booking_id`` for open statuses backs the
    one-open-request-per-booking rule; violations surface as ConflictError.
    """

    client: Client

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
        """Insert a new request in the requested state."""
        payload = {
            "id": str(request_id),
            "booking_id": str(booking_id),
            "customer_id": str(customer_id),
            "provider_id": str(provider_id),
            "pricing_model": quote.pricing_model.value,
            "photo_count": quote.photo_count,
            "base_amount": str(quote.base_amount),
            "customer_service_fee": str(quote.customer_service_fee),
            "total_amount": str(quote.total_amount),
            "platform_fee": str(quote.platform_fee),
            "provider_earnings": str(quote.provider_earnings),
            "status": EditingStatus.REQUESTED.value,
            "requested_photo_urls": requested_photo_urls,
            "edited_photo_urls": [],
            "revision_count": 0,
            "customer_notes": customer_notes,
            "payment_intent_id": payment_intent_id,
        }
        try:
            response = self.client.table("editing_requests").insert(payload).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise ConflictError(
                    "An editing request is already open for this booking"
                ) from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to create editing request")
        return _row_to_request(response.data[0])

    def get_request(self, request_id: UUID) -> EditingRequest | None:
        """Return a request by id, if present."""
        response = (
            self.client.table("editing_requests")
            .select("*")
            .eq("id", str(request_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_request(response.data[0])

    def get_open_for_booking(self, booking_id: UUID) -> EditingRequest | None:
        response = (
            self.client.table("editing_requests")
            .select("*")
            .eq("booking_id", str(booking_id))
            .in_("status", _OPEN_STATUSES)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_request(response.data[0])

    def list_for_user(self, user_id: UUID) -> list[EditingRequest]:
        """Return requests where the user is either party, newest first."""
        response = (
            self.client.table("editing_requests")
            .select("*")
            .or_(f"customer_id.eq.{user_id},provider_id.eq.{user_id}")
            .order("requested_at", desc=True)
            .execute()
        )
        return [_row_to_request(row) for row in response.data or []]

    def update_request(
        self,
        request_id: UUID,
        expected: EditingStatus,
        changes: dict[str, object],
    ) -> EditingRequest | None:
        """Compare-and-set update guarded by the current status."""
        response = (
            self.client.table("editing_requests")
            .update({key: _to_column(value) for key, value in changes.items()})
            .eq("id", str(request_id))
            .eq("status", expected.value)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_request(response.data[0])


def _to_column(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _row_to_request(row: dict[str, object]) -> EditingRequest:
    quote = EditingQuote(
        pricing_model=PricingModel(row["pricing_model"]),
        photo_count=int(row.get("photo_count") or 0),
        base_amount=to_decimal(row["base_amount"]),
        customer_service_fee=to_decimal(row["customer_service_fee"]),
        total_amount=to_decimal(row["total_amount"]),
        platform_fee=to_decimal(row["platform_fee"]),
        provider_earnings=to_decimal(row["provider_earnings"]),
    )
    return EditingRequest(
        id=UUID(str(row["id"])),
        booking_id=UUID(str(row["booking_id"])),
        customer_id=UUID(str(row["customer_id"])),
        provider_id=UUID(str(row["provider_id"])),
        quote=quote,
        status=EditingStatus(row["status"]),
        requested_photo_urls=list(row.get("requested_photo_urls") or []),
        edited_photo_urls=list(row.get("edited_photo_urls") or []),
        revision_count=int(row.get("revision_count") or 0),
        requested_at=to_timestamp(row.get("requested_at")) or datetime.now(tz=UTC),
        customer_notes=row.get("customer_notes"),
        provider_notes=row.get("provider_notes"),
        revision_notes=row.get("revision_notes"),
        accepted_at=to_timestamp(row.get("accepted_at")),
        delivered_at=to_timestamp(row.get("delivered_at")),
        completed_at=to_timestamp(row.get("completed_at")),
        declined_at=to_timestamp(row.get("declined_at")),
        payment_intent_id=row.get("payment_intent_id"),
    )
