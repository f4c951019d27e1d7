"""Supabase-backed earnings repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from supabase import Client

from snapnow.adapters.supabase_rows import to_decimal, to_optional_uuid, to_timestamp
from snapnow.domain.earnings import Earning, EarningStatus
from snapnow.services.earnings import EarningRepository

_STAMP_COLUMNS = {
    EarningStatus.PENDING: "released_at",
    EarningStatus.PAID: "paid_at",
}


@dataclass
class SupabaseEarningRepository(EarningRepository):
    """Supabase implementation for provider earnings."""

    client: Client

    def create_earning(  # noqa: PLR0913
        self,
        provider_id: UUID,
        booking_id: UUID,
        gross_amount: Decimal,
        platform_fee: Decimal,
        net_amount: Decimal,
        editing_request_id: UUID | None,
    ) -> Earning:
        """Insert a held earning."""
        response = (
            self.client.table("earnings")
            .insert(
                {
                    "provider_id": str(provider_id),
                    "booking_id": str(booking_id),
                    "editing_request_id": (
                        str(editing_request_id) if editing_request_id else None
                    ),
                    "gross_amount": str(gross_amount),
                    "platform_fee": str(platform_fee),
                    "net_amount": str(net_amount),
                    "status": EarningStatus.HELD.value,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create earning")
        return _row_to_earning(response.data[0])

    def get_earning(self, earning_id: UUID) -> Earning | None:
        response = (
            self.client.table("earnings")
            .select("*")
            .eq("id", str(earning_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_earning(response.data[0])

    def get_for_booking(self, booking_id: UUID) -> Earning | None:
        """Return the session earning (the row without an editing request)."""
        response = (
            self.client.table("earnings")
            .select("*")
            .eq("booking_id", str(booking_id))
            .is_("editing_request_id", "null")
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_earning(response.data[0])

    def get_for_editing(self, editing_request_id: UUID) -> Earning | None:
        response = (
            self.client.table("earnings")
            .select("*")
            .eq("editing_request_id", str(editing_request_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_earning(response.data[0])

    def list_for_provider(self, provider_id: UUID) -> list[Earning]:
        response = (
            self.client.table("earnings")
            .select("*")
            .eq("provider_id", str(provider_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [_row_to_earning(row) for row in response.data or []]

    def update_status(
        self,
        earning_id: UUID,
        expected: EarningStatus,
        status: EarningStatus,
        changed_at: datetime,
    ) -> Earning | None:
        """Compare-and-set the status, stamping the matching timestamp column."""
        payload: dict[str, object] = {"status": status.value}
        column = _STAMP_COLUMNS.get(status)
        if column is not None:
            payload[column] = changed_at.isoformat()
        response = (
            self.client.table("earnings")
            .update(payload)
            .eq("id", str(earning_id))
            .eq("status", expected.value)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_earning(response.data[0])

    def delete_earning(self, earning_id: UUID) -> None:
        self.client.table("earnings").delete().eq("id", str(earning_id)).execute()


def _row_to_earning(row: dict[str, object]) -> Earning:
    return Earning(
        id=UUID(str(row["id"])),
        provider_id=UUID(str(row["provider_id"])),
        booking_id=UUID(str(row["booking_id"])),
        gross_amount=to_decimal(row["gross_amount"]),
        platform_fee=to_decimal(row["platform_fee"]),
        net_amount=to_decimal(row["net_amount"]),
        status=EarningStatus(row["status"]),
        created_at=to_timestamp(row.get("created_at")) or datetime.now(tz=UTC),
        editing_request_id=to_optional_uuid(row.get("editing_request_id")),
        released_at=to_timestamp(row.get("released_at")),
        paid_at=to_timestamp(row.get("paid_at")),
    )
