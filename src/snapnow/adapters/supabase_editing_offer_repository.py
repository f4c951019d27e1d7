"""Supabase-backed editing offer repository."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from snapnow.adapters.supabase_rows import to_optional_decimal
from snapnow.domain.editing import EditingOffer, PricingModel
from snapnow.services.editing import EditingOfferRepository


@dataclass
class SupabaseEditingOfferRepository(EditingOfferRepository):
    """One offer row per provider."""

    client: Client

    def get_offer(self, provider_id: UUID) -> EditingOffer | None:
        response = (
            self.client.table("editing_offers")
            .select("*")
            .eq("provider_id", str(provider_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_offer(response.data[0])

    def upsert_offer(self, offer: EditingOffer) -> EditingOffer:
        response = (
            self.client.table("editing_offers")
            .upsert(
                {
                    "provider_id": str(offer.provider_id),
                    "pricing_model": offer.pricing_model.value,
                    "flat_rate": _money_column(offer.flat_rate),
                    "per_photo_rate": _money_column(offer.per_photo_rate),
                    "turnaround_days": offer.turnaround_days,
                    "enabled": offer.enabled,
                },
                on_conflict="provider_id",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save editing offer")
        return _row_to_offer(response.data[0])


def _money_column(value: object) -> str | None:
    return None if value is None else str(value)


def _row_to_offer(row: dict[str, object]) -> EditingOffer:
    return EditingOffer(
        provider_id=UUID(str(row["provider_id"])),
        pricing_model=PricingModel(row["pricing_model"]),
        flat_rate=to_optional_decimal(row.get("flat_rate")),
        per_photo_rate=to_optional_decimal(row.get("per_photo_rate")),
        turnaround_days=int(row.get("turnaround_days") or 3),
        enabled=bool(row.get("enabled", True)),
    )
