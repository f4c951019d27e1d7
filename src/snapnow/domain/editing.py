"""Domain models for the photo-editing add-on."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

from snapnow.domain.money import money


class PricingModel(StrEnum):
    FLAT = "flat"
    PER_PHOTO = "per_photo"


class EditingStatus(StrEnum):
    """Status of an editing request."""

    REQUESTED = "requested"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    REVISION_REQUESTED = "revision_requested"
    COMPLETED = "completed"
    DECLINED = "declined"

    @property
    def is_open(self) -> bool:
        return self not in {EditingStatus.COMPLETED, EditingStatus.DECLINED}


@dataclass(frozen=True)
class EditingOffer:
    """A provider's editing add-on configuration."""

    provider_id: UUID
    pricing_model: PricingModel
    flat_rate: Decimal | None
    per_photo_rate: Decimal | None
    turnaround_days: int = 3
    enabled: bool = True


@dataclass(frozen=True)
class EditingQuote:
    """Priced editing request before it is stored."""

    pricing_model: PricingModel
    photo_count: int
    base_amount: Decimal
    customer_service_fee: Decimal
    total_amount: Decimal
    platform_fee: Decimal
    provider_earnings: Decimal


@dataclass(frozen=True)
class EditingRequest:
    """Post-session retouching request attached to a completed booking."""

    id: UUID
    booking_id: UUID
    customer_id: UUID
    provider_id: UUID
    quote: EditingQuote
    status: EditingStatus
    requested_photo_urls: list[str]
    edited_photo_urls: list[str]
    revision_count: int
    requested_at: datetime
    customer_notes: str | None = None
    provider_notes: str | None = None
    revision_notes: str | None = None
    accepted_at: datetime | None = None
    delivered_at: datetime | None = None
    completed_at: datetime | None = None
    declined_at: datetime | None = None
    payment_intent_id: str | None = None


def price_editing(
    pricing_model: PricingModel,
    rate: Decimal,
    photo_count: int,
    fee_rate: Decimal,
    commission_rate: Decimal,
) -> EditingQuote:
    """Price an editing request.

    ``base`` is the flat rate, or the per-photo rate times the photo count.
    The customer pays ``base`` plus the service fee; the platform keeps its
    commission out of ``base``.
    """
    if pricing_model is PricingModel.FLAT:
        base = money(rate)
    else:
        base = money(rate * photo_count)
    fee = money(base * fee_rate)
    platform_fee = money(base * commission_rate)
    return EditingQuote(
        pricing_model=pricing_model,
        photo_count=photo_count,
        base_amount=base,
        customer_service_fee=fee,
        total_amount=base + fee,
        platform_fee=platform_fee,
        provider_earnings=base - platform_fee,
    )
