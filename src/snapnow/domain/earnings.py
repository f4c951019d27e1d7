"""Earnings ledger models."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from uuid import UUID


class EarningStatus(StrEnum):
    HELD = "held"
    PENDING = "pending"
    PAID = "paid"


@dataclass(frozen=True)
class Earning:
    """Provider earning for a session or an editing add-on."""

    id: UUID
    provider_id: UUID
    booking_id: UUID
    gross_amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    status: EarningStatus
    created_at: datetime
    editing_request_id: UUID | None = None
    released_at: datetime | None = None
    paid_at: datetime | None = None


@dataclass(frozen=True)
class EarningsSummary:
    """Net totals per payout stage."""

    total: Decimal
    held: Decimal
    pending: Decimal
    paid: Decimal
