"""Earnings ledger: a bookkeeping projection of bookings and editing add-ons."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from snapnow.domain.bookings import Booking
from snapnow.domain.earnings import Earning, EarningsSummary, EarningStatus
from snapnow.domain.editing import EditingRequest
from snapnow.domain.identity import Caller, Role
from snapnow.errors import ConflictError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class EarningRepository(Protocol):
    """Persistence interface for earnings."""

    def create_earning(  # noqa: PLR0913
        self,
        provider_id: UUID,
        booking_id: UUID,
        gross_amount: Decimal,
        platform_fee: Decimal,
        net_amount: Decimal,
        editing_request_id: UUID | None,
    ) -> Earning:
        """Create a held earning and return it."""

    def get_earning(self, earning_id: UUID) -> Earning | None:
        """Return an earning by id, if present."""

    def get_for_booking(self, booking_id: UUID) -> Earning | None:
        """Return the session earning for a booking, if present."""

    def get_for_editing(self, editing_request_id: UUID) -> Earning | None:
        """Return the add-on earning for an editing request, if present."""

    def list_for_provider(self, provider_id: UUID) -> list[Earning]:
        """Return a provider's earnings, newest first."""

    def update_status(
        self,
        earning_id: UUID,
        expected: EarningStatus,
        status: EarningStatus,
        changed_at: datetime,
    ) -> Earning | None:
        """Move an earning from `expected` to `status`; None on mismatch."""

    def delete_earning(self, earning_id: UUID) -> None:
        """Delete an earning row."""


@dataclass
class EarningsService:
    """Derives held/pending/paid earnings from delivery and payout events."""

    repository: EarningRepository
    clock: Callable[[], datetime] = field(default=_utc_now)

    def open_for_booking(self, booking: Booking) -> Earning:
        """Open a held earning when a booking becomes billable."""
        existing = self.repository.get_for_booking(booking.id)
        if existing is not None:
            return existing
        amounts = booking.amounts
        return self.repository.create_earning(
            provider_id=booking.provider_id,
            booking_id=booking.id,
            gross_amount=amounts.base_amount,
            platform_fee=amounts.platform_fee,
            net_amount=amounts.base_amount - amounts.platform_fee,
            editing_request_id=None,
        )

    def open_for_editing(self, request: EditingRequest) -> Earning:
        """Open a held earning for an accepted editing add-on."""
        existing = self.repository.get_for_editing(request.id)
        if existing is not None:
            return existing
        quote = request.quote
        return self.repository.create_earning(
            provider_id=request.provider_id,
            booking_id=request.booking_id,
            gross_amount=quote.base_amount,
            platform_fee=quote.platform_fee,
            net_amount=quote.base_amount - quote.platform_fee,
            editing_request_id=request.id,
        )

    def release_for_booking(self, booking_id: UUID) -> Earning | None:
        """Make the session earning available once photos are delivered."""
        return self._release(self.repository.get_for_booking(booking_id))

    def release_for_editing(self, editing_request_id: UUID) -> Earning | None:
        """Make the add-on earning available once edits are approved."""
        return self._release(self.repository.get_for_editing(editing_request_id))

    def discard_held_for_booking(self, booking_id: UUID) -> None:
        """Drop a session earning that never left the held stage."""
        self._discard_held(self.repository.get_for_booking(booking_id))

    def discard_held_for_editing(self, editing_request_id: UUID) -> None:
        """Drop the add-on earning of a request declined after acceptance."""
        self._discard_held(self.repository.get_for_editing(editing_request_id))

    def _discard_held(self, earning: Earning | None) -> None:
        if earning is None:
            return
        if earning.status is not EarningStatus.HELD:
            logger.warning(
                "Earning already released; not discarded",
                extra={"earning_id": str(earning.id), "status": earning.status},
            )
            return
        self.repository.delete_earning(earning.id)

    def record_payout(self, earning_id: UUID) -> Earning:
        """Reflect an external payout: pending -> paid."""
        earning = self.repository.get_earning(earning_id)
        if earning is None:
            raise NotFoundError("Earning not found")
        if earning.status is not EarningStatus.PENDING:
            raise ConflictError(
                f"Earning must be pending to be paid, got {earning.status}"
            )
        updated = self.repository.update_status(
            earning_id, EarningStatus.PENDING, EarningStatus.PAID, self.clock()
        )
        if updated is None:
            raise ConflictError("Earning was updated concurrently")
        logger.info("Earning paid", extra={"earning_id": str(earning_id)})
        return updated

    def list_earnings(self, caller: Caller) -> list[Earning]:
        """Return the calling provider's earnings."""
        _require_provider(caller)
        return self.repository.list_for_provider(caller.user_id)

    def summarize(self, caller: Caller) -> EarningsSummary:
        """Return net totals per stage for the calling provider."""
        earnings = self.list_earnings(caller)
        totals = dict.fromkeys(EarningStatus, Decimal("0"))
        for earning in earnings:
            totals[earning.status] += earning.net_amount
        return EarningsSummary(
            total=sum(totals.values(), Decimal("0")),
            held=totals[EarningStatus.HELD],
            pending=totals[EarningStatus.PENDING],
            paid=totals[EarningStatus.PAID],
        )

    def _release(self, earning: Earning | None) -> Earning | None:
        if earning is None:
            return None
        if earning.status is not EarningStatus.HELD:
            return earning
        updated = self.repository.update_status(
            earning.id, EarningStatus.HELD, EarningStatus.PENDING, self.clock()
        )
        if updated is None:
            return self.repository.get_earning(earning.id)
        logger.info("Earning released", extra={"earning_id": str(earning.id)})
        return updated


def _require_provider(caller: Caller) -> None:
    if caller.role is not Role.PROVIDER:
        raise PermissionDeniedError("Only providers have earnings")
