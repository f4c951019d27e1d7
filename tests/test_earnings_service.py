"""Tests for the earnings ledger."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from snapnow.domain.earnings import EarningStatus
from snapnow.domain.editing import PricingModel
from snapnow.errors import ConflictError, NotFoundError, PermissionDeniedError
from tests.conftest import complete_booking, confirm_booking


def test_earning_moves_from_held_to_paid(harness, customer, provider) -> None:
    booking = confirm_booking(harness, customer, provider)
    service = harness.earnings_service

    (held,) = service.list_earnings(provider)
    assert held.status is EarningStatus.HELD
    assert held.gross_amount == Decimal("200.00")
    assert held.platform_fee == Decimal("40.00")
    assert service.summarize(provider).held == Decimal("160.00")

    harness.clock.set(harness.clock.now.replace(hour=16, minute=30))
    harness.booking_service.add_delivery_photo(
        provider, booking.id, "https://cdn.example.com/a.jpg"
    )
    harness.booking_service.deliver_photos(provider, booking.id)

    (pending,) = service.list_earnings(provider)
    assert pending.status is EarningStatus.PENDING
    assert pending.released_at == harness.clock.now

    paid = service.record_payout(pending.id)
    assert paid.status is EarningStatus.PAID
    summary = service.summarize(provider)
    assert summary.paid == Decimal("160.00")
    assert summary.total == Decimal("160.00")
    assert summary.held == Decimal("0")


def test_payout_requires_pending_earning(harness, customer, provider) -> None:
    confirm_booking(harness, customer, provider)
    (held,) = harness.earnings_service.list_earnings(provider)

    with pytest.raises(ConflictError):
        harness.earnings_service.record_payout(held.id)
    with pytest.raises(NotFoundError):
        harness.earnings_service.record_payout(uuid4())


def test_open_for_booking_is_idempotent(harness, customer, provider) -> None:
    booking = confirm_booking(harness, customer, provider)

    again = harness.earnings_service.open_for_booking(booking)

    assert len(harness.earnings_repository.earnings) == 1
    assert again.booking_id == booking.id


def test_release_never_moves_paid_back(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    earning = harness.earnings_repository.get_for_booking(booking.id)
    harness.earnings_service.record_payout(earning.id)

    released = harness.earnings_service.release_for_booking(booking.id)

    assert released.status is EarningStatus.PAID


def test_editing_add_on_adds_separate_earning(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    editing = harness.editing_service
    editing.set_offer(provider, PricingModel.FLAT, Decimal("50"), None)
    request = asyncio.run(editing.create_request(customer, booking.id, []))
    asyncio.run(editing.accept(provider, request.id))

    assert harness.earnings_service.summarize(provider).held == Decimal("40.00")

    editing.deliver(provider, request.id, ["https://cdn.example.com/e.jpg"])
    editing.approve(customer, request.id)

    summary = harness.earnings_service.summarize(provider)
    assert summary.pending == Decimal("200.00")
    assert summary.total == Decimal("200.00")
    assert len(harness.earnings_service.list_earnings(provider)) == 2


def test_declining_accepted_editing_discards_held_earning(
    harness, customer, provider
) -> None:
    booking = complete_booking(harness, customer, provider)
    editing = harness.editing_service
    editing.set_offer(provider, PricingModel.FLAT, Decimal("50"), None)
    request = asyncio.run(editing.create_request(customer, booking.id, []))
    asyncio.run(editing.accept(provider, request.id))

    asyncio.run(editing.decline(provider, request.id, "Calendar is full"))

    assert harness.earnings_repository.get_for_editing(request.id) is None
    summary = harness.earnings_service.summarize(provider)
    assert summary.held == Decimal("0")
    assert summary.pending == Decimal("160.00")


def test_discard_for_editing_keeps_released_earning(
    harness, customer, provider
) -> None:
    booking = complete_booking(harness, customer, provider)
    editing = harness.editing_service
    editing.set_offer(provider, PricingModel.FLAT, Decimal("50"), None)
    request = asyncio.run(editing.create_request(customer, booking.id, []))
    asyncio.run(editing.accept(provider, request.id))
    editing.deliver(provider, request.id, ["https://cdn.example.com/e.jpg"])
    editing.approve(customer, request.id)

    harness.earnings_service.discard_held_for_editing(request.id)

    earning = harness.earnings_repository.get_for_editing(request.id)
    assert earning.status is EarningStatus.PENDING


def test_customers_have_no_earnings(harness, customer) -> None:
    with pytest.raises(PermissionDeniedError):
        harness.earnings_service.list_earnings(customer)
