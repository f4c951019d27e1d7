"""Tests for the editing add-on workflow."""

import asyncio
from decimal import Decimal

import pytest

from snapnow.domain.earnings import EarningStatus
from snapnow.domain.editing import EditingStatus, PricingModel
from snapnow.errors import (
    ConflictError,
    ExternalCollaboratorError,
    PermissionDeniedError,
    ValidationError,
)
from tests.conftest import build_harness, complete_booking, confirm_booking

PHOTOS = [f"https://cdn.example.com/{n}.jpg" for n in range(4)]


def _offer(harness, provider, model=PricingModel.FLAT):  # type: ignore[no-untyped-def]
    if model is PricingModel.FLAT:
        return harness.editing_service.set_offer(
            provider, PricingModel.FLAT, Decimal("50"), None
        )
    return harness.editing_service.set_offer(
        provider, PricingModel.PER_PHOTO, None, Decimal("10")
    )


def _request(  # type: ignore[no-untyped-def]
    harness, customer, booking_id, photos=PHOTOS, notes=None
):
    return asyncio.run(
        harness.editing_service.create_request(customer, booking_id, photos, notes)
    )


def _delivered_request(harness, customer, provider):  # type: ignore[no-untyped-def]
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    service = harness.editing_service
    request = _request(harness, customer, booking.id)
    asyncio.run(service.accept(provider, request.id))
    service.start(provider, request.id)
    return service.deliver(provider, request.id, ["https://cdn.example.com/e1.jpg"])


def test_flat_pricing(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)

    request = _request(harness, customer, booking.id, notes="Warm tones")

    assert request.status is EditingStatus.REQUESTED
    assert request.quote.base_amount == Decimal("50.00")
    assert request.quote.customer_service_fee == Decimal("5.00")
    assert request.quote.total_amount == Decimal("55.00")
    assert request.quote.provider_earnings == Decimal("40.00")


def test_per_photo_pricing(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider, PricingModel.PER_PHOTO)

    request = _request(harness, customer, booking.id)

    assert request.quote.photo_count == 4
    assert request.quote.base_amount == Decimal("40.00")
    assert request.quote.customer_service_fee == Decimal("4.00")
    assert request.quote.total_amount == Decimal("44.00")


def test_per_photo_offer_needs_photos(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider, PricingModel.PER_PHOTO)

    with pytest.raises(ValidationError):
        _request(harness, customer, booking.id, photos=["  "])


def test_offer_requires_rate_for_its_model(harness, provider, customer) -> None:
    with pytest.raises(ValidationError):
        harness.editing_service.set_offer(
            provider, PricingModel.FLAT, None, Decimal("10")
        )
    with pytest.raises(PermissionDeniedError):
        harness.editing_service.set_offer(
            customer, PricingModel.FLAT, Decimal("10"), None
        )


def test_request_requires_completed_booking(harness, customer, provider) -> None:
    booking = confirm_booking(harness, customer, provider)
    _offer(harness, provider)

    with pytest.raises(ConflictError):
        _request(harness, customer, booking.id)


def test_request_requires_enabled_offer(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)

    with pytest.raises(ValidationError):
        _request(harness, customer, booking.id)

    harness.editing_service.set_offer(
        provider, PricingModel.FLAT, Decimal("50"), None, enabled=False
    )
    with pytest.raises(ValidationError):
        _request(harness, customer, booking.id)


def test_one_open_request_per_booking(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    service = harness.editing_service
    first = _request(harness, customer, booking.id)

    with pytest.raises(ConflictError):
        _request(harness, customer, booking.id)

    asyncio.run(service.decline(provider, first.id, "Too busy this week"))
    second = _request(harness, customer, booking.id)
    assert second.id != first.id


def test_only_the_provider_accepts(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    request = _request(harness, customer, booking.id)

    with pytest.raises(PermissionDeniedError):
        asyncio.run(harness.editing_service.accept(customer, request.id))


def test_request_authorizes_and_accept_captures(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    payments = harness.payments

    request = _request(harness, customer, booking.id)
    assert payments.calls[-1] == (
        "authorize",
        "55.00",
        f"editing:{request.id}:authorize",
    )
    assert request.payment_intent_id is not None

    asyncio.run(harness.editing_service.accept(provider, request.id))

    assert payments.calls[-1] == (
        "capture",
        request.payment_intent_id,
        f"editing:{request.id}:capture",
    )
    assert payments.intents[request.payment_intent_id] == "succeeded"


def test_failed_authorization_stores_no_request(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    harness.payments.fail_on.add("authorize")

    with pytest.raises(ExternalCollaboratorError):
        _request(harness, customer, booking.id)

    assert harness.editing_repository.get_open_for_booking(booking.id) is None


def test_failed_capture_leaves_request_unaccepted(
    harness, customer, provider
) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    request = _request(harness, customer, booking.id)
    harness.payments.fail_on.add("capture")

    with pytest.raises(ExternalCollaboratorError):
        asyncio.run(harness.editing_service.accept(provider, request.id))

    stored = harness.editing_repository.get_request(request.id)
    assert stored.status is EditingStatus.REQUESTED
    assert harness.earnings_repository.get_for_editing(request.id) is None


def test_decline_releases_or_refunds(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    service = harness.editing_service
    payments = harness.payments

    first = _request(harness, customer, booking.id)
    asyncio.run(service.decline(provider, first.id))
    assert payments.intents[first.payment_intent_id] == "canceled"

    second = _request(harness, customer, booking.id)
    asyncio.run(service.accept(provider, second.id))
    declined = asyncio.run(service.decline(provider, second.id, "Sick this week"))

    assert declined.status is EditingStatus.DECLINED
    assert declined.provider_notes == "Sick this week"
    assert payments.intents[second.payment_intent_id] == "refunded"


def test_failed_release_keeps_request_open(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    request = _request(harness, customer, booking.id)
    harness.payments.fail_on.add("release")

    with pytest.raises(ExternalCollaboratorError):
        asyncio.run(harness.editing_service.decline(provider, request.id))

    stored = harness.editing_repository.get_request(request.id)
    assert stored.status is EditingStatus.REQUESTED


def test_concurrent_accept_and_decline(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    request = _request(harness, customer, booking.id)
    service = harness.editing_service

    async def race() -> list[object]:
        return await asyncio.gather(
            service.accept(provider, request.id),
            service.decline(provider, request.id),
            return_exceptions=True,
        )

    accepted, declined = asyncio.run(race())

    assert accepted.status is EditingStatus.ACCEPTED
    assert isinstance(declined, ConflictError)
    assert harness.payments.intents[request.payment_intent_id] == "succeeded"
    earning = harness.earnings_repository.get_for_editing(request.id)
    assert earning.status is EarningStatus.HELD


def test_revision_loop_and_approval(harness, customer, provider) -> None:
    request = _delivered_request(harness, customer, provider)
    service = harness.editing_service

    for expected_count in (1, 2):
        revised = service.request_revision(customer, request.id, "Brighter please")
        assert revised.status is EditingStatus.REVISION_REQUESTED
        assert revised.revision_count == expected_count
        assert revised.revision_notes == "Brighter please"
        service.deliver(provider, request.id, ["https://cdn.example.com/e2.jpg"])

    approved = service.approve(customer, request.id)

    assert approved.status is EditingStatus.COMPLETED
    assert approved.revision_count == 2
    assert approved.completed_at == harness.clock.now
    earning = harness.earnings_repository.get_for_editing(request.id)
    assert earning.status is EarningStatus.PENDING
    assert earning.net_amount == Decimal("40.00")


def test_revision_requires_notes(harness, customer, provider) -> None:
    request = _delivered_request(harness, customer, provider)

    with pytest.raises(ValidationError):
        harness.editing_service.request_revision(customer, request.id, "   ")


def test_approve_only_from_delivered(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    service = harness.editing_service
    request = asyncio.run(service.create_request(customer, booking.id, PHOTOS))
    asyncio.run(service.accept(provider, request.id))

    with pytest.raises(ConflictError):
        service.approve(customer, request.id)


def test_deliver_requires_edited_photos(harness, customer, provider) -> None:
    booking = complete_booking(harness, customer, provider)
    _offer(harness, provider)
    service = harness.editing_service
    request = asyncio.run(service.create_request(customer, booking.id, PHOTOS))
    asyncio.run(service.accept(provider, request.id))

    with pytest.raises(ValidationError):
        service.deliver(provider, request.id, [])


def test_decline_is_rejected_once_work_started(harness, customer, provider) -> None:
    request = _delivered_request(harness, customer, provider)

    with pytest.raises(ConflictError):
        asyncio.run(harness.editing_service.decline(provider, request.id))


def test_revision_cap_is_configurable(customer, provider) -> None:
    harness = build_harness(max_revisions=1)
    request = _delivered_request(harness, customer, provider)
    service = harness.editing_service

    service.request_revision(customer, request.id, "Crop tighter")
    service.deliver(provider, request.id, ["https://cdn.example.com/e3.jpg"])

    with pytest.raises(ConflictError):
        service.request_revision(customer, request.id, "One more")


def test_list_requests_for_both_parties(harness, customer, provider) -> None:
    request = _delivered_request(harness, customer, provider)

    assert [r.id for r in harness.editing_service.list_requests(customer)] == [
        request.id
    ]
    assert [r.id for r in harness.editing_service.list_requests(provider)] == [
        request.id
    ]
