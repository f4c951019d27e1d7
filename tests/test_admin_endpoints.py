"""Tests for admin endpoints."""

import asyncio

from fastapi.testclient import TestClient

from snapnow.api.app import create_app
from snapnow.domain.bookings import BookingStatus
from tests.conftest import booking_request, complete_booking

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def test_admin_endpoints_require_token(container) -> None:
    client = TestClient(create_app(container))

    missing = client.get("/admin/health")
    wrong = client.post("/admin/bookings/expire", headers={"X-Admin-Token": "nope"})
    ok = client.get("/admin/health", headers=ADMIN_HEADERS)

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.json() == {"status": "ok"}


def test_expire_sweep_endpoint(container, harness, customer, provider) -> None:
    client = TestClient(create_app(container))
    booking = asyncio.run(
        harness.booking_service.create_booking(
            customer, booking_request(provider.user_id)
        )
    )
    harness.clock.advance(hours=1, minutes=1)

    first = client.post("/admin/bookings/expire", headers=ADMIN_HEADERS)
    second = client.post("/admin/bookings/expire", headers=ADMIN_HEADERS)

    assert first.json() == {"expired": 1}
    assert second.json() == {"expired": 0}
    assert harness.bookings.get_booking(booking.id).status is BookingStatus.EXPIRED
    assert "release" in harness.payments.operations()


def test_payout_endpoint(container, harness, customer, provider) -> None:
    client = TestClient(create_app(container))
    complete_booking(harness, customer, provider)
    earning = harness.earnings_service.list_earnings(provider)[0]

    paid = client.post(f"/admin/earnings/{earning.id}/payout", headers=ADMIN_HEADERS)
    again = client.post(f"/admin/earnings/{earning.id}/payout", headers=ADMIN_HEADERS)

    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["net_amount"] == "160.00"
    assert again.status_code == 409
