"""Ports for the payment processor and the photo object store."""

from decimal import Decimal
from typing import Protocol
from uuid import UUID


class PaymentGateway(Protocol):
    """Interface for the external payment processor.

    Every call carries an idempotency key so that a retried transition never
    moves money twice.
    """

    async def authorize(self, amount: Decimal, idempotency_key: str) -> str:
        """Place a hold for `amount` and return the payment intent id."""

    async def capture(self, intent_id: str, idempotency_key: str) -> None:
        """Capture a previously authorized intent."""

    async def release(self, intent_id: str, idempotency_key: str) -> None:
        """Release an uncaptured authorization."""

    async def refund(self, intent_id: str, idempotency_key: str) -> None:
        """Refund a captured intent."""


class ObjectStore(Protocol):
    """Opaque binary store returning stable URLs."""

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Store `content` at `path` and return its public URL."""


def payment_key(booking_id: UUID, operation: str) -> str:
    """Build the idempotency key for a booking payment operation."""
    return f"booking:{booking_id}:{operation}"


def editing_payment_key(request_id: UUID, operation: str) -> str:
    """Build the idempotency key for an editing add-on payment operation."""
    return f"editing:{request_id}:{operation}"
