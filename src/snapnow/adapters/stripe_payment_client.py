"""Stripe-compatible payment client over the REST API."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import httpx

from snapnow.errors import ExternalCollaboratorError
from snapnow.services.payments import PaymentGateway


@dataclass
class HttpxStripePaymentClient(PaymentGateway):
    """HTTPX-backed payment gateway using manual-capture payment intents."""

    api_key: str
    base_url: str
    currency: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, api_key: str, base_url: str, currency: str
    ) -> "HttpxStripePaymentClient":
        """Create a payment client with a managed httpx session."""
        return cls(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            currency=currency,
            http_client=httpx.AsyncClient(),
        )

    async def authorize(self, amount: Decimal, idempotency_key: str) -> str:
        """Create an uncaptured payment intent and return its id."""
        data = await self._post(
            "/payment_intents",
            {
                "amount": str(_to_minor_units(amount)),
                "currency": self.currency,
                "capture_method": "manual",
                "confirm": "true",
            },
            idempotency_key,
        )
        intent_id = data.get("id")
        if not intent_id:
            raise ExternalCollaboratorError("Payment processor returned no intent id")
        return str(intent_id)

    async def capture(self, intent_id: str, idempotency_key: str) -> None:
        await self._post(f"/payment_intents/{intent_id}/capture", {}, idempotency_key)

    async def release(self, intent_id: str, idempotency_key: str) -> None:
        await self._post(f"/payment_intents/{intent_id}/cancel", {}, idempotency_key)

    async def refund(self, intent_id: str, idempotency_key: str) -> None:
        await self._post("/refunds", {"payment_intent": intent_id}, idempotency_key)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _post(
        self, path: str, form: dict[str, str], idempotency_key: str
    ) -> dict[str, object]:
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}",
                data=form,
                auth=(self.api_key, ""),
                headers={"Idempotency-Key": idempotency_key},
                timeout=15,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExternalCollaboratorError(f"Payment request failed: {exc}") from exc
        return response.json()


def _to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
