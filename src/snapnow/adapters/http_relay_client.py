"""Device-side client for the live location relay API."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

import httpx

from snapnow.adapters.supabase_rows import to_timestamp
from snapnow.domain.bookings import BookingStatus
from snapnow.domain.identity import Role
from snapnow.domain.locations import LivePosition, PositionFix
from snapnow.errors import TransientNetworkError
from snapnow.services.location_sharing import BookingSnapshot, LocationRelayClient


@dataclass
class HttpxLocationRelayClient(LocationRelayClient):
    """HTTPX-backed relay client acting on behalf of one signed-in user."""

    base_url: str
    user_id: UUID
    role: Role
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, base_url: str, user_id: UUID, role: Role
    ) -> "HttpxLocationRelayClient":
        """Create a relay client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            user_id=user_id,
            role=role,
            http_client=httpx.AsyncClient(),
        )

    async def publish_position(self, booking_id: UUID, fix: PositionFix) -> None:
        await self._request(
            "POST",
            f"/bookings/{booking_id}/live-location",
            json={
                "latitude": fix.latitude,
                "longitude": fix.longitude,
                "accuracy": fix.accuracy,
                "recorded_at": fix.recorded_at.isoformat(),
            },
        )

    async def delete_position(self, booking_id: UUID) -> None:
        await self._request("DELETE", f"/bookings/{booking_id}/live-location")

    async def fetch_counterparty(self, booking_id: UUID) -> LivePosition | None:
        """Return the counterparty position, or None when nothing is shared."""
        response = await self._request(
            "GET", f"/bookings/{booking_id}/live-location/counterparty"
        )
        data = response.json()
        if not data:
            return None
        return LivePosition(
            booking_id=UUID(str(data["booking_id"])),
            role=Role(data["role"]),
            user_id=UUID(str(data["user_id"])),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=None if data.get("accuracy") is None else float(data["accuracy"]),
            updated_at=to_timestamp(data["updated_at"]),
        )

    async def fetch_booking(self, booking_id: UUID) -> BookingSnapshot:
        response = await self._request("GET", f"/bookings/{booking_id}")
        data = response.json()
        return BookingSnapshot(
            scheduled_date=date.fromisoformat(str(data["scheduled_date"])[:10]),
            scheduled_time=str(data["scheduled_time"]),
            duration_hours=int(data["duration_hours"]),
            status=BookingStatus(data["status"]),
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self, method: str, path: str, json: dict[str, object] | None = None
    ) -> httpx.Response:
        try:
            response = await self.http_client.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                headers={
                    "X-User-Id": str(self.user_id),
                    "X-User-Role": self.role.value,
                },
                timeout=10,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransientNetworkError(f"Relay request failed: {exc}") from exc
        return response
