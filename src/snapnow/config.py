"""Application configuration."""

import os
from decimal import Decimal
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    supabase_storage_bucket: str = "session-photos"
    stripe_api_key: str
    stripe_base_url: str = "https://api.stripe.com/v1"
    currency: str = "usd"
    admin_token: str
    session_timezone: str = "UTC"
    coordination_lead_minutes: int = 10
    commission_rate: Decimal = Decimal("0.20")
    customer_fee_rate: Decimal = Decimal("0.10")
    editing_fee_rate: Decimal = Decimal("0.10")
    max_editing_revisions: int | None = None
    location_poll_interval_seconds: float = 5.0
    window_refresh_interval_seconds: float = 30.0
    location_min_interval_seconds: float = 5.0
    location_min_distance_meters: float = 5.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone used to interpret scheduled dates and times."""
        return ZoneInfo(self.session_timezone)
