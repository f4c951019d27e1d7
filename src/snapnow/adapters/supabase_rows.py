"""Column conversion helpers shared by the Supabase repositories."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID


def to_decimal(value: object) -> Decimal:
    """Convert a numeric column (returned as number or string) to Decimal."""
    return Decimal(str(value))


def to_optional_decimal(value: object) -> Decimal | None:
    return None if value is None else to_decimal(value)


def to_timestamp(value: object) -> datetime | None:
    """Parse a timestamptz column; naive values are read as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def to_optional_uuid(value: object) -> UUID | None:
    return UUID(str(value)) if value else None


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
