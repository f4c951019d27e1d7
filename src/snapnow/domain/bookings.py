"""Booking domain models and the status/phase rules."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

from snapnow.domain.identity import Role
from snapnow.domain.money import money
from snapnow.domain.windows import SessionWindow


class BookingStatus(StrEnum):
    """Stored status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    PHOTOS_PENDING = "photos_pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_live(self) -> bool:
        """Statuses during which the parties may coordinate in person."""
        return self in {BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}


class BookingPhase(StrEnum):
    """Derived, time-dependent refinement of the stored status."""

    PENDING = "pending"
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    AWAITING_DELIVERY = "awaiting_delivery"
    COMPLETED = "completed"
    TERMINAL = "terminal"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.DECLINED, BookingStatus.EXPIRED}
)

_ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {
            BookingStatus.CONFIRMED,
            BookingStatus.DECLINED,
            BookingStatus.EXPIRED,
            BookingStatus.CANCELLED,
        }
    ),
    BookingStatus.CONFIRMED: frozenset(
        {
            BookingStatus.IN_PROGRESS,
            BookingStatus.PHOTOS_PENDING,
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
        }
    ),
    BookingStatus.IN_PROGRESS: frozenset(
        {BookingStatus.PHOTOS_PENDING, BookingStatus.COMPLETED}
    ),
    BookingStatus.PHOTOS_PENDING: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.DECLINED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Return true when `current -> target` is a legal status move."""
    return target in _ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class MeetingPoint:
    """Provider-authored meeting pin for a booking."""

    latitude: float
    longitude: float
    note: str | None = None


@dataclass(frozen=True)
class BookingAmounts:
    """Money split for a session."""

    base_amount: Decimal
    customer_service_fee: Decimal
    total_amount: Decimal
    platform_fee: Decimal
    provider_earnings: Decimal


@dataclass(frozen=True)
class Booking:
    """A session request between a customer and a provider."""

    id: UUID
    customer_id: UUID
    provider_id: UUID
    scheduled_date: date
    scheduled_time: str
    duration_hours: int
    location: str
    amounts: BookingAmounts
    status: BookingStatus
    created_at: datetime
    payment_intent_id: str | None = None
    expires_at: datetime | None = None
    meeting_point: MeetingPoint | None = None
    customer_notes: str | None = None

    def party_role(self, user_id: UUID) -> Role | None:
        """Return the role a user plays in this booking, if any."""
        if user_id == self.customer_id:
            return Role.CUSTOMER
        if user_id == self.provider_id:
            return Role.PROVIDER
        return None


@dataclass(frozen=True)
class NewBooking:
    """Values needed to persist a new booking."""

    id: UUID
    customer_id: UUID
    provider_id: UUID
    scheduled_date: date
    scheduled_time: str
    duration_hours: int
    location: str
    amounts: BookingAmounts
    payment_intent_id: str | None
    expires_at: datetime | None
    customer_notes: str | None = None


@dataclass(frozen=True)
class PhotoDelivery:
    """Photos a provider delivered for a booking."""

    booking_id: UUID
    provider_id: UUID
    photos: list[str]
    message: str | None
    delivered_at: datetime | None


def derive_phase(
    status: BookingStatus, window: SessionWindow | None, now: datetime
) -> BookingPhase:
    """Derive the booking phase from its stored status and the clock."""
    if status is BookingStatus.PENDING:
        return BookingPhase.PENDING
    if status is BookingStatus.COMPLETED:
        return BookingPhase.COMPLETED
    if status.is_terminal:
        return BookingPhase.TERMINAL
    if status is BookingStatus.PHOTOS_PENDING:
        return BookingPhase.AWAITING_DELIVERY
    if window is None:
        if status is BookingStatus.IN_PROGRESS:
            return BookingPhase.IN_PROGRESS
        return BookingPhase.UPCOMING
    if window.has_ended(now):
        return BookingPhase.AWAITING_DELIVERY
    if window.has_started(now) or status is BookingStatus.IN_PROGRESS:
        return BookingPhase.IN_PROGRESS
    return BookingPhase.UPCOMING


def price_booking(
    hourly_rate: Decimal,
    duration_hours: int,
    customer_fee_rate: Decimal,
    commission_rate: Decimal,
) -> BookingAmounts:
    """Split a session price between customer fee, platform and provider."""
    base = money(hourly_rate * duration_hours)
    customer_fee = money(base * customer_fee_rate)
    platform_fee = money(base * commission_rate)
    return BookingAmounts(
        base_amount=base,
        customer_service_fee=customer_fee,
        total_amount=base + customer_fee,
        platform_fee=platform_fee,
        provider_earnings=base - platform_fee,
    )


def response_deadline(session_start: datetime, now: datetime) -> datetime:
    """Deadline for a provider to answer a pending request.

    The closer the session, the shorter the window: 30 minutes when it starts
    within 2 hours, 1 hour within 12 hours, 4 hours within 48 hours, and a
    full day otherwise.
    """
    hours_until = (session_start - now) / timedelta(hours=1)
    if hours_until <= 2:
        window = timedelta(minutes=30)
    elif hours_until <= 12:
        window = timedelta(hours=1)
    elif hours_until <= 48:
        window = timedelta(hours=4)
    else:
        window = timedelta(hours=24)
    return now + window
