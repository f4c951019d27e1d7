"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from snapnow.config import Settings
from snapnow.containers import AppContainer
from snapnow.domain.bookings import (
    Booking,
    BookingStatus,
    MeetingPoint,
    NewBooking,
    PhotoDelivery,
)
from snapnow.domain.earnings import Earning, EarningStatus
from snapnow.domain.editing import (
    EditingOffer,
    EditingQuote,
    EditingRequest,
    EditingStatus,
)
from snapnow.domain.identity import Caller, Role
from snapnow.domain.locations import LivePosition
from snapnow.errors import ConflictError, ExternalCollaboratorError
from snapnow.services.bookings import (
    BookingRepository,
    BookingRequest,
    BookingService,
    PhotoDeliveryRepository,
)
from snapnow.services.earnings import EarningRepository, EarningsService
from snapnow.services.editing import (
    EditingOfferRepository,
    EditingRepository,
    EditingService,
)
from snapnow.services.locations import LocationService
from snapnow.services.meeting_points import MeetingPointService
from snapnow.services.payments import ObjectStore, PaymentGateway
from snapnow.services.positions import LivePositionRepository

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
SESSION_DATE = date(2026, 3, 2)


@dataclass
class FakeClock:
    """Mutable clock injected into services."""

    now: datetime = NOW

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class InMemoryBookingRepository(BookingRepository):
    """In-memory booking repository for tests."""

    bookings: dict[UUID, Booking] = field(default_factory=dict)

    def create_booking(self, booking: NewBooking) -> Booking:
        stored = Booking(
            id=booking.id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            scheduled_date=booking.scheduled_date,
            scheduled_time=booking.scheduled_time,
            duration_hours=booking.duration_hours,
            location=booking.location,
            amounts=booking.amounts,
            status=BookingStatus.PENDING,
            created_at=datetime.now(tz=UTC),
            payment_intent_id=booking.payment_intent_id,
            expires_at=booking.expires_at,
            customer_notes=booking.customer_notes,
        )
        self.bookings[stored.id] = stored
        return stored

    def get_booking(self, booking_id: UUID) -> Booking | None:
        return self.bookings.get(booking_id)

    def list_for_user(self, user_id: UUID) -> list[Booking]:
        return [
            b
            for b in self.bookings.values()
            if user_id in {b.customer_id, b.provider_id}
        ]

    def list_for_provider(
        self, provider_id: UUID, statuses: set[BookingStatus]
    ) -> list[Booking]:
        return [
            b
            for b in self.bookings.values()
            if b.provider_id == provider_id and b.status in statuses
        ]

    def list_overdue_pending(self, now: datetime) -> list[Booking]:
        return [
            b
            for b in self.bookings.values()
            if b.status is BookingStatus.PENDING
            and b.expires_at is not None
            and b.expires_at <= now
        ]

    def compare_and_set_status(
        self, booking_id: UUID, expected: BookingStatus, status: BookingStatus
    ) -> Booking | None:
        booking = self.bookings.get(booking_id)
        if booking is None or booking.status is not expected:
            return None
        updated = replace(booking, status=status)
        self.bookings[booking_id] = updated
        return updated

    def set_meeting_point(
        self, booking_id: UUID, meeting_point: MeetingPoint
    ) -> Booking | None:
        booking = self.bookings.get(booking_id)
        if booking is None:
            return None
        updated = replace(booking, meeting_point=meeting_point)
        self.bookings[booking_id] = updated
        return updated


@dataclass
class InMemoryPhotoDeliveryRepository(PhotoDeliveryRepository):
    deliveries: dict[UUID, PhotoDelivery] = field(default_factory=dict)

    def get_delivery(self, booking_id: UUID) -> PhotoDelivery | None:
        return self.deliveries.get(booking_id)

    def add_photo(
        self, booking_id: UUID, provider_id: UUID, url: str
    ) -> PhotoDelivery:
        current = self.deliveries.get(booking_id)
        photos = [*current.photos, url] if current else [url]
        delivery = PhotoDelivery(
            booking_id=booking_id,
            provider_id=provider_id,
            photos=photos,
            message=None,
            delivered_at=None,
        )
        self.deliveries[booking_id] = delivery
        return delivery

    def mark_delivered(
        self, booking_id: UUID, message: str | None, delivered_at: datetime
    ) -> PhotoDelivery:
        delivery = replace(
            self.deliveries[booking_id], message=message, delivered_at=delivered_at
        )
        self.deliveries[booking_id] = delivery
        return delivery


@dataclass
class InMemoryLivePositionRepository(LivePositionRepository):
    positions: dict[tuple[UUID, Role], LivePosition] = field(default_factory=dict)

    def get_position(self, booking_id: UUID, role: Role) -> LivePosition | None:
        return self.positions.get((booking_id, role))

    def save_if_newer(self, position: LivePosition) -> bool:
        key = (position.booking_id, position.role)
        current = self.positions.get(key)
        if current is not None and current.updated_at > position.updated_at:
            return False
        self.positions[key] = position
        return True

    def delete_position(self, booking_id: UUID, role: Role) -> None:
        self.positions.pop((booking_id, role), None)

    def delete_for_booking(self, booking_id: UUID) -> None:
        for key in [k for k in self.positions if k[0] == booking_id]:
            del self.positions[key]


@dataclass
class InMemoryEarningRepository(EarningRepository):
    earnings: dict[UUID, Earning] = field(default_factory=dict)

    def create_earning(  # noqa: PLR0913
        self,
        provider_id: UUID,
        booking_id: UUID,
        gross_amount: Decimal,
        platform_fee: Decimal,
        net_amount: Decimal,
        editing_request_id: UUID | None,
    ) -> Earning:
        earning = Earning(
            id=uuid4(),
            provider_id=provider_id,
            booking_id=booking_id,
            gross_amount=gross_amount,
            platform_fee=platform_fee,
            net_amount=net_amount,
            status=EarningStatus.HELD,
            created_at=datetime.now(tz=UTC),
            editing_request_id=editing_request_id,
        )
        self.earnings[earning.id] = earning
        return earning

    def get_earning(self, earning_id: UUID) -> Earning | None:
        return self.earnings.get(earning_id)

    def get_for_booking(self, booking_id: UUID) -> Earning | None:
        for earning in self.earnings.values():
            if earning.booking_id == booking_id and earning.editing_request_id is None:
                return earning
        return None

    def get_for_editing(self, editing_request_id: UUID) -> Earning | None:
        for earning in self.earnings.values():
            if earning.editing_request_id == editing_request_id:
                return earning
        return None

    def list_for_provider(self, provider_id: UUID) -> list[Earning]:
        return [e for e in self.earnings.values() if e.provider_id == provider_id]

    def update_status(
        self,
        earning_id: UUID,
        expected: EarningStatus,
        status: EarningStatus,
        changed_at: datetime,
    ) -> Earning | None:
        earning = self.earnings.get(earning_id)
        if earning is None or earning.status is not expected:
            return None
        if status is EarningStatus.PENDING:
            updated = replace(earning, status=status, released_at=changed_at)
        else:
            updated = replace(earning, status=status, paid_at=changed_at)
        self.earnings[earning_id] = updated
        return updated

    def delete_earning(self, earning_id: UUID) -> None:
        self.earnings.pop(earning_id, None)


@dataclass
class InMemoryEditingRepository(EditingRepository):
    requests: dict[UUID, EditingRequest] = field(default_factory=dict)

    def create_request(  # noqa: PLR0913
        self,
        request_id: UUID,
        booking_id: UUID,
        customer_id: UUID,
        provider_id: UUID,
        quote: EditingQuote,
        requested_photo_urls: list[str],
        customer_notes: str | None,
        payment_intent_id: str | None,
    ) -> EditingRequest:
        if self.get_open_for_booking(booking_id) is not None:
            raise ConflictError("An editing request is already open for this booking")
        request = EditingRequest(
            id=request_id,
            booking_id=booking_id,
            customer_id=customer_id,
            provider_id=provider_id,
            quote=quote,
            status=EditingStatus.REQUESTED,
            requested_photo_urls=requested_photo_urls,
            edited_photo_urls=[],
            revision_count=0,
            requested_at=datetime.now(tz=UTC),
            customer_notes=customer_notes,
            payment_intent_id=payment_intent_id,
        )
        self.requests[request.id] = request
        return request

    def get_request(self, request_id: UUID) -> EditingRequest | None:
        return self.requests.get(request_id)

    def get_open_for_booking(self, booking_id: UUID) -> EditingRequest | None:
        for request in self.requests.values():
            if request.booking_id == booking_id and request.status.is_open:
                return request
        return None

    def list_for_user(self, user_id: UUID) -> list[EditingRequest]:
        return [
            r
            for r in self.requests.values()
            if user_id in {r.customer_id, r.provider_id}
        ]

    def update_request(
        self,
        request_id: UUID,
        expected: EditingStatus,
        changes: dict[str, object],
    ) -> EditingRequest | None:
        request = self.requests.get(request_id)
        if request is None or request.status is not expected:
            return None
        updated = replace(request, **changes)
        self.requests[request_id] = updated
        return updated


@dataclass
class InMemoryEditingOfferRepository(EditingOfferRepository):
    offers: dict[UUID, EditingOffer] = field(default_factory=dict)

    def get_offer(self, provider_id: UUID) -> EditingOffer | None:
        return self.offers.get(provider_id)

    def upsert_offer(self, offer: EditingOffer) -> EditingOffer:
        self.offers[offer.provider_id] = offer
        return offer


@dataclass
class FakePaymentGateway(PaymentGateway):
    """Records payment calls and tracks each intent like the processor does.

    Capture and release need an uncaptured intent, refund needs a captured
    one; a repeated idempotency key replays the earlier success.
    """

    calls: list[tuple[str, str, str]] = field(default_factory=list)
    fail_on: set[str] = field(default_factory=set)
    intents: dict[str, str] = field(default_factory=dict)

    async def authorize(self, amount: Decimal, idempotency_key: str) -> str:
        await self._record("authorize", str(amount), idempotency_key)
        intent_id = f"pi_{len(self.calls)}"
        self.intents[intent_id] = "requires_capture"
        return intent_id

    async def capture(self, intent_id: str, idempotency_key: str) -> None:
        await self._move(
            "capture", intent_id, idempotency_key, "requires_capture", "succeeded"
        )

    async def release(self, intent_id: str, idempotency_key: str) -> None:
        await self._move(
            "release", intent_id, idempotency_key, "requires_capture", "canceled"
        )

    async def refund(self, intent_id: str, idempotency_key: str) -> None:
        await self._move("refund", intent_id, idempotency_key, "succeeded", "refunded")

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def _move(  # noqa: PLR0913
        self, operation: str, intent_id: str, key: str, source: str, target: str
    ) -> None:
        await asyncio.sleep(0)
        if operation in self.fail_on:
            raise ExternalCollaboratorError(f"{operation} failed")
        replay = any(call[2] == key for call in self.calls)
        if not replay:
            state = self.intents.get(intent_id, source)
            if state != source:
                raise ExternalCollaboratorError(
                    f"Cannot {operation} intent in state {state}"
                )
            self.intents[intent_id] = target
        self.calls.append((operation, intent_id, key))

    async def _record(self, operation: str, target: str, key: str) -> None:
        await asyncio.sleep(0)
        if operation in self.fail_on:
            raise ExternalCollaboratorError(f"{operation} failed")
        self.calls.append((operation, target, key))


@dataclass
class FakeObjectStore(ObjectStore):
    uploads: dict[str, tuple[bytes, str]] = field(default_factory=dict)

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        self.uploads[path] = (content, content_type)
        return f"https://cdn.example.com/{path}"


@dataclass
class Harness:
    """Services wired to in-memory fakes that share one clock."""

    clock: FakeClock
    bookings: InMemoryBookingRepository
    deliveries: InMemoryPhotoDeliveryRepository
    positions: InMemoryLivePositionRepository
    earnings_repository: InMemoryEarningRepository
    editing_repository: InMemoryEditingRepository
    offers: InMemoryEditingOfferRepository
    payments: FakePaymentGateway
    object_store: FakeObjectStore
    booking_service: BookingService
    meeting_point_service: MeetingPointService
    location_service: LocationService
    editing_service: EditingService
    earnings_service: EarningsService


def build_harness(max_revisions: int | None = None) -> Harness:
    clock = FakeClock()
    bookings = InMemoryBookingRepository()
    deliveries = InMemoryPhotoDeliveryRepository()
    positions = InMemoryLivePositionRepository()
    earnings_repository = InMemoryEarningRepository()
    editing_repository = InMemoryEditingRepository()
    offers = InMemoryEditingOfferRepository()
    payments = FakePaymentGateway()
    object_store = FakeObjectStore()
    earnings_service = EarningsService(earnings_repository, clock=clock)
    return Harness(
        clock=clock,
        bookings=bookings,
        deliveries=deliveries,
        positions=positions,
        earnings_repository=earnings_repository,
        editing_repository=editing_repository,
        offers=offers,
        payments=payments,
        object_store=object_store,
        booking_service=BookingService(
            repository=bookings,
            deliveries=deliveries,
            payments=payments,
            earnings=earnings_service,
            positions=positions,
            object_store=object_store,
            clock=clock,
        ),
        meeting_point_service=MeetingPointService(bookings, clock=clock),
        location_service=LocationService(bookings, positions, clock=clock),
        editing_service=EditingService(
            bookings=bookings,
            repository=editing_repository,
            offers=offers,
            earnings=earnings_service,
            payments=payments,
            max_revisions=max_revisions,
            clock=clock,
        ),
        earnings_service=earnings_service,
    )


def booking_request(
    provider_id: UUID,
    scheduled_time: str = "14:00",
    duration_hours: int = 2,
    hourly_rate: Decimal = Decimal("100"),
) -> BookingRequest:
    return BookingRequest(
        provider_id=provider_id,
        scheduled_date=SESSION_DATE,
        scheduled_time=scheduled_time,
        duration_hours=duration_hours,
        location="Golden Gate Park",
        hourly_rate=hourly_rate,
    )


@pytest.fixture
def customer() -> Caller:
    return Caller(user_id=uuid4(), role=Role.CUSTOMER)


@pytest.fixture
def provider() -> Caller:
    return Caller(user_id=uuid4(), role=Role.PROVIDER)


@pytest.fixture
def harness() -> Harness:
    return build_harness()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        stripe_api_key="sk_test_key",
        admin_token="admin-token",
    )


@pytest.fixture
def container(settings: Settings, harness: Harness) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        booking_service=harness.booking_service,
        meeting_point_service=harness.meeting_point_service,
        location_service=harness.location_service,
        editing_service=harness.editing_service,
        earnings_service=harness.earnings_service,
        close_resources=close_resources,
    )


def confirm_booking(harness: Harness, customer: Caller, provider: Caller) -> Booking:
    service = harness.booking_service
    booking = asyncio.run(
        service.create_booking(customer, booking_request(provider.user_id))
    )
    return asyncio.run(service.respond_to_booking(provider, booking.id, True))


def complete_booking(harness: Harness, customer: Caller, provider: Caller) -> Booking:
    """Run a booking through payment, the session and photo delivery."""
    booking = confirm_booking(harness, customer, provider)
    harness.clock.set(NOW.replace(hour=16, minute=30))
    service = harness.booking_service
    service.add_delivery_photo(provider, booking.id, "https://cdn.example.com/a.jpg")
    return service.deliver_photos(provider, booking.id)
