"""Pydantic request and response models for the HTTP API."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from snapnow.domain.bookings import (
    Booking,
    BookingPhase,
    BookingStatus,
    MeetingPoint,
    PhotoDelivery,
)
from snapnow.domain.earnings import Earning, EarningsSummary, EarningStatus
from snapnow.domain.editing import (
    EditingOffer,
    EditingQuote,
    EditingRequest,
    EditingStatus,
    PricingModel,
)
from snapnow.domain.identity import Role
from snapnow.domain.locations import LivePosition
from snapnow.domain.windows import SessionWindow
from snapnow.services.bookings import BookingView


class BookingCreate(BaseModel):
    """Customer request for a new session."""

    provider_id: UUID
    scheduled_date: date
    scheduled_time: str
    duration_hours: int = Field(gt=0)
    location: str = Field(min_length=1)
    hourly_rate: Decimal = Field(gt=0)
    customer_notes: str | None = None


class BookingResponse(BaseModel):
    accept: bool


class PhotoUrl(BaseModel):
    url: str


class DeliveryMessage(BaseModel):
    message: str | None = None


class MeetingPointPayload(BaseModel):
    latitude: float
    longitude: float
    note: str | None = None


class LocationPayload(BaseModel):
    """A position fix published by a device."""

    latitude: float
    longitude: float
    accuracy: float | None = None
    recorded_at: datetime | None = None


class EditingOfferPayload(BaseModel):
    pricing_model: PricingModel
    flat_rate: Decimal | None = None
    per_photo_rate: Decimal | None = None
    turnaround_days: int = 3
    enabled: bool = True


class EditingRequestCreate(BaseModel):
    photo_urls: list[str] = Field(default_factory=list)
    customer_notes: str | None = None


class EditingDelivery(BaseModel):
    edited_photo_urls: list[str]
    provider_notes: str | None = None


class RevisionPayload(BaseModel):
    notes: str


class DeclinePayload(BaseModel):
    reason: str | None = None


class WindowOut(BaseModel):
    start: datetime
    end: datetime
    coordination_opens_at: datetime

    @classmethod
    def from_window(cls, window: SessionWindow | None) -> "WindowOut | None":
        if window is None:
            return None
        return cls(
            start=window.start,
            end=window.end,
            coordination_opens_at=window.coordination_opens_at,
        )


class MeetingPointOut(BaseModel):
    latitude: float
    longitude: float
    note: str | None = None

    @classmethod
    def from_domain(cls, point: MeetingPoint | None) -> "MeetingPointOut | None":
        if point is None:
            return None
        return cls(latitude=point.latitude, longitude=point.longitude, note=point.note)


class BookingOut(BaseModel):
    """A booking as seen by either party."""

    id: UUID
    customer_id: UUID
    provider_id: UUID
    scheduled_date: date
    scheduled_time: str
    duration_hours: int
    location: str
    status: BookingStatus
    phase: BookingPhase | None = None
    base_amount: Decimal
    customer_service_fee: Decimal
    total_amount: Decimal
    platform_fee: Decimal
    provider_earnings: Decimal
    created_at: datetime
    expires_at: datetime | None = None
    customer_notes: str | None = None
    meeting_point: MeetingPointOut | None = None
    window: WindowOut | None = None

    @classmethod
    def from_booking(
        cls,
        booking: Booking,
        phase: BookingPhase | None = None,
        window: SessionWindow | None = None,
    ) -> "BookingOut":
        amounts = booking.amounts
        return cls(
            id=booking.id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            scheduled_date=booking.scheduled_date,
            scheduled_time=booking.scheduled_time,
            duration_hours=booking.duration_hours,
            location=booking.location,
            status=booking.status,
            phase=phase,
            base_amount=amounts.base_amount,
            customer_service_fee=amounts.customer_service_fee,
            total_amount=amounts.total_amount,
            platform_fee=amounts.platform_fee,
            provider_earnings=amounts.provider_earnings,
            created_at=booking.created_at,
            expires_at=booking.expires_at,
            customer_notes=booking.customer_notes,
            meeting_point=MeetingPointOut.from_domain(booking.meeting_point),
            window=WindowOut.from_window(window),
        )

    @classmethod
    def from_view(cls, view: BookingView) -> "BookingOut":
        return cls.from_booking(view.booking, view.phase, view.window)


class PhaseOut(BaseModel):
    booking_id: UUID
    phase: BookingPhase


class DeliveryOut(BaseModel):
    booking_id: UUID
    photos: list[str]
    message: str | None = None
    delivered_at: datetime | None = None

    @classmethod
    def from_domain(cls, delivery: PhotoDelivery) -> "DeliveryOut":
        return cls(
            booking_id=delivery.booking_id,
            photos=delivery.photos,
            message=delivery.message,
            delivered_at=delivery.delivered_at,
        )


class PositionOut(BaseModel):
    booking_id: UUID
    role: Role
    user_id: UUID
    latitude: float
    longitude: float
    accuracy: float | None = None
    updated_at: datetime

    @classmethod
    def from_domain(cls, position: LivePosition) -> "PositionOut":
        return cls(
            booking_id=position.booking_id,
            role=position.role,
            user_id=position.user_id,
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy=position.accuracy,
            updated_at=position.updated_at,
        )


class EditingOfferOut(BaseModel):
    provider_id: UUID
    pricing_model: PricingModel
    flat_rate: Decimal | None = None
    per_photo_rate: Decimal | None = None
    turnaround_days: int
    enabled: bool

    @classmethod
    def from_domain(cls, offer: EditingOffer) -> "EditingOfferOut":
        return cls(
            provider_id=offer.provider_id,
            pricing_model=offer.pricing_model,
            flat_rate=offer.flat_rate,
            per_photo_rate=offer.per_photo_rate,
            turnaround_days=offer.turnaround_days,
            enabled=offer.enabled,
        )


class EditingQuoteOut(BaseModel):
    pricing_model: PricingModel
    photo_count: int
    base_amount: Decimal
    customer_service_fee: Decimal
    total_amount: Decimal
    platform_fee: Decimal
    provider_earnings: Decimal

    @classmethod
    def from_domain(cls, quote: EditingQuote) -> "EditingQuoteOut":
        return cls(
            pricing_model=quote.pricing_model,
            photo_count=quote.photo_count,
            base_amount=quote.base_amount,
            customer_service_fee=quote.customer_service_fee,
            total_amount=quote.total_amount,
            platform_fee=quote.platform_fee,
            provider_earnings=quote.provider_earnings,
        )


class EditingRequestOut(BaseModel):
    """An editing request with its price breakdown."""

    id: UUID
    booking_id: UUID
    customer_id: UUID
    provider_id: UUID
    status: EditingStatus
    quote: EditingQuoteOut
    requested_photo_urls: list[str]
    edited_photo_urls: list[str]
    revision_count: int
    requested_at: datetime
    customer_notes: str | None = None
    provider_notes: str | None = None
    revision_notes: str | None = None
    accepted_at: datetime | None = None
    delivered_at: datetime | None = None
    completed_at: datetime | None = None
    declined_at: datetime | None = None

    @classmethod
    def from_domain(cls, request: EditingRequest) -> "EditingRequestOut":
        return cls(
            id=request.id,
            booking_id=request.booking_id,
            customer_id=request.customer_id,
            provider_id=request.provider_id,
            status=request.status,
            quote=EditingQuoteOut.from_domain(request.quote),
            requested_photo_urls=request.requested_photo_urls,
            edited_photo_urls=request.edited_photo_urls,
            revision_count=request.revision_count,
            requested_at=request.requested_at,
            customer_notes=request.customer_notes,
            provider_notes=request.provider_notes,
            revision_notes=request.revision_notes,
            accepted_at=request.accepted_at,
            delivered_at=request.delivered_at,
            completed_at=request.completed_at,
            declined_at=request.declined_at,
        )


class EarningOut(BaseModel):
    id: UUID
    booking_id: UUID
    editing_request_id: UUID | None = None
    gross_amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    status: EarningStatus
    created_at: datetime
    released_at: datetime | None = None
    paid_at: datetime | None = None

    @classmethod
    def from_domain(cls, earning: Earning) -> "EarningOut":
        return cls(
            id=earning.id,
            booking_id=earning.booking_id,
            editing_request_id=earning.editing_request_id,
            gross_amount=earning.gross_amount,
            platform_fee=earning.platform_fee,
            net_amount=earning.net_amount,
            status=earning.status,
            created_at=earning.created_at,
            released_at=earning.released_at,
            paid_at=earning.paid_at,
        )


class EarningsSummaryOut(BaseModel):
    total: Decimal
    held: Decimal
    pending: Decimal
    paid: Decimal

    @classmethod
    def from_domain(cls, summary: EarningsSummary) -> "EarningsSummaryOut":
        return cls(
            total=summary.total,
            held=summary.held,
            pending=summary.pending,
            paid=summary.paid,
        )
