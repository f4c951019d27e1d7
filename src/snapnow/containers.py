"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from snapnow.adapters.stripe_payment_client import HttpxStripePaymentClient
from snapnow.adapters.supabase_booking_repository import SupabaseBookingRepository
from snapnow.adapters.supabase_earning_repository import SupabaseEarningRepository
from snapnow.adapters.supabase_editing_offer_repository import (
    SupabaseEditingOfferRepository,
)
from snapnow.adapters.supabase_editing_repository import SupabaseEditingRepository
from snapnow.adapters.supabase_live_position_repository import (
    SupabaseLivePositionRepository,
)
from snapnow.adapters.supabase_object_store import SupabaseObjectStore
from snapnow.adapters.supabase_photo_delivery_repository import (
    SupabasePhotoDeliveryRepository,
)
from snapnow.config import Settings
from snapnow.services.bookings import BookingService
from snapnow.services.earnings import EarningsService
from snapnow.services.editing import EditingService
from snapnow.services.locations import LocationService
from snapnow.services.meeting_points import MeetingPointService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    booking_service: BookingService
    meeting_point_service: MeetingPointService
    location_service: LocationService
    editing_service: EditingService
    earnings_service: EarningsService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    timezone = resolved_settings.tzinfo
    lead = timedelta(minutes=resolved_settings.coordination_lead_minutes)

    booking_repository = SupabaseBookingRepository(supabase_client)
    position_repository = SupabaseLivePositionRepository(supabase_client)
    payment_client = HttpxStripePaymentClient.create(
        api_key=resolved_settings.stripe_api_key,
        base_url=resolved_settings.stripe_base_url,
        currency=resolved_settings.currency,
    )
    earnings_service = EarningsService(SupabaseEarningRepository(supabase_client))
    booking_service = BookingService(
        repository=booking_repository,
        deliveries=SupabasePhotoDeliveryRepository(supabase_client),
        payments=payment_client,
        earnings=earnings_service,
        positions=position_repository,
        object_store=SupabaseObjectStore(
            supabase_client, resolved_settings.supabase_storage_bucket
        ),
        customer_fee_rate=resolved_settings.customer_fee_rate,
        commission_rate=resolved_settings.commission_rate,
        timezone=timezone,
        coordination_lead=lead,
    )
    meeting_point_service = MeetingPointService(
        repository=booking_repository,
        timezone=timezone,
        coordination_lead=lead,
    )
    location_service = LocationService(
        bookings=booking_repository,
        positions=position_repository,
        timezone=timezone,
        coordination_lead=lead,
    )
    editing_service = EditingService(
        bookings=booking_repository,
        repository=SupabaseEditingRepository(supabase_client),
        offers=SupabaseEditingOfferRepository(supabase_client),
        earnings=earnings_service,
        payments=payment_client,
        fee_rate=resolved_settings.editing_fee_rate,
        commission_rate=resolved_settings.commission_rate,
        max_revisions=resolved_settings.max_editing_revisions,
    )

    async def close_resources() -> None:
        await payment_client.close()

    return AppContainer(
        settings=resolved_settings,
        booking_service=booking_service,
        meeting_point_service=meeting_point_service,
        location_service=location_service,
        editing_service=editing_service,
        earnings_service=earnings_service,
        close_resources=close_resources,
    )
