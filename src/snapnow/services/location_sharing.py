"""Client runtime for live location sharing.

One :class:`LiveLocationSharingSession` runs per booking screen on a device.
It re-evaluates the session window on a timer, starts sharing once when the
coordination window opens, polls the counterparty while it stays open, and
stops (deleting the published position) when it closes.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Protocol
from uuid import UUID

from snapnow.domain.bookings import BookingStatus
from snapnow.domain.identity import Role
from snapnow.domain.locations import LivePosition, PositionFix, distance_meters
from snapnow.domain.windows import COORDINATION_LEAD, compute_window

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class BookingSnapshot:
    """The booking fields the sharing session depends on."""

    scheduled_date: date
    scheduled_time: str
    duration_hours: int
    status: BookingStatus


class LocationRelayClient(Protocol):
    """Remote relay API used by the device."""

    async def publish_position(self, booking_id: UUID, fix: PositionFix) -> None:
        """Upload the device's latest fix."""

    async def delete_position(self, booking_id: UUID) -> None:
        """Delete the device's published position."""

    async def fetch_counterparty(self, booking_id: UUID) -> LivePosition | None:
        """Return the other party's latest position, if any."""

    async def fetch_booking(self, booking_id: UUID) -> BookingSnapshot:
        """Return the current booking snapshot."""


class LocationSubscription(Protocol):
    """Handle for an active device position watch."""

    def remove(self) -> None:
        """Stop receiving fixes."""


class DeviceLocationProvider(Protocol):
    """Permission-gated source of position fixes."""

    async def request_permission(self) -> bool:
        """Ask for foreground location access; True when granted."""

    async def watch(
        self,
        on_fix: Callable[[PositionFix], None],
        min_interval_seconds: float,
        min_distance_meters: float,
    ) -> LocationSubscription:
        """Start delivering fixes to `on_fix`."""


@dataclass
class LiveLocationSharingSession:
    """Per-device, per-booking sharing controller."""

    booking_id: UUID
    role: Role
    booking: BookingSnapshot
    relay: LocationRelayClient
    device: DeviceLocationProvider
    timezone: tzinfo = UTC
    coordination_lead: timedelta = COORDINATION_LEAD
    poll_interval_seconds: float = 5.0
    refresh_interval_seconds: float = 30.0
    min_interval_seconds: float = 5.0
    min_distance_meters: float = 5.0
    clock: Callable[[], datetime] = field(default=_utc_now)
    on_counterparty: Callable[[LivePosition | None], None] | None = None

    is_sharing: bool = field(default=False, init=False)
    has_auto_started: bool = field(default=False, init=False)
    permission_denied: bool = field(default=False, init=False)
    window_open: bool = field(default=False, init=False)
    session_ended: bool = field(default=False, init=False)
    minutes_until_available: int | None = field(default=None, init=False)
    current_fix: PositionFix | None = field(default=None, init=False)
    counterparty: LivePosition | None = field(default=None, init=False)
    error: str | None = field(default=None, init=False)
    _last_published: PositionFix | None = field(default=None, init=False)
    _subscription: LocationSubscription | None = field(default=None, init=False)
    _publish_tasks: set[asyncio.Task] = field(default_factory=set, init=False)
    _poll_task: asyncio.Task | None = field(default=None, init=False)
    _refresh_task: asyncio.Task | None = field(default=None, init=False)
    _delete_pending: bool = field(default=False, init=False)

    def start(self) -> None:
        """Start the window re-evaluation timer."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def close(self) -> None:
        """Cancel every timer and stop sharing; safe to call twice."""
        for task in (self._refresh_task, self._poll_task):
            if task is not None:
                task.cancel()
        await _drain([t for t in (self._refresh_task, self._poll_task) if t])
        self._refresh_task = None
        self._poll_task = None
        if self.is_sharing:
            await self.stop_sharing()
        elif self._delete_pending:
            await self._delete_published()

    async def evaluate(self) -> None:
        """Re-evaluate the window and start/stop sharing and polling."""
        await self._refresh_booking()
        now = self.clock()
        window = compute_window(
            self.booking.scheduled_date,
            self.booking.scheduled_time,
            self.booking.duration_hours,
            tz=self.timezone,
            lead=self.coordination_lead,
        )
        if window is None:
            self.window_open = False
            self.minutes_until_available = None
        else:
            self.session_ended = window.has_ended(now)
            self.window_open = self.booking.status.is_live and (
                window.is_coordination_open(now)
            )
            minutes = window.minutes_until_coordination(now)
            self.minutes_until_available = minutes or None

        if self._delete_pending and not self.is_sharing:
            await self._delete_published()

        if self.window_open:
            self._ensure_polling()
            if (
                not self.has_auto_started
                and not self.is_sharing
                and not self.permission_denied
            ):
                self.has_auto_started = True
                await self.start_sharing()
            return

        await self._stop_polling()
        if self.is_sharing:
            await self.stop_sharing()

    async def start_sharing(self) -> bool:
        """Request permission and begin publishing device fixes."""
        if self.is_sharing:
            return True
        if self.permission_denied:
            return False
        self.error = None
        if not await self.device.request_permission():
            self.permission_denied = True
            self.error = "Location permission denied"
            logger.warning(
                "Location permission denied",
                extra=self._log_context(),
            )
            return False
        try:
            self._subscription = await self.device.watch(
                self.handle_fix,
                self.min_interval_seconds,
                self.min_distance_meters,
            )
        except Exception as exc:
            logger.exception(
                "Failed to start location watch",
                extra=self._log_context(),
            )
            self.error = str(exc) or "Failed to start location sharing"
            return False
        self.is_sharing = True
        self._delete_pending = False
        logger.info("Location sharing started", extra=self._log_context())
        return True

    async def stop_sharing(self) -> None:
        """Stop the watch and delete the published position before returning."""
        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None
        self.is_sharing = False
        self.current_fix = None
        self._last_published = None
        pending = list(self._publish_tasks)
        for task in pending:
            task.cancel()
        await _drain(pending)
        await self._delete_published()
        logger.info("Location sharing stopped", extra=self._log_context())

    def handle_fix(self, fix: PositionFix) -> None:
        """Device callback: publish throttled fixes without blocking."""
        if not self.is_sharing:
            return
        self.current_fix = fix
        if not self._should_publish(fix):
            return
        self._last_published = fix
        task = asyncio.get_running_loop().create_task(self._publish(fix))
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_tasks.discard)

    async def poll_counterparty(self) -> LivePosition | None:
        """Fetch the counterparty once; failures keep the last known value."""
        try:
            self.counterparty = await self.relay.fetch_counterparty(self.booking_id)
        except Exception:
            logger.warning(
                "Counterparty poll failed",
                extra=self._log_context(),
                exc_info=True,
            )
            return self.counterparty
        if self.on_counterparty is not None:
            self.on_counterparty(self.counterparty)
        return self.counterparty

    async def _delete_published(self) -> None:
        """Delete the published position; a failure is retried on later passes."""
        try:
            await self.relay.delete_position(self.booking_id)
        except Exception:
            self._delete_pending = True
            logger.warning(
                "Failed to delete live position; will retry",
                extra=self._log_context(),
                exc_info=True,
            )
            return
        self._delete_pending = False

    def _log_context(self) -> dict[str, str]:
        return {"booking_id": str(self.booking_id), "role": self.role.value}

    def _should_publish(self, fix: PositionFix) -> bool:
        last = self._last_published
        if last is None:
            return True
        elapsed = (fix.recorded_at - last.recorded_at).total_seconds()
        if elapsed < self.min_interval_seconds:
            return False
        moved = distance_meters(
            last.latitude, last.longitude, fix.latitude, fix.longitude
        )
        return moved >= self.min_distance_meters

    async def _publish(self, fix: PositionFix) -> None:
        try:
            await self.relay.publish_position(self.booking_id, fix)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning(
                "Failed to publish live position",
                extra=self._log_context(),
                exc_info=True,
            )

    async def _refresh_booking(self) -> None:
        try:
            self.booking = await self.relay.fetch_booking(self.booking_id)
        except Exception:
            logger.warning(
                "Booking refresh failed; using last snapshot",
                extra=self._log_context(),
                exc_info=True,
            )

    def _ensure_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def _stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is not None:
            task.cancel()
            await _drain([task])
        if self.counterparty is not None:
            self.counterparty = None
            if self.on_counterparty is not None:
                self.on_counterparty(None)

    async def _poll_loop(self) -> None:
        while True:
            await self.poll_counterparty()
            await asyncio.sleep(self.poll_interval_seconds)

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await self.evaluate()
            except Exception:
                logger.exception(
                    "Window evaluation failed",
                    extra=self._log_context(),
                )
            await asyncio.sleep(self.refresh_interval_seconds)


async def _drain(tasks: list[asyncio.Task]) -> None:
    """Wait for cancelled tasks to finish, ignoring their outcome."""
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
