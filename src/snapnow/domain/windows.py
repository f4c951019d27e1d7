"""Session window evaluation.

Every "is it time yet" decision in the engine goes through
:func:`compute_window`. Windows are never stored; callers recompute them on
each evaluation so they always track the wall clock.
"""

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

COORDINATION_LEAD = timedelta(minutes=10)

_TIME_PATTERN = re.compile(
    r"^\s*(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?\s*"
    r"(?:(?P<marker>[ap])\.?\s*m?\.?)?\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class SessionWindow:
    """Start and end of a session plus the live-coordination lead."""

    start: datetime
    end: datetime
    lead: timedelta = COORDINATION_LEAD

    @property
    def coordination_opens_at(self) -> datetime:
        """Instant from which the parties may exchange live positions."""
        return self.start - self.lead

    def is_coordination_open(self, now: datetime) -> bool:
        """Return true while `coordination_opens_at <= now < end`."""
        return self.coordination_opens_at <= now < self.end

    def has_started(self, now: datetime) -> bool:
        return now >= self.start

    def has_ended(self, now: datetime) -> bool:
        return now >= self.end

    def minutes_until_coordination(self, now: datetime) -> int:
        """Whole minutes (rounded up) until sharing opens, zero once open."""
        remaining = (self.coordination_opens_at - now).total_seconds()
        if remaining <= 0:
            return 0
        return int(-(-remaining // 60))


def parse_time(value: str | None) -> time | None:
    """Parse a loosely formatted clock string.

    Accepts ``"14:00"``, ``"9:30"``, ``"2:00 PM"``, ``"12 am"`` and similar.
    Without an AM/PM marker the hour is read on a 24-hour clock. Returns
    ``None`` for anything that cannot be read.
    """
    if not value:
        return None
    match = _TIME_PATTERN.match(value)
    if match is None:
        return None
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    marker = match.group("marker")
    if minute > 59:
        return None
    if marker is None:
        if hour > 23:
            return None
        return time(hour, minute)
    if not 1 <= hour <= 12:
        return None
    if marker.lower() == "p":
        hour = 12 if hour == 12 else hour + 12
    else:
        hour = 0 if hour == 12 else hour
    return time(hour, minute)


def normalize_time(value: str | None) -> str | None:
    """Return the canonical ``HH:MM`` form of a clock string, if parseable."""
    parsed = parse_time(value)
    if parsed is None:
        return None
    return parsed.strftime("%H:%M")


def compute_window(
    scheduled_date: date | None,
    time_string: str | None,
    duration_hours: float | None,
    tz: tzinfo = UTC,
    lead: timedelta = COORDINATION_LEAD,
) -> SessionWindow | None:
    """Compute the session window, or ``None`` when inputs are unusable."""
    if scheduled_date is None or duration_hours is None or duration_hours <= 0:
        return None
    if isinstance(scheduled_date, datetime):
        scheduled_date = scheduled_date.date()
    parsed = parse_time(time_string)
    if parsed is None:
        return None
    start = datetime.combine(scheduled_date, parsed, tzinfo=tz)
    end = start + timedelta(hours=duration_hours)
    return SessionWindow(start=start, end=end, lead=lead)
