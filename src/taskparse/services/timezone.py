"""Reference-time handling for the parser.

- "Now" in the user's configured timezone
- Parsing a caller-supplied reference time (CLI --now)
- Calendar decomposition of the reference for the resolver instructions
- Short human-readable labels ("Tomorrow at 9am")
"""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

from taskparse.config import settings


class TimezoneService:
    """Supplies reference times in the user's timezone."""

    def __init__(self, default_timezone: str | None = None):
        """Initialize timezone service.

        Args:
            default_timezone: IANA timezone name. Defaults to settings.user_timezone.
        """
        self._default_tz_name = default_timezone or settings.user_timezone
        try:
            self._default_tz = ZoneInfo(self._default_tz_name)
        except (KeyError, ValueError):
            # Fallback to UTC if invalid timezone
            self._default_tz_name = "UTC"
            self._default_tz = ZoneInfo("UTC")

    @property
    def default_timezone(self) -> str:
        return self._default_tz_name

    def now(self) -> datetime:
        """Current time in the user's timezone, truncated to the second."""
        return datetime.now(self._default_tz).replace(microsecond=0)

    def parse_reference(self, value: str | None) -> datetime:
        """Parse an ISO-8601 reference time; None means now.

        A reference without an offset stays naive, so results come back naive too.
        """
        if not value:
            return self.now()
        return isoparse(value)


def describe_reference(reference: datetime) -> dict[str, str]:
    """Calendar decomposition of the reference time used in resolver instructions."""
    return {
        "date": f"{reference:%A, %B} {reference.day}, {reference.year}",
        "time": format_time(reference),
        "iso": reference.isoformat(),
        "weekday": f"{reference:%A}",
    }


def format_time(dt: datetime) -> str:
    """Format a clock time compactly: "2pm", "9:30am", "12am"."""
    hour = dt.hour
    minute = dt.minute

    if hour == 0:
        time_str = "12"
        ampm = "am"
    elif hour < 12:
        time_str = str(hour)
        ampm = "am"
    elif hour == 12:
        time_str = "12"
        ampm = "pm"
    else:
        time_str = str(hour - 12)
        ampm = "pm"

    if minute > 0:
        time_str = f"{time_str}:{minute:02d}"

    return f"{time_str}{ampm}"


def format_due(dt: datetime, reference: datetime) -> str:
    """Label a due date relative to the reference day.

    Examples: "Today at 5pm", "Tomorrow at 9am", "Fri, Jun 14 at 3pm"
    """
    clock = format_time(dt)
    if dt.date() == reference.date():
        return f"Today at {clock}"
    if dt.date() == reference.date() + timedelta(days=1):
        return f"Tomorrow at {clock}"
    return f"{dt:%a, %b} {dt.day} at {clock}"


# Module-level singleton
_timezone_service: TimezoneService | None = None


def get_timezone_service(default_timezone: str | None = None) -> TimezoneService:
    """Get the singleton TimezoneService instance.

    Args:
        default_timezone: Optional timezone to use. Only used on first call.
    """
    global _timezone_service
    if _timezone_service is None:
        _timezone_service = TimezoneService(default_timezone)
    return _timezone_service


def reset_timezone_service() -> None:
    """Reset the singleton (useful for testing)."""
    global _timezone_service
    _timezone_service = None
