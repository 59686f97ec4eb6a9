"""
Wall clock in the configured civil timezone.

All expiry math goes through a Clock so tests can freeze and advance time.
"""

from datetime import datetime, timedelta

import pytz

from turnolibre.core.config import get_settings


def local_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(get_settings().TIMEZONE)


class Clock:
    """System clock."""

    def __init__(self, tz: pytz.BaseTzInfo | None = None):
        self.tz = tz or local_timezone()

    def now(self) -> datetime:
        return datetime.now(pytz.UTC).astimezone(self.tz)

    def today(self):
        return self.now().date()


class FrozenClock(Clock):
    """Clock pinned to a fixed instant, moved only by advance()."""

    def __init__(self, frozen_at: datetime, tz: pytz.BaseTzInfo | None = None):
        super().__init__(tz)
        if frozen_at.tzinfo is None:
            frozen_at = self.tz.localize(frozen_at)
        self._now = frozen_at

    def now(self) -> datetime:
        return self._now.astimezone(self.tz)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self.now()


_clock: Clock | None = None


def get_clock() -> Clock:
    """FastAPI dependency returning the process-wide system clock."""
    global _clock
    if _clock is None:
        _clock = Clock()
    return _clock
