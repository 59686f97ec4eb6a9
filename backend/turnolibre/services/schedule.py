"""
Weekly slot grid and slot pricing.

Everything here is a pure function of a court's configuration and a
calendar anchor: no I/O, no clock, no hidden state. The pricing rule is
the single source of truth for both the displayed grid and the price a
booking stores when it is committed.

Slot identity is (court, date, time) with date as "YYYY-MM-DD" and time
as 24-hour "HH:MM", both in the club's civil timezone.
"""

import math
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Union

from turnolibre.models.court import DEFAULT_SLOT_MINUTES

# Indexed by date.weekday(): Monday == 0
WEEKDAY_NAMES = ("lunes", "martes", "miercoles", "jueves", "viernes", "sabado", "domingo")

MINUTES_PER_DAY = 24 * 60

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LEGACY_DATE = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")
_SLOT_TIME = re.compile(r"^\d{2}:\d{2}$")


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_day_name(value) -> str:
    return strip_accents(str(value).strip().lower())


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def parse_clock_time(value: str) -> int:
    """
    Parse "H", "HH" or "HH:MM" into minutes since midnight.
    "24:00" is accepted as an end-of-day closing time.
    """
    parts = str(value).strip().split(":")
    if not parts[0] or len(parts) > 2:
        raise ValueError(f"Invalid time: {value!r}")
    hours = int(parts[0])
    minutes = int(parts[1]) if len(parts) == 2 and parts[1] else 0
    if not (0 <= hours <= 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time: {value!r}")
    total = hours * 60 + minutes
    if total > MINUTES_PER_DAY:
        raise ValueError(f"Invalid time: {value!r}")
    return total


def format_clock_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_slot_date(value: str) -> date:
    """Strict "YYYY-MM-DD"."""
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ValueError(f"Invalid date: {value!r}")
    return date.fromisoformat(value)


def parse_slot_time(value: str) -> time:
    """Strict 24-hour "HH:MM"."""
    if not isinstance(value, str) or not _SLOT_TIME.match(value):
        raise ValueError(f"Invalid time: {value!r}")
    hours, minutes = (int(p) for p in value.split(":"))
    return time(hours, minutes)


def parse_legacy_date(value: str) -> date:
    """
    Read a stored date in either canonical ISO or the old "DD/MM/YYYY" form.
    Writes are always ISO; this only keeps rows from before that rule sortable.
    """
    value = (value or "").strip()
    if _ISO_DATE.match(value):
        return date.fromisoformat(value)
    if _LEGACY_DATE.match(value):
        day, month, year = (int(p) for p in value.split("/"))
        return date(year, month, day)
    raise ValueError(f"Invalid date: {value!r}")


def slot_start(day: Union[date, str], slot_time: Union[time, str]) -> datetime:
    """Civil (wall-clock) start instant of a slot."""
    if isinstance(day, str):
        day = parse_slot_date(day)
    if isinstance(slot_time, str):
        slot_time = parse_slot_time(slot_time)
    return datetime.combine(day, slot_time)


def week_start(reference: date) -> date:
    """Monday of the week containing `reference`."""
    return reference - timedelta(days=reference.weekday())


def week_days(reference: date) -> list[date]:
    monday = week_start(reference)
    return [monday + timedelta(days=i) for i in range(7)]


def effective_slot_minutes(court) -> int:
    try:
        minutes = int(court.slot_minutes or 0)
    except (TypeError, ValueError):
        minutes = 0
    return minutes if minutes > 0 else DEFAULT_SLOT_MINUTES


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def has_night_rule(court) -> bool:
    hour = court.night_from_hour
    price = court.night_price
    if not _is_number(hour) or not _is_number(price):
        return False
    if math.isnan(price) or price < 0:
        return False
    return 0 <= hour <= 23


def resolve_slot_price(court, start: datetime) -> float:
    """
    Night price when the court has a valid night rule and the slot starts
    at or after the cutover hour; base price otherwise. Minutes are ignored.
    """
    if has_night_rule(court) and start.hour >= court.night_from_hour:
        return court.night_price
    return court.price


def is_open_on(court, day: date) -> bool:
    enabled = {normalize_day_name(d) for d in (court.enabled_days or [])}
    # No configured days means the court is open every day
    if not enabled:
        return True
    return weekday_name(day) in enabled


@dataclass(frozen=True)
class SlotDescriptor:
    court_id: int
    date: str
    time: str
    price: float
    start: datetime


def day_slots(court, day: date) -> Iterator[SlotDescriptor]:
    """
    Walk [opening, closing) in steps of the slot duration. A trailing
    interval shorter than one slot is dropped.
    """
    duration = effective_slot_minutes(court)
    opening = parse_clock_time(court.open_time)
    closing = parse_clock_time(court.close_time)
    date_str = day.isoformat()

    minute = opening
    while minute + duration <= closing:
        start = datetime.combine(day, time(minute // 60, minute % 60))
        yield SlotDescriptor(
            court_id=court.id,
            date=date_str,
            time=format_clock_time(minute),
            price=resolve_slot_price(court, start),
            start=start,
        )
        minute += duration


class WeekGrid:
    """
    The bookable slots of one court for the Monday-to-Sunday week holding
    `reference`. Iterating is lazy and can be repeated; every pass yields
    the same slots in the same order.
    """

    def __init__(self, court, reference: date):
        self.court = court
        self.days = tuple(week_days(reference))

    @property
    def week_start(self) -> date:
        return self.days[0]

    def __iter__(self) -> Iterator[SlotDescriptor]:
        for day in self.days:
            if not is_open_on(self.court, day):
                continue
            yield from day_slots(self.court, day)
