"""
Dose Status Tool
Derives taken/pending/overdue state of a scheduled dose and the wording
shown for it on medication cards and notifications
"""

import math
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Callable, ClassVar, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo

from config import settings


class DoseStatus(str, Enum):
    """Derived status of a dose"""
    TAKEN = "taken"
    PENDING = "pending"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class Taken:
    """Dose with a recorded intake; delay_minutes < 0 means early"""
    actual_at: datetime
    delay_minutes: int
    status: ClassVar[DoseStatus] = DoseStatus.TAKEN


@dataclass(frozen=True)
class Pending:
    status: ClassVar[DoseStatus] = DoseStatus.PENDING


@dataclass(frozen=True)
class Overdue:
    late_minutes: int
    status: ClassVar[DoseStatus] = DoseStatus.OVERDUE


DoseState = Union[Taken, Pending, Overdue]

# Wording is fixed Portuguese copy shown to users
TAKEN_LABEL = "✓ Tomado"
PENDING_LABEL = "Pendente"
OVERDUE_LABEL = "⚠️ Atrasado há"
ON_TIME_TOLERANCE_MINUTES = 5


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, floored (negative when end is earlier)"""
    return math.floor((end - start).total_seconds() / 60)


def derive_dose_status(
    scheduled_at: datetime,
    actual_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
    grace_minutes: Optional[int] = None,
) -> DoseState:
    """
    Derive the state of a dose.

    A recorded intake always wins, however late. Without one the dose is
    overdue only once now is strictly past scheduled_at + grace.

    Args:
        scheduled_at: Scheduled time (naive UTC)
        actual_at: Recorded intake time (naive UTC), if any
        now: Reference time, defaults to utcnow
        grace_minutes: Overdue grace window, defaults to settings

    Returns:
        Taken, Pending or Overdue
    """
    if actual_at is not None:
        return Taken(actual_at=actual_at, delay_minutes=minutes_between(scheduled_at, actual_at))

    now = now or datetime.utcnow()
    grace = settings.OVERDUE_GRACE_MINUTES if grace_minutes is None else grace_minutes

    if now > scheduled_at + timedelta(minutes=grace):
        return Overdue(late_minutes=minutes_between(scheduled_at, now))
    return Pending()


def format_delay(minutes: int) -> str:
    """Render a delay magnitude: "X min", "Xh" or "Xh Ymin" (sign dropped)"""
    total = abs(int(minutes))
    if total < 60:
        return f"{total} min"
    hours, rest = divmod(total, 60)
    if rest == 0:
        return f"{hours}h"
    return f"{hours}h {rest}min"


# ==================== DISPLAY TIME ====================

def display_zone() -> ZoneInfo:
    return ZoneInfo(settings.DISPLAY_TIMEZONE)


def to_display_time(value: datetime) -> datetime:
    """Convert a stored timestamp to the display timezone (naive means UTC)"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(display_zone())


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Storage form of a timestamp: UTC without tzinfo (naive input is kept as is)"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_clock(value: datetime) -> str:
    """HH:MM of a stored timestamp in the display timezone"""
    return to_display_time(value).strftime("%H:%M")


def local_to_utc(day, clock: Union[str, time]) -> datetime:
    """
    Naive UTC datetime for a local wall-clock time on a local date.

    Used to turn a schedule's "HH:MM" into the dose's scheduled_date_time.
    """
    if isinstance(clock, str):
        clock = parse_clock(clock)
    local = datetime.combine(day, clock, tzinfo=display_zone())
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def local_today(now: Optional[datetime] = None):
    """Current date in the display timezone"""
    return to_display_time(now or datetime.utcnow()).date()


def local_day_bounds(day) -> tuple:
    """[start, end) of a local date as naive UTC datetimes"""
    return local_to_utc(day, time(0, 0)), local_to_utc(day + timedelta(days=1), time(0, 0))


def parse_clock(value: str) -> time:
    """Parse "HH:MM" into a time, raising ValueError on anything else"""
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time of day: {value!r}, expected HH:MM")


# ==================== MESSAGES ====================

def describe_dose(state: DoseState) -> str:
    """Status line of a medication card"""
    if isinstance(state, Taken):
        if state.actual_at is None:
            return TAKEN_LABEL
        message = f"{TAKEN_LABEL} às {format_clock(state.actual_at)}"
        if state.delay_minutes > 0:
            return f"{message} ({format_delay(state.delay_minutes)} atraso)"
        if state.delay_minutes < 0:
            return f"{message} ({format_delay(state.delay_minutes)} adiantado)"
        return f"{message} (No horário ✓)"
    if isinstance(state, Overdue):
        return f"{OVERDUE_LABEL} {format_delay(state.late_minutes)}"
    return PENDING_LABEL


def taken_notification_phrase(delay_minutes: int) -> str:
    """Timing phrase of the "Medicamento Tomado" notification"""
    if abs(delay_minutes) <= ON_TIME_TOLERANCE_MINUTES:
        return "no horário correto"

    hours, minutes = divmod(abs(delay_minutes), 60)
    amount = f"{hours}h {minutes}min" if hours > 0 else f"{minutes}min"
    if delay_minutes > 0:
        return f"com {amount} de atraso"
    return f"{amount} adiantado"


# ==================== ORDERING ====================

EARLY_MORNING_END_HOUR = 6

_STATUS_ORDER = {
    DoseStatus.OVERDUE: 0,
    DoseStatus.PENDING: 1,
    DoseStatus.TAKEN: 2,
}


def time_of_day_sort_key(value: Union[str, time, datetime]) -> tuple:
    """
    Sort key for doses of one day.

    00:00-05:59 form the first group, 06:00-23:59 the second, each
    chronological. Datetimes are read in the display timezone.
    """
    if isinstance(value, datetime):
        value = to_display_time(value).time()
    elif isinstance(value, str):
        value = parse_clock(value)
    group = 0 if value.hour < EARLY_MORNING_END_HOUR else 1
    return (group, value.hour * 60 + value.minute)


def sort_by_time_of_day(items: Iterable[Any], scheduled_of: Callable[[Any], Any]) -> List[Any]:
    return sorted(items, key=lambda item: time_of_day_sort_key(scheduled_of(item)))


def sort_today_logs(logs: Iterable[Any], now: Optional[datetime] = None) -> List[Any]:
    """Order a day's logs overdue first, then pending, then taken, each by time of day"""
    now = now or datetime.utcnow()

    def _key(log):
        state = derive_dose_status(log.scheduled_date_time, log.actual_date_time, now)
        return (_STATUS_ORDER[state.status], time_of_day_sort_key(log.scheduled_date_time))

    return sorted(logs, key=_key)
