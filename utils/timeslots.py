"""Time window helpers for the conference day.

Slots are stored as strings like ``"16:15 - 16:30"``. Teachers in the dual
system meet visitors between 16:00 and 18:00, full-time (vollzeit) teachers
between 17:00 and 19:00.
"""
import re
from datetime import date, datetime
from typing import List, Optional, Tuple

SYSTEM_HOURS = {
    "dual": (16, 18),
    "vollzeit": (17, 19),
}

SLOT_MINUTES = 15
REQUEST_WINDOW_MINUTES = 30

_RANGE = re.compile(r"^(\d{2}):(\d{2})\s*-\s*(\d{2}):(\d{2})$")


def normalize_system(system) -> str:
    return "vollzeit" if system == "vollzeit" else "dual"


def _fmt(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _ranges(start: int, end: int, step: int) -> List[str]:
    out = []
    m = start
    while m + step <= end:
        out.append(f"{_fmt(m)} - {_fmt(m + step)}")
        m += step
    return out


def _system_bounds(system) -> Tuple[int, int]:
    start_hour, end_hour = SYSTEM_HOURS[normalize_system(system)]
    return start_hour * 60, end_hour * 60


def generate_time_slots(system) -> List[str]:
    """Quarter-hour slot ranges for a teacher system."""
    start, end = _system_bounds(system)
    return _ranges(start, end, SLOT_MINUTES)


def requested_time_windows(system) -> List[str]:
    """Half-hour windows a visitor may pick when sending a request."""
    start, end = _system_bounds(system)
    return _ranges(start, end, REQUEST_WINDOW_MINUTES)


def parse_time_range(value) -> Optional[Tuple[int, int]]:
    """
    Returns (start_minutes, end_minutes) or None for malformed/empty ranges.
    """
    if not isinstance(value, str):
        return None
    m = _RANGE.match(value.strip())
    if not m:
        return None
    start = int(m.group(1)) * 60 + int(m.group(2))
    end = int(m.group(3)) * 60 + int(m.group(4))
    if end <= start:
        return None
    return start, end


def is_valid_time_range(value) -> bool:
    return parse_time_range(value) is not None


def normalize_time_range(value) -> Optional[str]:
    parsed = parse_time_range(value)
    if not parsed:
        return None
    return f"{_fmt(parsed[0])} - {_fmt(parsed[1])}"


def assignable_times_for_window(requested_time) -> List[str]:
    parsed = parse_time_range(requested_time)
    if not parsed:
        return []
    return _ranges(parsed[0], parsed[1], SLOT_MINUTES)


def assignable_times_for_system(system) -> List[str]:
    result = []
    for window in requested_time_windows(system):
        for t in assignable_times_for_window(window):
            if t not in result:
                result.append(t)
    return result


def format_event_date(day: date) -> str:
    # Slots carry the German date format shown to visitors
    return day.strftime("%d.%m.%Y")


def parse_iso_date(value) -> Optional[date]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def is_event_date_string(value) -> bool:
    """True for the ``DD.MM.YYYY`` form slots are stored with."""
    if not isinstance(value, str):
        return False
    try:
        datetime.strptime(value, "%d.%m.%Y")
    except ValueError:
        return False
    return True
