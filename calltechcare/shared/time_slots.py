"""Appointment windows shared by the booking wizard and quote requests"""

from datetime import datetime
from typing import NamedTuple, Optional

from .validators import parse_iso_date

MINIMUM_HOURS_AHEAD = 3


class TimeSlot(NamedTuple):
    label: str
    value: str
    start_hour: int


STANDARD_TIME_SLOTS = (
    TimeSlot("8:00 AM - 11:00 AM", "08:00-11:00", 8),
    TimeSlot("11:00 AM - 2:00 PM", "11:00-14:00", 11),
    TimeSlot("2:00 PM - 5:00 PM", "14:00-17:00", 14),
    TimeSlot("5:00 PM - 8:00 PM", "17:00-20:00", 17),
)


def get_time_slot(value: Optional[str]) -> Optional[TimeSlot]:
    for slot in STANDARD_TIME_SLOTS:
        if slot.value == value:
            return slot
    return None


def is_time_slot_available(
    date_iso: Optional[str],
    start_hour: int,
    minimum_hours_ahead: int = MINIMUM_HOURS_AHEAD,
    now: Optional[datetime] = None,
) -> bool:
    """
    Future dates are always available and past dates never are.
    On the current day a slot must start at least `minimum_hours_ahead` from now.
    A missing or unparseable date is treated as available.
    """
    selected = parse_iso_date(date_iso)
    if selected is None:
        return True

    now = now or datetime.now()
    today = now.date()
    if selected > today:
        return True
    if selected < today:
        return False

    current_hours = now.hour + now.minute / 60
    return start_hour >= current_hours + minimum_hours_ahead


def list_time_slots(date_iso: Optional[str], now: Optional[datetime] = None) -> list[dict]:
    return [
        {
            "label": slot.label,
            "value": slot.value,
            "available": is_time_slot_available(date_iso, slot.start_hour, now=now),
        }
        for slot in STANDARD_TIME_SLOTS
    ]
