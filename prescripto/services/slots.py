"""
Per-doctor slot map helpers.

A slot map maps a date-key (``DD_MM_YYYY``) to the list of booked time
strings for that day. The helpers never mutate their input; they return a new
dict which the caller assigns back to ``Doctor.slots_booked`` so the JSON
column is flushed (together with the doctor's version bump).

Invariants kept here: a time appears at most once per date-key, and a
date-key is only present while its list is non-empty.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from ..core.exceptions import Conflict, ValidationFailed

SlotMap = Dict[str, List[str]]


def date_key(day: date, padded: bool = True) -> str:
    if padded:
        return f"{day.day:02d}_{day.month:02d}_{day.year}"
    return f"{day.day}_{day.month}_{day.year}"


def parse_date_key(key: str) -> date:
    """Parse ``DD_MM_YYYY`` (unpadded day and month accepted)."""
    try:
        day, month, year = key.split("_")
        return datetime(int(year), int(month), int(day)).date()
    except (AttributeError, ValueError):
        raise ValidationFailed("Invalid slot date")


def equivalent_keys(slot_date: str) -> List[str]:
    """``slot_date`` followed by the other spellings of the same calendar day.

    Maps written before keys were normalized can hold unpadded keys
    (``5_3_2025``) next to padded ones.
    """
    keys = [slot_date]
    try:
        day = parse_date_key(slot_date)
    except ValidationFailed:
        return keys
    for key in (date_key(day), date_key(day, padded=False)):
        if key not in keys:
            keys.append(key)
    return keys


def is_booked(slots_booked: Optional[SlotMap], slot_date: str, slot_time: str) -> bool:
    booked = slots_booked or {}
    return any(slot_time in booked.get(key, []) for key in equivalent_keys(slot_date))


def reserve(slots_booked: Optional[SlotMap], slot_date: str, slot_time: str) -> SlotMap:
    """Return a copy of the map with ``slot_time`` booked on ``slot_date``."""
    if is_booked(slots_booked, slot_date, slot_time):
        raise Conflict("Slot is not available")

    updated = {key: list(times) for key, times in (slots_booked or {}).items() if times}
    updated.setdefault(slot_date, []).append(slot_time)
    return updated


def release(slots_booked: Optional[SlotMap], slot_date: str, slot_time: str) -> SlotMap:
    """Return a copy of the map without ``slot_time`` on ``slot_date``.

    The time is taken from ``slot_date`` itself when booked there, otherwise
    from the first other spelling of that day that holds it. Releasing a time
    that is not booked is a no-op. Emptied date-keys are dropped.
    """
    booked = slots_booked or {}
    holder = next(
        (key for key in equivalent_keys(slot_date) if slot_time in booked.get(key, [])),
        None,
    )

    updated = {}
    for key, times in booked.items():
        if key == holder:
            times = [t for t in times if t != slot_time]
        if times:
            updated[key] = list(times)
    return updated
