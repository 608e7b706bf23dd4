"""Collection slot arithmetic."""

from __future__ import annotations

from datetime import datetime

from brave_federated.constants import MINUTES_PER_DAY


def minutes_since_start_of_month(now: datetime) -> int:
    """Minutes elapsed since local midnight on the first day of *now*'s month."""
    return (now.day - 1) * MINUTES_PER_DAY + now.hour * 60 + now.minute


def get_current_collection_slot(now: datetime, slot_size_minutes: int) -> int:
    """Index of the slot containing local time *now*.

    Slots are counted from the start of the calendar month, so the index
    grows through the month and falls back to 0 on the 1st.
    """
    if slot_size_minutes <= 0:
        raise ValueError("slot_size_minutes must be positive")
    return minutes_since_start_of_month(now) // slot_size_minutes
