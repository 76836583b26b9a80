from __future__ import annotations

from collections.abc import Iterator
from datetime import date, time, timedelta

from app.schemas import BulkTimeSlotCreate, TimeSlotCreate, minutes_since_midnight


def _days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _at(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def day_windows(start: time, end: time, duration_minutes: int) -> list[tuple[time, time]]:
    """Consecutive [start, start + duration) windows that fit entirely before `end`."""
    windows = []
    current = minutes_since_midnight(start)
    end_minutes = minutes_since_midnight(end)
    while current + duration_minutes <= end_minutes:
        windows.append((_at(current), _at(current + duration_minutes)))
        current += duration_minutes
    return windows


def generate_time_slots(params: BulkTimeSlotCreate) -> list[TimeSlotCreate]:
    """
    Expand a bulk request into individual slot drafts, day by day.
    Assumes the request was already validated; never emits a slot crossing midnight.
    """
    windows = day_windows(params.start_time, params.end_time, params.slot_duration_minutes)
    return [
        TimeSlotCreate(
            date=day,
            start_time=slot_start,
            end_time=slot_end,
            type=params.type,
            item_id=params.item_id,
            is_available=True,
            max_capacity=params.max_capacity,
            price=params.price,
        )
        for day in _days(params.start_date, params.end_date)
        if day.weekday() not in params.exclude_weekdays
        for slot_start, slot_end in windows
    ]


def batched(items: list, size: int) -> Iterator[list]:
    for i in range(0, len(items), size):
        yield items[i : i + size]
