"""Availability rules for artist bookings.

Everything here is pure: callers load the artist's schedule and the
bookings for the dates in question and pass them in. Precedence when
deciding whether ``[start, end)`` on a date is bookable:

1. blocked dates always win;
2. a special-date override replaces the weekly hours for that date;
3. otherwise the weekly hours for the weekday apply;
4. the interval must fit inside a single open slot of the effective day;
5. it must not collide with any active booking on that date.
"""

from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from typing import Any

from inkbook.models.availability import (
    WEEKDAYS,
    AvailabilitySchedule,
    DaySchedule,
    SlotView,
    TimeSlot,
)
from inkbook.models.bookings import ACTIVE_STATUSES, BookingStatus


def validate_schedule(document: Mapping[str, Any] | AvailabilitySchedule) -> AvailabilitySchedule:
    """Return ``document`` as a checked schedule.

    Raises ``ValueError`` (pydantic's ``ValidationError``) for malformed
    times, reversed slots, overlapping slots within a day or bad dates.
    """
    if isinstance(document, AvailabilitySchedule):
        document = document.model_dump()
    return AvailabilitySchedule.model_validate(document)


def to_minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def weekday_name(d: date) -> str:
    return WEEKDAYS[d.weekday()]


def effective_slots(schedule: AvailabilitySchedule, day: date) -> list[TimeSlot]:
    """Open slots governing bookability on ``day``.

    An empty list means nothing on that date can be booked.
    """
    iso = day.isoformat()
    if iso in schedule.blocked_dates:
        return []
    if iso in schedule.special_dates:
        slots = schedule.special_dates[iso]
    else:
        slots = schedule.weekly_schedule.get(weekday_name(day), [])
    return [s for s in slots if not s.is_booked]


def intervals_conflict(start: int, end: int, b_start: int, b_end: int) -> bool:
    if b_start <= start < b_end:
        return True
    if b_start < end <= b_end:
        return True
    return start <= b_start and end >= b_end


def is_active(booking: Mapping[str, Any]) -> bool:
    try:
        return BookingStatus(booking["status"]) in ACTIVE_STATUSES
    except ValueError:
        return False


def find_conflict(
    start_time: str,
    end_time: str,
    bookings: Iterable[Mapping[str, Any]],
    exclude_id: str | None = None,
) -> Mapping[str, Any] | None:
    start, end = to_minutes(start_time), to_minutes(end_time)
    for b in bookings:
        if exclude_id is not None and b.get("id") == exclude_id:
            continue
        if not is_active(b):
            continue
        if intervals_conflict(start, end, to_minutes(b["start_time"]), to_minutes(b["end_time"])):
            return b
    return None


def resolve_availability(
    schedule: AvailabilitySchedule,
    day: date,
    start_time: str,
    end_time: str,
    bookings: Iterable[Mapping[str, Any]],
    exclude_id: str | None = None,
) -> bool:
    """Return True when ``[start_time, end_time)`` on ``day`` can be booked.

    ``bookings`` are the artist's bookings on ``day``; inactive ones are
    ignored, as is the booking named by ``exclude_id`` (used when a booking
    is being moved and must not collide with itself).
    """
    slots = effective_slots(schedule, day)
    if not slots:
        return False
    start, end = to_minutes(start_time), to_minutes(end_time)
    if not any(start >= to_minutes(s.start) and end <= to_minutes(s.end) for s in slots):
        return False
    return find_conflict(start_time, end_time, bookings, exclude_id) is None


def iter_dates(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def build_day_schedules(
    schedule: AvailabilitySchedule,
    start: date,
    end: date,
    bookings: Iterable[Mapping[str, Any]],
    slot_minutes: int = 30,
) -> list[DaySchedule]:
    """Lay a fixed grid over each day's effective windows.

    Each grid cell is marked unavailable when an active booking collides
    with it.
    """
    by_date: dict[str, list[Mapping[str, Any]]] = {}
    for b in bookings:
        if is_active(b):
            by_date.setdefault(b["date"], []).append(b)

    days: list[DaySchedule] = []
    for day in iter_dates(start, end):
        iso = day.isoformat()
        windows = effective_slots(schedule, day)
        day_bookings = by_date.get(iso, [])
        if not windows:
            days.append(DaySchedule(date=iso, is_available=False, slots=[], total_bookings=len(day_bookings)))
            continue
        cells: list[SlotView] = []
        for window in sorted(windows, key=lambda s: s.start):
            cursor = to_minutes(window.start)
            window_end = to_minutes(window.end)
            while cursor + slot_minutes <= window_end:
                cell_start, cell_end = from_minutes(cursor), from_minutes(cursor + slot_minutes)
                hit = find_conflict(cell_start, cell_end, day_bookings)
                cells.append(
                    SlotView(
                        start_time=cell_start,
                        end_time=cell_end,
                        available=hit is None,
                        booking_id=hit.get("id") if hit else None,
                    )
                )
                cursor += slot_minutes
        days.append(
            DaySchedule(
                date=iso,
                is_available=any(c.available for c in cells),
                slots=cells,
                total_bookings=len(day_bookings),
            )
        )
    return days
