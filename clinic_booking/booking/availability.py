"""Availability engine: overlap predicate, business spans and bookable slots.

Everything in this module is pure. Callers fetch services, windows and
appointments immediately before calling in; nothing is cached between calls.
All interval arithmetic is done on minute-of-day integers and every overlap
decision goes through :func:`intervals_overlap`.
"""

from __future__ import annotations

import uuid
from datetime import date, time, timedelta
from typing import Iterable, Optional, Sequence, Union

from clinic_booking.booking.models import (
    Appointment,
    BusinessHourWindow,
    BusinessSpan,
    Service,
    Slot,
)

MINUTES_PER_DAY = 24 * 60
DEFAULT_STEP_MINUTES = 30

TimeLike = Union[time, str, int]


# ------------------------------------------------------------------
# Time parsing
# ------------------------------------------------------------------

def to_minutes(value: TimeLike) -> int:
    """Convert ``HH:MM[:SS]``, a ``time`` or a minute count to minute-of-day.

    Seconds are truncated.
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a time value")
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, time):
        minutes = value.hour * 60 + value.minute
    elif isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
            raise ValueError(f"Invalid time string: {value!r}")
        hours, mins = int(parts[0]), int(parts[1])
        secs = int(parts[2]) if len(parts) == 3 else 0
        if hours > 23 or mins > 59 or secs > 59:
            raise ValueError(f"Time out of range: {value!r}")
        minutes = hours * 60 + mins
    else:
        raise TypeError(f"Cannot convert {type(value).__name__} to minutes")

    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute-of-day out of range: {minutes}")
    return minutes


def minutes_to_time(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute-of-day out of range: {minutes}")
    return time(minutes // 60, minutes % 60)


def parse_time(value: TimeLike) -> time:
    return minutes_to_time(to_minutes(value))


def format_time(value: TimeLike) -> str:
    """Render as zero-padded ``HH:MM``."""
    minutes = to_minutes(value)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(target: date) -> int:
    """Weekday with 0=Sunday..6=Saturday, the convention windows are stored in."""
    return (target.weekday() + 1) % 7


def compute_end_minutes(start: TimeLike, duration_minutes: int) -> int:
    """End minute for a service starting at *start*.

    May return a value >= MINUTES_PER_DAY; callers reject those as crossing
    midnight.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    return to_minutes(start) + duration_minutes


# ------------------------------------------------------------------
# Overlap
# ------------------------------------------------------------------

def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap. Back-to-back intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def conflicting_appointments(
    appointment_date: date,
    start: TimeLike,
    end: TimeLike | int,
    existing: Iterable[Appointment],
    exclude_id: Optional[uuid.UUID] = None,
) -> list[Appointment]:
    """Non-cancelled appointments on *appointment_date* overlapping [start, end)."""
    start_min = to_minutes(start)
    end_min = end if isinstance(end, int) and not isinstance(end, bool) else to_minutes(end)

    conflicts: list[Appointment] = []
    for appt in existing:
        if appt.appointment_date != appointment_date or not appt.occupies_slot:
            continue
        if exclude_id is not None and appt.id == exclude_id:
            continue
        if intervals_overlap(
            start_min, end_min, to_minutes(appt.start_time), to_minutes(appt.end_time)
        ):
            conflicts.append(appt)
    return conflicts


def is_slot_free(
    appointment_date: date,
    start: TimeLike,
    end: TimeLike | int,
    existing: Iterable[Appointment],
    exclude_id: Optional[uuid.UUID] = None,
) -> bool:
    """True when no non-cancelled appointment on that date overlaps [start, end)."""
    return not conflicting_appointments(appointment_date, start, end, existing, exclude_id)


# ------------------------------------------------------------------
# Business hours
# ------------------------------------------------------------------

def windows_for_day(
    windows: Iterable[BusinessHourWindow], weekday: int
) -> list[BusinessHourWindow]:
    return [w for w in windows if w.is_active and w.day_of_week == weekday]


def compute_business_span(
    windows: Iterable[BusinessHourWindow], weekday: int
) -> Optional[BusinessSpan]:
    """Merged [earliest start, latest end] of the weekday's active windows.

    Disjoint windows collapse into one span; ``None`` means the day is closed.
    """
    day_windows = windows_for_day(windows, weekday)
    if not day_windows:
        return None
    return BusinessSpan(
        earliest_start=min(to_minutes(w.start_time) for w in day_windows),
        latest_end=max(to_minutes(w.end_time) for w in day_windows),
    )


def merge_window_runs(windows: Sequence[BusinessHourWindow]) -> list[tuple[int, int]]:
    """Contiguous runs of overlapping or adjacent windows, sorted by start."""
    intervals = sorted((to_minutes(w.start_time), to_minutes(w.end_time)) for w in windows)
    merged: list[tuple[int, int]] = []
    for start, end in intervals:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _run_end(runs: list[tuple[int, int]], minute: int) -> int:
    for start, end in runs:
        if start <= minute < end:
            return end
    return minute


def _candidate_starts(window: BusinessHourWindow, step_minutes: Optional[int]) -> list[int]:
    start = to_minutes(window.start_time)
    if not step_minutes:
        return [start]
    return list(range(start, to_minutes(window.end_time), step_minutes))


def available_slots(
    service: Service,
    target_date: date,
    windows: Iterable[BusinessHourWindow],
    existing: Iterable[Appointment],
    step_minutes: Optional[int] = DEFAULT_STEP_MINUTES,
    split_disjoint_windows: bool = False,
) -> list[Slot]:
    """Bookable [start, end) intervals for *service* on *target_date*.

    Candidate starts are each active window's start plus every
    *step_minutes* after it inside the window (``None`` keeps only the
    window start). A candidate is kept when it ends by the business span end
    (or by the end of its own window run when *split_disjoint_windows* is
    set) and no non-cancelled appointment overlaps it. The result is
    de-duplicated by start time and sorted ascending.
    """
    windows = list(windows)
    existing = list(existing)
    weekday = day_of_week(target_date)

    span = compute_business_span(windows, weekday)
    if span is None:
        return []

    day_windows = windows_for_day(windows, weekday)
    runs = merge_window_runs(day_windows) if split_disjoint_windows else []

    slots: dict[int, Slot] = {}
    for window in day_windows:
        for start in _candidate_starts(window, step_minutes):
            if start in slots:
                continue
            end = start + service.duration_minutes
            limit = _run_end(runs, start) if split_disjoint_windows else span.latest_end
            if end > limit or end >= MINUTES_PER_DAY:
                continue
            if not is_slot_free(target_date, start, end, existing):
                continue
            slots[start] = Slot(
                appointment_date=target_date,
                start_time=minutes_to_time(start),
                end_time=minutes_to_time(end),
            )

    return [slots[start] for start in sorted(slots)]


def available_dates(
    windows: Iterable[BusinessHourWindow],
    start: date,
    days: int,
) -> list[date]:
    """Dates in the *days* following *start* whose weekday has open hours."""
    open_days = {w.day_of_week for w in windows if w.is_active}
    return [
        start + timedelta(days=offset)
        for offset in range(1, days + 1)
        if day_of_week(start + timedelta(days=offset)) in open_days
    ]
