"""Time window availability evaluation.

Decides which time windows on a date can still host a booking of a given
duration. The checks are pure functions over rows that have already been
fetched: nothing here touches the database, so the same code backs both the
read-only slot listing and the re-validation done inside the booking write
transaction.

Overlap uses half-open intervals: ``[start, end)``. A booking that ends at
10:00 does not conflict with a window that starts at 10:00.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

from pydantic import BaseModel

BLOCKING_BOOKING_STATUSES = ('confirmed', 'in_progress')

MINUTES_PER_DAY = 24 * 60


class AvailabilityResult(BaseModel):
    window_id: str
    date: date
    start_time: time
    end_time: time
    current_bookings: int
    max_bookings: int
    fits_duration: bool
    has_conflict: bool
    has_capacity: bool
    is_available: bool


def intervals_overlap(
    first_start: datetime,
    first_end: datetime,
    second_start: datetime,
    second_end: datetime,
) -> bool:
    return first_start < second_end and first_end > second_start


def _at(slot_date: date, value: time) -> datetime:
    return datetime.combine(slot_date, value)


def booking_conflicts_with_window(
    booking,
    window,
    slot_date: date,
    service_end: datetime,
) -> bool:
    if booking.time_slot_id is not None and booking.time_slot_id == window.id:
        return True

    return intervals_overlap(
        _at(slot_date, window.start_time),
        service_end,
        _at(slot_date, booking.scheduled_start_time),
        _at(slot_date, booking.scheduled_end_time),
    )


def evaluate_time_window(
    window,
    bookings: Sequence,
    duration_minutes: int,
    slot_date: date,
) -> AvailabilityResult:
    """Evaluate one window against the bookings already on its date.

    ``bookings`` must already be limited to the blocking statuses; the
    evaluator does not filter them again.
    """
    window_start = _at(slot_date, window.start_time)
    window_end = _at(slot_date, window.end_time)
    window_minutes = (window_end - window_start).total_seconds() // 60
    fits_duration = duration_minutes <= window_minutes
    # Capped at one day; no window is longer than that.
    service_end = window_start + timedelta(minutes=min(duration_minutes, MINUTES_PER_DAY))
    has_conflict = any(
        booking_conflicts_with_window(booking, window, slot_date, service_end)
        for booking in bookings
    )
    current_bookings = sum(1 for booking in bookings if booking.time_slot_id == window.id)
    max_bookings = window.max_bookings or 0
    has_capacity = current_bookings < max_bookings

    return AvailabilityResult(
        window_id=str(window.id),
        date=slot_date,
        start_time=window.start_time,
        end_time=window.end_time,
        current_bookings=current_bookings,
        max_bookings=max_bookings,
        fits_duration=fits_duration,
        has_conflict=has_conflict,
        has_capacity=has_capacity,
        is_available=fits_duration and not has_conflict and has_capacity,
    )


def evaluate_time_windows(
    windows: Iterable,
    bookings: Sequence,
    duration_minutes: int,
    slot_date: date,
) -> list[AvailabilityResult]:
    return [
        evaluate_time_window(window, bookings, duration_minutes, slot_date)
        for window in windows
    ]


def find_available_windows(
    windows: Iterable,
    bookings: Sequence,
    duration_minutes: int,
    slot_date: date,
) -> list[AvailabilityResult]:
    """Return the windows that can host a new booking, in input order."""
    return [
        result
        for result in evaluate_time_windows(windows, bookings, duration_minutes, slot_date)
        if result.is_available
    ]
