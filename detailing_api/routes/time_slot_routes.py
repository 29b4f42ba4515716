import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode, success_body
from detailing_api.auth.dependencies import require_admin
from detailing_api.database import get_db
from detailing_api.models.booking import Booking
from detailing_api.models.time_slot import TimeSlot
from detailing_api.models.user import UserProfile
from detailing_api.scheduling.availability import intervals_overlap
from detailing_api.scheduling.status_transitions import ACTIVE_STATUSES
from detailing_api.schemas import (
    TimeSlotBulkCreateRequest,
    TimeSlotCreateRequest,
    TimeSlotResponse,
    TimeSlotUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=['time-slots'])

MAX_RANGE_DAYS = 62


def count_held_bookings(time_slot_ids: list[str], db: Session) -> dict[str, int]:
    if not time_slot_ids:
        return {}

    rows = db.query(Booking.time_slot_id, func.count(Booking.id)).filter(
        Booking.time_slot_id.in_(time_slot_ids),
        Booking.status.in_(ACTIVE_STATUSES),
    ).group_by(Booking.time_slot_id).all()
    return {time_slot_id: count for time_slot_id, count in rows}


def find_overlapping_window(
    slot_date: date,
    start_time,
    end_time,
    db: Session,
    exclude_id: str | None = None,
) -> TimeSlot | None:
    query = db.query(TimeSlot).filter(TimeSlot.slot_date == slot_date)
    if exclude_id is not None:
        query = query.filter(TimeSlot.id != exclude_id)

    new_start = datetime.combine(slot_date, start_time)
    new_end = datetime.combine(slot_date, end_time)
    for window in query.all():
        if intervals_overlap(
            new_start,
            new_end,
            datetime.combine(slot_date, window.start_time),
            datetime.combine(slot_date, window.end_time),
        ):
            return window
    return None


def serialize_window(window: TimeSlot, held_bookings: int) -> dict:
    payload = TimeSlotResponse.model_validate(window).model_dump(mode='json')
    payload['current_bookings'] = held_bookings
    return payload


@router.get('')
def list_time_slots(
    start: date = Query(...),
    end: date | None = Query(default=None),
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    range_end = end or start
    if range_end < start:
        raise ApiError(ErrorCode.VALIDATION_ERROR, 'end must be on or after start.')
    if (range_end - start).days > MAX_RANGE_DAYS:
        raise ApiError(ErrorCode.INVALID_INPUT, f'Date range cannot exceed {MAX_RANGE_DAYS} days.')

    try:
        windows = db.query(TimeSlot).filter(
            TimeSlot.slot_date >= start,
            TimeSlot.slot_date <= range_end,
        ).order_by(TimeSlot.slot_date.asc(), TimeSlot.start_time.asc()).all()
        held = count_held_bookings([window.id for window in windows], db)
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body([serialize_window(window, held.get(window.id, 0)) for window in windows])


@router.post('', status_code=status.HTTP_201_CREATED)
def create_time_slot(
    data: TimeSlotCreateRequest,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        overlapping = find_overlapping_window(data.slot_date, data.start_time, data.end_time, db)
        if overlapping is not None:
            raise ApiError(
                ErrorCode.OVERLAP_DETECTED,
                f'Time slot overlaps an existing slot ({overlapping.start_time}-{overlapping.end_time}).',
            )

        window = TimeSlot(
            slot_date=data.slot_date,
            start_time=data.start_time,
            end_time=data.end_time,
            max_bookings=data.max_bookings,
            is_available=True,
            closed_by_admin=False,
            notes=data.notes,
        )
        db.add(window)
        db.commit()
        db.refresh(window)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    logger.info('Admin %s created time slot %s on %s', admin.id, window.id, window.slot_date)
    return success_body(serialize_window(window, 0))


def iter_bulk_dates(data: TimeSlotBulkCreateRequest):
    """Dates in range whose weekday is selected. Weekdays count from Sunday = 0."""
    excluded = set(data.exclude_dates)
    current = data.start_date
    while current <= data.end_date:
        if (current.weekday() + 1) % 7 in data.days_of_week and current not in excluded:
            yield current
        current += timedelta(days=1)


@router.post('/bulk', status_code=status.HTTP_201_CREATED)
def bulk_create_time_slots(
    data: TimeSlotBulkCreateRequest,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if (data.end_date - data.start_date).days > MAX_RANGE_DAYS:
        raise ApiError(ErrorCode.INVALID_INPUT, f'Date range cannot exceed {MAX_RANGE_DAYS} days.')

    created = []
    skipped = []
    try:
        for slot_date in iter_bulk_dates(data):
            for template in data.time_slots:
                end_time = template.end_time
                if find_overlapping_window(slot_date, template.start_time, end_time, db) is not None:
                    skipped.append({'slot_date': slot_date, 'start_time': template.start_time})
                    continue

                window = TimeSlot(
                    slot_date=slot_date,
                    start_time=template.start_time,
                    end_time=end_time,
                    max_bookings=data.max_bookings,
                    is_available=True,
                    closed_by_admin=False,
                    notes=data.notes,
                )
                db.add(window)
                # Later templates on the same date must see this window.
                db.flush()
                created.append(window)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    dates_covered = len({window.slot_date for window in created})
    logger.info(
        'Admin %s bulk created %s time slots across %s dates (%s skipped)',
        admin.id,
        len(created),
        dates_covered,
        len(skipped),
    )
    return success_body({
        'created_slots': [serialize_window(window, 0) for window in created],
        'dates_covered': dates_covered,
        'skipped': skipped,
        'message': f'Successfully created {len(created)} time slots across {dates_covered} dates',
    })


@router.patch('/{slot_id}')
def update_time_slot(
    slot_id: str,
    data: TimeSlotUpdateRequest,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        window = db.query(TimeSlot).filter(TimeSlot.id == slot_id).with_for_update().first()
        if window is None:
            raise ApiError(ErrorCode.NOT_FOUND, 'Time slot not found')

        start_time = data.start_time or window.start_time
        end_time = data.end_time or window.end_time
        if start_time >= end_time:
            raise ApiError(ErrorCode.VALIDATION_ERROR, 'end_time must be after start_time.')

        overlapping = find_overlapping_window(window.slot_date, start_time, end_time, db, exclude_id=window.id)
        if overlapping is not None:
            raise ApiError(ErrorCode.OVERLAP_DETECTED, 'Time slot overlaps an existing slot.')

        held_bookings = db.query(Booking).filter(
            Booking.time_slot_id == window.id,
            Booking.status.in_(ACTIVE_STATUSES),
        ).all()
        held = len(held_bookings)
        outside = [
            booking for booking in held_bookings
            if booking.scheduled_start_time < start_time or booking.scheduled_end_time > end_time
        ]
        if outside:
            raise ApiError(
                ErrorCode.TIME_SLOT_BOOKED,
                'Time slot has active bookings outside the new time range. Reschedule them first.',
                details={'booking_ids': [booking.id for booking in outside]},
            )

        max_bookings = window.max_bookings if data.max_bookings is None else data.max_bookings
        if max_bookings < held:
            raise ApiError(
                ErrorCode.INVALID_INPUT,
                f'Time slot already holds {held} bookings; max_bookings cannot be lower.',
            )

        window.start_time = start_time
        window.end_time = end_time
        window.max_bookings = max_bookings
        if data.notes is not None:
            window.notes = data.notes.strip() or None
        if data.is_available is not None:
            window.closed_by_admin = not data.is_available
        window.is_available = not window.closed_by_admin and held < max_bookings

        db.commit()
        db.refresh(window)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    logger.info('Admin %s updated time slot %s', admin.id, window.id)
    return success_body(serialize_window(window, held))


@router.delete('/{slot_id}')
def delete_time_slot(
    slot_id: str,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        window = db.query(TimeSlot).filter(TimeSlot.id == slot_id).with_for_update().first()
        if window is None:
            raise ApiError(ErrorCode.NOT_FOUND, 'Time slot not found')

        held = count_held_bookings([window.id], db).get(window.id, 0)
        if held:
            raise ApiError(
                ErrorCode.TIME_SLOT_BOOKED,
                'Cannot delete a time slot with active bookings. Cancel or reschedule them first.',
            )

        db.query(Booking).filter(Booking.time_slot_id == window.id).update(
            {Booking.time_slot_id: None},
            synchronize_session=False,
        )
        db.delete(window)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    logger.info('Admin %s deleted time slot %s', admin.id, slot_id)
    return success_body({'id': slot_id, 'deleted': True})
