"""Atomic booking writes.

The availability listing is advisory: two customers can both see a window as
open. Every write therefore goes through ``BookingTransactions``, which
re-checks the window with the same evaluator under a row lock and commits the
booking change, its status history row and the window's open flag together.

Routes depend on the abstract interface so tests can swap in a fake.
"""

import logging
import secrets
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from typing import Any

from fastapi import Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode
from detailing_api.core import config
from detailing_api.database import get_db
from detailing_api.models.booking import Booking, BookingStatusHistory
from detailing_api.models.reschedule_request import RescheduleRequest
from detailing_api.models.time_slot import TimeSlot
from detailing_api.scheduling.availability import BLOCKING_BOOKING_STATUSES, evaluate_time_window
from detailing_api.scheduling.status_transitions import ACTIVE_STATUSES, RESCHEDULABLE_STATUSES, validate_transition
from detailing_api.scheduling.time_validation import add_minutes, is_time_slot_past
from detailing_api.schemas import BookingResponse

logger = logging.getLogger(__name__)


class CreateBookingParams(BaseModel):
    customer_id: str
    service_id: str | None = None
    time_slot_id: str
    duration_minutes: int
    vehicle_size: str | None = None
    total_price: float | None = None
    notes: str | None = None


class RescheduleBookingParams(BaseModel):
    booking_id: str
    new_date: date | None = None
    new_time: time | None = None
    time_slot_id: str | None = None
    reschedule_request_id: str | None = None
    admin_response: str | None = None
    reason: str | None = None
    changed_by: str | None = None


class CancelBookingParams(BaseModel):
    booking_id: str
    reason: str | None = None
    changed_by: str | None = None
    admin_notes: str | None = None


class UpdateStatusParams(BaseModel):
    booking_id: str
    to_status: str
    changed_by: str | None = None
    reason: str | None = None
    notes: str | None = None


class TransactionResult(BaseModel):
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    code: str | None = None

    @classmethod
    def ok(cls, data: dict[str, Any]) -> 'TransactionResult':
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, code: str, error: str) -> 'TransactionResult':
        return cls(success=False, code=code, error=error)


class BookingTransactions(ABC):
    @abstractmethod
    def create_booking(self, params: CreateBookingParams) -> TransactionResult:
        ...

    @abstractmethod
    def reschedule_booking(self, params: RescheduleBookingParams) -> TransactionResult:
        ...

    @abstractmethod
    def cancel_booking(self, params: CancelBookingParams) -> TransactionResult:
        ...

    @abstractmethod
    def update_status(self, params: UpdateStatusParams) -> TransactionResult:
        ...


def generate_booking_reference(scheduled_date: date) -> str:
    return f'DET{scheduled_date:%y%m%d}-{secrets.token_hex(3).upper()}'


def booking_duration_minutes(booking: Booking) -> int:
    start = datetime.combine(booking.scheduled_date, booking.scheduled_start_time)
    end = datetime.combine(booking.scheduled_date, booking.scheduled_end_time)
    return int((end - start).total_seconds() // 60)


class SqlAlchemyBookingTransactions(BookingTransactions):
    def __init__(self, db: Session, buffer_minutes: int | None = None):
        self.db = db
        self.buffer_minutes = config.BOOKING_BUFFER_MINUTES if buffer_minutes is None else buffer_minutes

    def _lock_window(self, time_slot_id: str) -> TimeSlot | None:
        return self.db.query(TimeSlot).filter(TimeSlot.id == time_slot_id).with_for_update().first()

    def _lock_window_at(self, slot_date: date, start_time: time) -> TimeSlot | None:
        return self.db.query(TimeSlot).filter(
            TimeSlot.slot_date == slot_date,
            TimeSlot.start_time == start_time,
        ).order_by(TimeSlot.is_available.desc()).with_for_update().first()

    def _blocking_bookings(self, slot_date: date, exclude_booking_id: str | None = None) -> list[Booking]:
        query = self.db.query(Booking).filter(
            Booking.scheduled_date == slot_date,
            Booking.status.in_(BLOCKING_BOOKING_STATUSES),
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.all()

    def _check_window(
        self,
        window: TimeSlot | None,
        duration_minutes: int,
        exclude_booking_id: str | None = None,
        held_slot_id: str | None = None,
    ) -> TransactionResult | None:
        if window is None:
            return TransactionResult.failed(ErrorCode.NOT_FOUND, 'Selected time slot not found')

        if not window.is_available and window.id != held_slot_id:
            return TransactionResult.failed(
                ErrorCode.TIME_SLOT_UNAVAILABLE,
                'Selected time slot is no longer available',
            )

        if is_time_slot_past(window.slot_date, window.start_time, self.buffer_minutes):
            return TransactionResult.failed(ErrorCode.INVALID_INPUT, 'Cannot book time slots in the past')

        bookings = self._blocking_bookings(window.slot_date, exclude_booking_id)
        result = evaluate_time_window(window, bookings, duration_minutes, window.slot_date)
        if result.is_available:
            return None

        if not result.fits_duration:
            return TransactionResult.failed(
                ErrorCode.TIME_SLOT_UNAVAILABLE,
                'The service duration does not fit in the selected time slot',
            )
        if result.current_bookings > 0 or not result.has_capacity:
            return TransactionResult.failed(ErrorCode.TIME_SLOT_BOOKED, 'Selected time slot is already booked')
        return TransactionResult.failed(
            ErrorCode.OVERLAP_DETECTED,
            'Selected time overlaps an existing booking',
        )

    def _refresh_window_availability(self, time_slot_id: str | None) -> None:
        if time_slot_id is None:
            return

        window = self.db.query(TimeSlot).filter(TimeSlot.id == time_slot_id).first()
        if window is None:
            return

        self.db.flush()
        held = self.db.query(Booking).filter(
            Booking.time_slot_id == time_slot_id,
            Booking.status.in_(ACTIVE_STATUSES),
        ).count()
        window.is_available = not window.closed_by_admin and held < (window.max_bookings or 0)

    def _record_status_change(
        self,
        booking: Booking,
        from_status: str | None,
        to_status: str,
        changed_by: str | None,
        reason: str,
        notes: str | None = None,
    ) -> None:
        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            reason=reason,
            notes=notes,
        ))

    def _database_failure(self, action: str) -> TransactionResult:
        self.db.rollback()
        logger.exception('Database error while trying to %s', action)
        return TransactionResult.failed(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE)

    def create_booking(self, params: CreateBookingParams) -> TransactionResult:
        try:
            window = self._lock_window(params.time_slot_id)
            rejection = self._check_window(window, params.duration_minutes)
            if rejection is not None:
                self.db.rollback()
                logger.info('Booking rejected for slot %s: %s', params.time_slot_id, rejection.code)
                return rejection

            # fits_duration already holds, so the end never crosses midnight.
            end_time = add_minutes(window.start_time, params.duration_minutes)

            booking = Booking(
                booking_reference=generate_booking_reference(window.slot_date),
                customer_id=params.customer_id,
                service_id=params.service_id,
                time_slot_id=window.id,
                scheduled_date=window.slot_date,
                scheduled_start_time=window.start_time,
                scheduled_end_time=end_time,
                status='pending',
                vehicle_size=params.vehicle_size,
                total_price=params.total_price,
                notes=params.notes,
            )
            self.db.add(booking)
            self.db.flush()

            self._record_status_change(booking, None, 'pending', params.customer_id, 'Booking created')
            self._refresh_window_availability(window.id)

            self.db.commit()
            self.db.refresh(booking)
        except SQLAlchemyError:
            return self._database_failure('create a booking')

        logger.info('Created booking %s in slot %s', booking.booking_reference, booking.time_slot_id)
        return TransactionResult.ok(BookingResponse.model_validate(booking).model_dump(mode='json'))

    def reschedule_booking(self, params: RescheduleBookingParams) -> TransactionResult:
        try:
            booking = self.db.query(Booking).filter(Booking.id == params.booking_id).with_for_update().first()
            if booking is None:
                self.db.rollback()
                return TransactionResult.failed(ErrorCode.NOT_FOUND, 'Booking not found')

            if booking.status not in RESCHEDULABLE_STATUSES:
                self.db.rollback()
                return TransactionResult.failed(
                    ErrorCode.INVALID_STATUS_TRANSITION,
                    f'Cannot reschedule booking with status: {booking.status}',
                )

            if params.time_slot_id is not None:
                window = self._lock_window(params.time_slot_id)
            elif params.new_date is not None and params.new_time is not None:
                window = self._lock_window_at(params.new_date, params.new_time)
            else:
                self.db.rollback()
                return TransactionResult.failed(ErrorCode.INVALID_INPUT, 'New date and time are required')

            duration_minutes = booking_duration_minutes(booking)
            rejection = self._check_window(
                window,
                duration_minutes,
                exclude_booking_id=booking.id,
                held_slot_id=booking.time_slot_id,
            )
            if rejection is not None:
                self.db.rollback()
                logger.info('Reschedule of booking %s rejected: %s', booking.id, rejection.code)
                return rejection

            original_status = booking.status
            old_date = booking.scheduled_date
            old_time = booking.scheduled_start_time
            old_time_slot_id = booking.time_slot_id

            booking.scheduled_date = window.slot_date
            booking.scheduled_start_time = window.start_time
            booking.scheduled_end_time = add_minutes(window.start_time, duration_minutes)
            booking.time_slot_id = window.id
            booking.status = 'rescheduled'

            notes = f'Rescheduled from {old_date} {old_time} to {window.slot_date} {window.start_time}'
            if params.reason:
                notes = f'{notes}\nAdditional reason: {params.reason}'
            self._record_status_change(
                booking,
                original_status,
                'rescheduled',
                params.changed_by,
                'Booking rescheduled',
                notes,
            )

            if params.reschedule_request_id is not None:
                request = self.db.query(RescheduleRequest).filter(
                    RescheduleRequest.id == params.reschedule_request_id,
                ).first()
                if request is None or request.booking_id != booking.id:
                    self.db.rollback()
                    return TransactionResult.failed(ErrorCode.NOT_FOUND, 'Reschedule request not found')
                request.status = 'approved'
                request.admin_response = params.admin_response or 'Reschedule request approved'
                request.responded_at = datetime.now()

            if old_time_slot_id != window.id:
                self._refresh_window_availability(old_time_slot_id)
            self._refresh_window_availability(window.id)

            self.db.commit()
        except SQLAlchemyError:
            return self._database_failure('reschedule a booking')

        logger.info('Rescheduled booking %s from %s %s to %s %s', booking.id, old_date, old_time,
                    booking.scheduled_date, booking.scheduled_start_time)
        return TransactionResult.ok({
            'booking_id': booking.id,
            'reschedule_request_id': params.reschedule_request_id,
            'old_date': old_date.isoformat(),
            'old_time': old_time.isoformat(),
            'new_date': booking.scheduled_date.isoformat(),
            'new_time': booking.scheduled_start_time.isoformat(),
            'old_time_slot_id': old_time_slot_id,
            'new_time_slot_id': booking.time_slot_id,
            'original_status': original_status,
        })

    def cancel_booking(self, params: CancelBookingParams) -> TransactionResult:
        try:
            booking = self.db.query(Booking).filter(Booking.id == params.booking_id).with_for_update().first()
            if booking is None:
                self.db.rollback()
                return TransactionResult.failed(ErrorCode.NOT_FOUND, 'Booking not found')

            if booking.status not in ACTIVE_STATUSES:
                self.db.rollback()
                return TransactionResult.failed(
                    ErrorCode.INVALID_STATUS_TRANSITION,
                    f'Cannot cancel booking with status: {booking.status}',
                )

            original_status = booking.status
            booking.status = 'cancelled'
            booking.cancelled_at = datetime.now()
            booking.cancellation_reason = params.reason
            if params.admin_notes:
                booking.admin_notes = params.admin_notes

            self._record_status_change(
                booking,
                original_status,
                'cancelled',
                params.changed_by,
                'Booking cancelled',
                params.reason,
            )
            self._refresh_window_availability(booking.time_slot_id)

            self.db.commit()
            self.db.refresh(booking)
        except SQLAlchemyError:
            return self._database_failure('cancel a booking')

        logger.info('Cancelled booking %s (was %s)', booking.id, original_status)
        return TransactionResult.ok({
            'booking': BookingResponse.model_validate(booking).model_dump(mode='json'),
            'time_slot_freed': booking.time_slot_id is not None,
        })

    def update_status(self, params: UpdateStatusParams) -> TransactionResult:
        if params.to_status == 'cancelled':
            return self.cancel_booking(CancelBookingParams(
                booking_id=params.booking_id,
                reason=params.reason,
                changed_by=params.changed_by,
                admin_notes=params.notes,
            ))

        try:
            booking = self.db.query(Booking).filter(Booking.id == params.booking_id).with_for_update().first()
            if booking is None:
                self.db.rollback()
                return TransactionResult.failed(ErrorCode.NOT_FOUND, 'Booking not found')

            validation = validate_transition(booking.status, params.to_status)
            if not validation.valid:
                self.db.rollback()
                return TransactionResult.failed(ErrorCode.INVALID_STATUS_TRANSITION, validation.reason)

            if booking.status == 'cancelled' and booking.time_slot_id is not None:
                window = self._lock_window(booking.time_slot_id)
                if window is not None and not window.is_available:
                    self.db.rollback()
                    return TransactionResult.failed(
                        ErrorCode.TIME_SLOT_BOOKED,
                        'The original time slot has been booked by someone else',
                    )

            from_status = booking.status
            booking.status = params.to_status
            if from_status == 'cancelled':
                booking.cancelled_at = None
                booking.cancellation_reason = None
            if params.notes:
                booking.admin_notes = params.notes

            self._record_status_change(
                booking,
                from_status,
                params.to_status,
                params.changed_by,
                params.reason or f'Status changed to {params.to_status}',
                params.notes,
            )
            self._refresh_window_availability(booking.time_slot_id)

            self.db.commit()
            self.db.refresh(booking)
        except SQLAlchemyError:
            return self._database_failure('update a booking status')

        logger.info('Booking %s moved from %s to %s', booking.id, from_status, booking.status)
        return TransactionResult.ok({
            'booking': BookingResponse.model_validate(booking).model_dump(mode='json'),
            'from_status': from_status,
            'warning': validation.warning,
        })


def get_booking_transactions(db: Session = Depends(get_db)) -> BookingTransactions:
    return SqlAlchemyBookingTransactions(db)


def raise_for_transaction(result: TransactionResult) -> dict[str, Any]:
    if not result.success:
        raise ApiError(result.code or ErrorCode.SERVER_ERROR, result.error or 'Booking operation failed')
    return result.data or {}
