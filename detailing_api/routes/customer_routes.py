import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode, success_body
from detailing_api.auth.dependencies import get_current_user
from detailing_api.core import config
from detailing_api.database import get_db
from detailing_api.models.booking import Booking
from detailing_api.models.reschedule_request import RescheduleRequest
from detailing_api.models.time_slot import TimeSlot
from detailing_api.models.user import UserProfile
from detailing_api.scheduling.availability import BLOCKING_BOOKING_STATUSES, evaluate_time_window
from detailing_api.scheduling.cancellation import CANCELLABLE_STATUSES, check_cancellation_policy
from detailing_api.scheduling.status_transitions import get_status_label
from detailing_api.scheduling.time_validation import is_time_slot_past
from detailing_api.schemas import (
    BookingResponse,
    CancelBookingRequest,
    CustomerRescheduleRequest,
    RescheduleRequestResponse,
)
from detailing_api.services.booking_transactions import (
    BookingTransactions,
    CancelBookingParams,
    booking_duration_minutes,
    get_booking_transactions,
    raise_for_transaction,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=['customer'])

CUSTOMER_RESCHEDULABLE_STATUSES = ('pending', 'confirmed')


def get_owned_booking(booking_id: str, user: UserProfile, db: Session) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if booking is None:
        raise ApiError(ErrorCode.NOT_FOUND, 'Booking not found')
    if booking.customer_id != user.id:
        raise ApiError(ErrorCode.FORBIDDEN, 'You do not have access to this booking')
    return booking


def serialize_customer_booking(booking: Booking) -> dict:
    payload = BookingResponse.model_validate(booking).model_dump(mode='json')
    payload.pop('admin_notes', None)
    payload['status_label'] = get_status_label(booking.status)
    return payload


@router.get('')
def list_my_bookings(
    status_filter: str | None = Query(default=None, alias='status'),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Booking).filter(Booking.customer_id == user.id)
        if status_filter:
            query = query.filter(Booking.status == status_filter.strip().lower())
        bookings = query.order_by(
            Booking.scheduled_date.desc(),
            Booking.scheduled_start_time.desc(),
        ).all()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body([serialize_customer_booking(booking) for booking in bookings])


@router.get('/{booking_id}')
def get_my_booking(
    booking_id: str,
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = get_owned_booking(booking_id, user, db)
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body(serialize_customer_booking(booking))


@router.get('/{booking_id}/cancel-policy')
def get_cancel_policy(
    booking_id: str,
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = get_owned_booking(booking_id, user, db)
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body(check_cancellation_policy(booking))


@router.post('/{booking_id}/cancel')
def cancel_my_booking(
    booking_id: str,
    data: CancelBookingRequest,
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
    transactions: BookingTransactions = Depends(get_booking_transactions),
):
    try:
        booking = get_owned_booking(booking_id, user, db)
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    if booking.status not in CANCELLABLE_STATUSES:
        raise ApiError(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f'Cannot cancel booking with status: {booking.status}',
        )

    policy = check_cancellation_policy(booking)
    if not policy.can_cancel:
        raise ApiError(ErrorCode.INVALID_INPUT, policy.warning_message or 'This booking cannot be cancelled')

    if policy.is_within_notice_period and not data.acknowledge_no_refund:
        raise ApiError(
            ErrorCode.INVALID_INPUT,
            'Cancellation within the notice period requires acknowledgment of the no refund policy',
            details=policy.model_dump(),
        )

    result = transactions.cancel_booking(CancelBookingParams(
        booking_id=booking.id,
        reason=data.reason,
        changed_by=user.id,
    ))
    payload = raise_for_transaction(result)

    refund_amount = float(booking.total_price or 0) if policy.refund_eligible else 0.0
    if policy.refund_eligible:
        message = f'Booking cancelled successfully. A refund of {refund_amount:.2f} will be processed.'
    else:
        message = 'Booking cancelled successfully. No refund applicable due to the cancellation policy.'

    return success_body({
        'booking': payload.get('booking'),
        'policy_info': policy,
        'refund_amount': refund_amount,
        'time_slot_freed': payload.get('time_slot_freed', False),
        'message': message,
    })


@router.post('/{booking_id}/reschedule', status_code=status.HTTP_201_CREATED)
def request_reschedule(
    booking_id: str,
    data: CustomerRescheduleRequest,
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = get_owned_booking(booking_id, user, db)

        if booking.status not in CUSTOMER_RESCHEDULABLE_STATUSES:
            raise ApiError(
                ErrorCode.INVALID_STATUS_TRANSITION,
                f'Booking cannot be rescheduled. Current status: {booking.status}',
            )

        existing_request = db.query(RescheduleRequest).filter(
            RescheduleRequest.booking_id == booking.id,
            RescheduleRequest.status == 'pending',
        ).first()
        if existing_request:
            raise ApiError(
                ErrorCode.INVALID_INPUT,
                'There is already a pending reschedule request for this booking',
            )

        window = db.query(TimeSlot).filter(
            TimeSlot.slot_date == data.date,
            TimeSlot.start_time == data.time,
            TimeSlot.is_available.is_(True),
        ).first()
        if window is None:
            raise ApiError(
                ErrorCode.TIME_SLOT_UNAVAILABLE,
                'The requested time slot is not available. Please choose a different time.',
            )

        if is_time_slot_past(window.slot_date, window.start_time, config.BOOKING_BUFFER_MINUTES):
            raise ApiError(ErrorCode.INVALID_INPUT, 'Cannot book time slots in the past')

        other_bookings = db.query(Booking).filter(
            Booking.scheduled_date == data.date,
            Booking.status.in_(BLOCKING_BOOKING_STATUSES),
            Booking.id != booking.id,
        ).all()
        availability = evaluate_time_window(window, other_bookings, booking_duration_minutes(booking), data.date)
        if not availability.is_available:
            raise ApiError(
                ErrorCode.TIME_SLOT_UNAVAILABLE,
                'The requested time slot is not available. Please choose a different time.',
            )

        reschedule_request = RescheduleRequest(
            booking_id=booking.id,
            customer_id=user.id,
            time_slot_id=window.id,
            requested_date=data.date,
            requested_time=data.time,
            requested_end_time=window.end_time,
            reason=data.reason,
            status='pending',
        )
        db.add(reschedule_request)
        db.commit()
        db.refresh(reschedule_request)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    logger.info('Reschedule request %s submitted for booking %s', reschedule_request.id, booking.id)

    return success_body({
        'message': 'Reschedule request submitted successfully',
        'request': RescheduleRequestResponse.model_validate(reschedule_request),
    })
