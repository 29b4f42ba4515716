import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode, success_body
from detailing_api.auth.dependencies import require_admin
from detailing_api.database import get_db
from detailing_api.models.booking import Booking, BookingStatusHistory
from detailing_api.models.reschedule_request import RescheduleRequest
from detailing_api.models.user import UserProfile
from detailing_api.scheduling.status_transitions import BOOKING_STATUSES, get_valid_next_statuses
from detailing_api.schemas import (
    AdminCancelRequest,
    AdminRescheduleRequest,
    BookingResponse,
    RescheduleRequestResponse,
    RescheduleResponseRequest,
    StatusUpdateRequest,
)
from detailing_api.services.booking_transactions import (
    BookingTransactions,
    CancelBookingParams,
    RescheduleBookingParams,
    UpdateStatusParams,
    get_booking_transactions,
    raise_for_transaction,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=['admin'])

MAX_PAGE_SIZE = 200


def serialize_admin_booking(booking: Booking, customer: UserProfile | None = None) -> dict:
    payload = BookingResponse.model_validate(booking).model_dump(mode='json')
    payload['valid_next_statuses'] = get_valid_next_statuses(booking.status)
    if customer is not None:
        payload['customer_name'] = customer.full_name
        payload['customer_email'] = customer.email
    return payload


@router.get('/bookings')
def list_bookings(
    status_filter: str | None = Query(default=None, alias='status'),
    scheduled_date: date | None = Query(default=None, alias='date'),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    try:
        query = db.query(Booking, UserProfile).outerjoin(UserProfile, UserProfile.id == Booking.customer_id)
        if status_filter:
            normalized_status = status_filter.strip().lower()
            if normalized_status not in BOOKING_STATUSES:
                raise ApiError(ErrorCode.VALIDATION_ERROR, f'Unknown booking status: {normalized_status}')
            query = query.filter(Booking.status == normalized_status)
        if scheduled_date is not None:
            query = query.filter(Booking.scheduled_date == scheduled_date)

        total = query.count()
        rows = query.order_by(
            Booking.scheduled_date.asc(),
            Booking.scheduled_start_time.asc(),
        ).offset(offset).limit(limit).all()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body({
        'bookings': [serialize_admin_booking(booking, customer) for booking, customer in rows],
        'pagination': {'limit': limit, 'offset': offset, 'total': total},
    })


@router.get('/bookings/{booking_id}')
def get_booking(
    booking_id: str,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    try:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None:
            raise ApiError(ErrorCode.NOT_FOUND, 'Booking not found')

        customer = db.query(UserProfile).filter(UserProfile.id == booking.customer_id).first()
        history = db.query(BookingStatusHistory).filter(
            BookingStatusHistory.booking_id == booking.id,
        ).order_by(BookingStatusHistory.id.asc()).all()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    payload = serialize_admin_booking(booking, customer)
    payload['status_history'] = [
        {
            'from_status': entry.from_status,
            'to_status': entry.to_status,
            'changed_by': entry.changed_by,
            'reason': entry.reason,
            'notes': entry.notes,
            'created_at': entry.created_at,
        }
        for entry in history
    ]
    return success_body(payload)


@router.post('/bookings/{booking_id}/confirm')
def confirm_booking(
    booking_id: str,
    admin: UserProfile = Depends(require_admin),
    transactions: BookingTransactions = Depends(get_booking_transactions),
):
    result = transactions.update_status(UpdateStatusParams(
        booking_id=booking_id,
        to_status='confirmed',
        changed_by=admin.id,
        reason='Booking confirmed by admin',
    ))
    return success_body(raise_for_transaction(result))


@router.post('/bookings/{booking_id}/cancel')
def cancel_booking(
    booking_id: str,
    data: AdminCancelRequest,
    admin: UserProfile = Depends(require_admin),
    transactions: BookingTransactions = Depends(get_booking_transactions),
):
    result = transactions.cancel_booking(CancelBookingParams(
        booking_id=booking_id,
        reason=data.reason or 'Cancelled by admin',
        changed_by=admin.id,
    ))
    return success_body(raise_for_transaction(result))


@router.post('/bookings/{booking_id}/status')
def update_booking_status(
    booking_id: str,
    data: StatusUpdateRequest,
    admin: UserProfile = Depends(require_admin),
    transactions: BookingTransactions = Depends(get_booking_transactions),
):
    if data.status not in BOOKING_STATUSES:
        raise ApiError(ErrorCode.VALIDATION_ERROR, f'Unknown booking status: {data.status}')

    if data.status == 'rescheduled':
        raise ApiError(ErrorCode.INVALID_INPUT, 'Use the reschedule endpoint to move a booking.')

    result = transactions.update_status(UpdateStatusParams(
        booking_id=booking_id,
        to_status=data.status,
        changed_by=admin.id,
        reason=data.reason,
        notes=data.notes,
    ))
    return success_body(raise_for_transaction(result))


@router.post('/bookings/{booking_id}/reschedule')
def reschedule_booking(
    booking_id: str,
    data: AdminRescheduleRequest,
    admin: UserProfile = Depends(require_admin),
    transactions: BookingTransactions = Depends(get_booking_transactions),
):
    result = transactions.reschedule_booking(RescheduleBookingParams(
        booking_id=booking_id,
        new_date=data.new_date,
        new_time=data.new_time,
        reason=data.reason,
        changed_by=admin.id,
    ))
    payload = raise_for_transaction(result)
    payload['message'] = 'Booking rescheduled successfully'
    return success_body(payload)


@router.get('/reschedule-requests')
def list_reschedule_requests(
    status_filter: str = Query(default='pending', alias='status'),
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    try:
        query = db.query(RescheduleRequest)
        if status_filter != 'all':
            query = query.filter(RescheduleRequest.status == status_filter.strip().lower())
        requests = query.order_by(RescheduleRequest.created_at.asc()).all()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body([RescheduleRequestResponse.model_validate(request) for request in requests])


@router.post('/reschedule-requests/{request_id}/respond')
def respond_to_reschedule_request(
    request_id: str,
    data: RescheduleResponseRequest,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
    transactions: BookingTransactions = Depends(get_booking_transactions),
):
    try:
        request = db.query(RescheduleRequest).filter(RescheduleRequest.id == request_id).first()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    if request is None:
        raise ApiError(ErrorCode.NOT_FOUND, 'Reschedule request not found')

    if request.status != 'pending':
        raise ApiError(ErrorCode.INVALID_INPUT, f'Reschedule request has already been {request.status}')

    if data.action == 'approve':
        result = transactions.reschedule_booking(RescheduleBookingParams(
            booking_id=request.booking_id,
            new_date=request.requested_date,
            new_time=request.requested_time,
            time_slot_id=request.time_slot_id,
            reschedule_request_id=request.id,
            admin_response=data.admin_response,
            reason=request.reason,
            changed_by=admin.id,
        ))
        payload = raise_for_transaction(result)
        payload['message'] = 'Reschedule request approved'
        return success_body(payload)

    try:
        request.status = 'declined'
        request.admin_response = data.admin_response or 'Reschedule request declined'
        request.responded_at = datetime.now()
        db.commit()
        db.refresh(request)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    logger.info('Reschedule request %s declined by %s', request.id, admin.id)
    return success_body({
        'message': 'Reschedule request declined',
        'request': RescheduleRequestResponse.model_validate(request),
    })
