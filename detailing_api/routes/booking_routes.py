import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode, success_body
from detailing_api.auth.dependencies import get_current_user
from detailing_api.database import get_db
from detailing_api.models.booking import Booking
from detailing_api.models.time_slot import TimeSlot
from detailing_api.models.user import UserProfile
from detailing_api.scheduling.availability import BLOCKING_BOOKING_STATUSES, find_available_windows
from detailing_api.scheduling.pricing import VEHICLE_SIZE_MULTIPLIERS, VEHICLE_SIZE_NAMES
from detailing_api.scheduling.time_validation import parse_duration_minutes, parse_iso_date
from detailing_api.schemas import CalculatePriceRequest, CreateBookingRequest
from detailing_api.services.booking_transactions import (
    BookingTransactions,
    CreateBookingParams,
    get_booking_transactions,
    raise_for_transaction,
)
from detailing_api.services.service_catalog import get_active_service, price_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=['booking'])


@router.get('/slots/available')
def list_available_slots(
    slot_date: str | None = Query(default=None, alias='date'),
    service_id: str | None = Query(default=None, alias='serviceId'),
    duration: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if not slot_date or not service_id or not duration:
        raise ApiError(ErrorCode.INVALID_INPUT, 'Missing required parameters: date, serviceId, duration')

    try:
        requested_date = parse_iso_date(slot_date)
    except ValueError as exc:
        raise ApiError(ErrorCode.VALIDATION_ERROR, 'Invalid date format. Use YYYY-MM-DD') from exc

    try:
        duration_minutes = parse_duration_minutes(duration)
    except ValueError as exc:
        raise ApiError(ErrorCode.INVALID_INPUT, str(exc)) from exc

    try:
        windows = db.query(TimeSlot).filter(
            TimeSlot.slot_date == requested_date,
            TimeSlot.is_available.is_(True),
        ).order_by(TimeSlot.start_time.asc()).all()

        existing_bookings = db.query(Booking).filter(
            Booking.scheduled_date == requested_date,
            Booking.status.in_(BLOCKING_BOOKING_STATUSES),
        ).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to fetch slots for %s', requested_date)
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    available = find_available_windows(windows, existing_bookings, duration_minutes, requested_date)

    return success_body({
        'slots': [result.model_dump(mode='json') for result in available],
        'requestParams': {
            'date': slot_date,
            'serviceId': service_id,
            'duration': duration_minutes,
        },
    })


@router.post('/calculate-price')
def calculate_booking_price(data: CalculatePriceRequest, db: Session = Depends(get_db)):
    try:
        service = get_active_service(data.service_id, db)
        total_price = price_for(service, data.vehicle_size, db)
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body({
        'service_id': service.id,
        'service_name': service.name,
        'duration_minutes': service.duration_minutes,
        'vehicle_size': data.vehicle_size,
        'vehicle_size_name': VEHICLE_SIZE_NAMES[data.vehicle_size],
        'base_price': float(service.base_price),
        'multiplier': VEHICLE_SIZE_MULTIPLIERS[data.vehicle_size],
        'total_price': total_price,
    })


@router.post('/create', status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
    transactions: BookingTransactions = Depends(get_booking_transactions),
):
    try:
        service = get_active_service(data.service_id, db)
        total_price = price_for(service, data.vehicle_size, db)
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    result = transactions.create_booking(CreateBookingParams(
        customer_id=user.id,
        service_id=service.id,
        time_slot_id=data.time_slot_id,
        duration_minutes=service.duration_minutes,
        vehicle_size=data.vehicle_size,
        total_price=total_price,
        notes=data.notes,
    ))

    return success_body(raise_for_transaction(result))
