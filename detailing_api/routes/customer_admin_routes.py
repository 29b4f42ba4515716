import logging
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode, success_body
from detailing_api.auth.dependencies import require_admin
from detailing_api.database import get_db
from detailing_api.models.booking import Booking
from detailing_api.models.user import UserProfile
from detailing_api.routes.admin_routes import serialize_admin_booking

logger = logging.getLogger(__name__)

router = APIRouter(tags=['admin-customers'])

CUSTOMER_ROLE = 'customer'
VIP_SPEND_THRESHOLD = 500.0
ACTIVE_WITHIN_DAYS = 90


def customer_status(total_spent: float, last_booking_date: date | None, today: date | None = None) -> str:
    if total_spent >= VIP_SPEND_THRESHOLD:
        return 'vip'
    if last_booking_date is not None and ((today or date.today()) - last_booking_date).days <= ACTIVE_WITHIN_DAYS:
        return 'active'
    return 'inactive'


def summarize_customer(
    profile: UserProfile,
    total_bookings: int,
    total_spent: float,
    last_booking_date: date | None,
    today: date | None = None,
) -> dict:
    total_spent = round(float(total_spent or 0), 2)
    return {
        'id': profile.id,
        'email': profile.email,
        'first_name': profile.first_name or 'Customer',
        'last_name': profile.last_name or '',
        'phone': profile.phone,
        'is_active': profile.is_active,
        'created_at': profile.created_at,
        'total_bookings': total_bookings,
        'total_spent': total_spent,
        'avg_booking_value': round(total_spent / total_bookings, 2) if total_bookings else 0.0,
        'last_booking_date': last_booking_date,
        'status': customer_status(total_spent, last_booking_date, today),
    }


@router.get('')
def list_customers(
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    try:
        customers = db.query(UserProfile).filter(
            UserProfile.role == CUSTOMER_ROLE,
        ).order_by(UserProfile.created_at.desc(), UserProfile.id.asc()).all()

        # Cancelled bookings never count toward spend.
        stats = db.query(
            Booking.customer_id,
            func.count(Booking.id),
            func.sum(Booking.total_price),
            func.max(Booking.scheduled_date),
        ).filter(
            Booking.customer_id.in_([customer.id for customer in customers]),
            Booking.status != 'cancelled',
        ).group_by(Booking.customer_id).all()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    by_customer = {customer_id: (count, spent, last) for customer_id, count, spent, last in stats}
    return success_body([
        summarize_customer(customer, *by_customer.get(customer.id, (0, 0.0, None)))
        for customer in customers
    ])


@router.get('/{customer_id}')
def get_customer(
    customer_id: str,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    try:
        customer = db.query(UserProfile).filter(
            UserProfile.id == customer_id,
            UserProfile.role == CUSTOMER_ROLE,
        ).first()
        if customer is None:
            raise ApiError(ErrorCode.NOT_FOUND, 'Customer not found')

        bookings = db.query(Booking).filter(
            Booking.customer_id == customer.id,
        ).order_by(Booking.scheduled_date.desc(), Booking.scheduled_start_time.desc()).all()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    counted = [booking for booking in bookings if booking.status != 'cancelled']
    return success_body({
        'customer': summarize_customer(
            customer,
            len(counted),
            sum(float(booking.total_price or 0) for booking in counted),
            max((booking.scheduled_date for booking in counted), default=None),
        ),
        'bookings': [serialize_admin_booking(booking) for booking in bookings],
    })
