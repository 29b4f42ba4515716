from datetime import time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from conftest import add_booking, add_window
from detailing_api.api.responses import ErrorCode
from detailing_api.models.booking import Booking
from detailing_api.models.service import Service, ServicePricing
from detailing_api.routes.booking_routes import calculate_booking_price, create_booking, list_available_slots
from detailing_api.routes.services_routes import get_service, list_services
from detailing_api.schemas import CalculatePriceRequest, CreateBookingRequest
from detailing_api.services.booking_transactions import SqlAlchemyBookingTransactions


def test_list_available_slots_requires_all_parameters(db) -> None:
    with pytest.raises(HTTPException) as exc:
        list_available_slots(slot_date='2099-06-01', service_id=None, duration='60', db=db)

    assert exc.value.status_code == 400
    assert exc.value.code == ErrorCode.INVALID_INPUT
    assert exc.value.detail == 'Missing required parameters: date, serviceId, duration'


def test_list_available_slots_rejects_malformed_date(db) -> None:
    with pytest.raises(HTTPException) as exc:
        list_available_slots(slot_date='06/01/2099', service_id='service-1', duration='60', db=db)

    assert exc.value.status_code == 400
    assert exc.value.code == ErrorCode.VALIDATION_ERROR


@pytest.mark.parametrize('duration', ['abc', '0', '-30', '1_000', '\uff11\uff12\uff10', '60.5'])
def test_list_available_slots_rejects_bad_duration(db, duration: str) -> None:
    with pytest.raises(HTTPException) as exc:
        list_available_slots(slot_date='2099-06-01', service_id='service-1', duration=duration, db=db)

    assert exc.value.code == ErrorCode.INVALID_INPUT
    assert exc.value.detail == 'Duration must be a positive number'


def test_list_available_slots_returns_empty_list_for_empty_day(db) -> None:
    response = list_available_slots(slot_date='2099-06-02', service_id='service-1', duration='60', db=db)

    assert response['success'] is True
    assert response['data']['slots'] == []
    assert response['data']['requestParams'] == {'date': '2099-06-02', 'serviceId': 'service-1', 'duration': 60}


def test_list_available_slots_filters_and_orders_windows(db, customer) -> None:
    add_window(db, time(14, 0), time(16, 0), window_id='afternoon')
    add_window(db, time(8, 0), time(9, 0), window_id='early')
    add_window(db, time(10, 0), time(11, 0), window_id='overlapped')
    add_window(db, time(12, 0), time(13, 0), window_id='closed', is_available=False)
    add_window(db, time(17, 0), time(17, 30), window_id='short')
    add_booking(db, customer.id, time(10, 30), time(11, 30))
    add_booking(db, customer.id, time(8, 0), time(9, 0), status='cancelled', reference='REF-CANCELLED')

    response = list_available_slots(slot_date='2099-06-01', service_id='service-1', duration='60', db=db)

    slots = response['data']['slots']
    assert [slot['window_id'] for slot in slots] == ['early', 'afternoon']
    assert slots[0]['start_time'] == '08:00:00'
    assert slots[0]['is_available'] is True


def test_calculate_booking_price(db, service) -> None:
    response = calculate_booking_price(CalculatePriceRequest(service_id=service.id, vehicle_size='xl'), db=db)

    assert response['data']['vehicle_size'] == 'XL'
    assert response['data']['vehicle_size_name'] == 'Extra Large'
    assert response['data']['total_price'] == 80.0


def test_calculate_booking_price_unknown_service(db) -> None:
    with pytest.raises(HTTPException) as exc:
        calculate_booking_price(CalculatePriceRequest(service_id='missing', vehicle_size='S'), db=db)

    assert exc.value.status_code == 404


def test_create_booking_prices_and_stores_booking(db, customer, service) -> None:
    window = add_window(db, time(10, 0), time(12, 0))
    transactions = SqlAlchemyBookingTransactions(db, buffer_minutes=0)

    response = create_booking(
        CreateBookingRequest(service_id=service.id, time_slot_id=window.id, vehicle_size='L', notes='  Dog hair  '),
        user=customer,
        db=db,
        transactions=transactions,
    )

    assert response['success'] is True
    assert response['data']['total_price'] == 70.0
    assert response['data']['notes'] == 'Dog hair'
    assert response['data']['scheduled_end_time'] == '11:00:00'
    assert db.query(Booking).count() == 1


def test_create_booking_surfaces_conflict(db, customer, other_customer, service) -> None:
    window = add_window(db, time(10, 0), time(12, 0))
    add_booking(db, other_customer.id, time(11, 0), time(12, 0))
    transactions = SqlAlchemyBookingTransactions(db, buffer_minutes=0)

    with pytest.raises(HTTPException) as exc:
        create_booking(
            CreateBookingRequest(service_id=service.id, time_slot_id=window.id, vehicle_size='S'),
            user=customer,
            db=db,
            transactions=transactions,
        )

    assert exc.value.status_code == 409
    assert exc.value.code == ErrorCode.OVERLAP_DETECTED


def test_create_booking_rejects_invalid_vehicle_size() -> None:
    with pytest.raises(ValidationError):
        CreateBookingRequest(service_id='service-1', time_slot_id='slot-1', vehicle_size='XXL')


def test_services_listing_hides_inactive_services(db, service) -> None:
    db.add(Service(id='service-2', name='Retired Wax', duration_minutes=30, base_price=20.0, is_active=False))
    db.commit()

    response = list_services(db=db)

    assert [item['id'] for item in response['data']] == [service.id]
    with pytest.raises(HTTPException) as exc:
        get_service('service-2', db=db)
    assert exc.value.status_code == 404


def test_list_available_slots_rejects_duration_longer_than_a_day(db) -> None:
    add_window(db, time(8, 0), time(18, 0))

    with pytest.raises(HTTPException) as exc:
        list_available_slots(slot_date='2099-06-01', service_id='service-1', duration='1000000000000', db=db)

    assert exc.value.status_code == 400
    assert exc.value.code == ErrorCode.INVALID_INPUT
    assert exc.value.detail == 'Duration cannot exceed 1440 minutes'


def test_list_available_slots_rejects_non_ascii_date(db) -> None:
    with pytest.raises(HTTPException) as exc:
        list_available_slots(slot_date='\uff12\uff10\uff19\uff19-06-01', service_id='service-1', duration='60', db=db)

    assert exc.value.code == ErrorCode.VALIDATION_ERROR


def test_calculate_booking_price_uses_admin_override(db, service) -> None:
    db.add(ServicePricing(service_id=service.id, large=99.5))
    db.commit()

    overridden = calculate_booking_price(CalculatePriceRequest(service_id=service.id, vehicle_size='L'), db=db)
    fallback = calculate_booking_price(CalculatePriceRequest(service_id=service.id, vehicle_size='M'), db=db)

    assert overridden['data']['total_price'] == 99.5
    assert fallback['data']['total_price'] == 60.0


def test_create_booking_charges_admin_override(db, customer, service) -> None:
    window = add_window(db, time(10, 0), time(12, 0))
    db.add(ServicePricing(service_id=service.id, small=45.0))
    db.commit()

    response = create_booking(
        CreateBookingRequest(service_id=service.id, time_slot_id=window.id, vehicle_size='S'),
        user=customer,
        db=db,
        transactions=SqlAlchemyBookingTransactions(db, buffer_minutes=0),
    )

    assert response['data']['total_price'] == 45.0
