from datetime import time

import pytest
from fastapi.testclient import TestClient

from conftest import FUTURE_DATE
from detailing_api.auth.jwt_handler import create_access_token
from detailing_api.main import create_app
from detailing_api.models.service import Service
from detailing_api.models.time_slot import TimeSlot
from detailing_api.models.user import UserProfile


@pytest.fixture
def client():
    app = create_app('sqlite:///:memory:')
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seeded_client(client):
    session = client.app.state.session_factory()
    try:
        session.add_all([
            UserProfile(id='customer-1', email='customer@example.com', role='customer', is_active=True),
            Service(id='service-1', name='Full Valet', duration_minutes=60, base_price=50.0, is_active=True),
            TimeSlot(
                id='slot-1',
                slot_date=FUTURE_DATE,
                start_time=time(10, 0),
                end_time=time(12, 0),
                max_bookings=1,
                is_available=True,
            ),
        ])
        session.commit()
    finally:
        session.close()
    return client


def _auth_headers(user_id: str) -> dict:
    return {'Authorization': f'Bearer {create_access_token(user_id)}'}


def test_root(client) -> None:
    response = client.get('/')

    assert response.status_code == 200
    assert response.json() == {'status': 'Detailing Booking API Running'}


def test_missing_slot_parameters_use_error_envelope(client) -> None:
    response = client.get('/booking/slots/available', params={'date': '2099-06-01'})

    assert response.status_code == 400
    body = response.json()
    assert body['success'] is False
    assert body['error']['code'] == 'INVALID_INPUT'
    assert body['error']['message'] == 'Missing required parameters: date, serviceId, duration'
    assert 'timestamp' in body['metadata']


def test_malformed_date_is_validation_error(client) -> None:
    response = client.get(
        '/booking/slots/available',
        params={'date': '2099/06/01', 'serviceId': 'service-1', 'duration': '60'},
    )

    assert response.status_code == 400
    assert response.json()['error']['code'] == 'VALIDATION_ERROR'


def test_empty_day_returns_success_envelope(client) -> None:
    response = client.get(
        '/booking/slots/available',
        params={'date': '2099-06-01', 'serviceId': 'service-1', 'duration': '60'},
    )

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['data']['slots'] == []
    assert body['data']['requestParams']['duration'] == 60


def test_missing_token_is_unauthorized(client) -> None:
    response = client.get('/customer/bookings')

    assert response.status_code == 401
    assert response.json()['error'] == {'message': 'Authentication required', 'code': 'UNAUTHORIZED'}


def test_unknown_route_uses_error_envelope(client) -> None:
    response = client.get('/does-not-exist')

    assert response.status_code == 404
    assert response.json()['success'] is False
    assert response.json()['error']['code'] == 'NOT_FOUND'


def test_request_body_errors_are_validation_errors(seeded_client) -> None:
    response = seeded_client.post(
        '/booking/create',
        json={'service_id': 'service-1', 'time_slot_id': 'slot-1', 'vehicle_size': 'XXL'},
        headers=_auth_headers('customer-1'),
    )

    assert response.status_code == 400
    body = response.json()
    assert body['error']['code'] == 'VALIDATION_ERROR'
    assert body['error']['details'][0]['loc'] == ['body', 'vehicle_size']


def test_booking_flow_closes_window(seeded_client) -> None:
    slot_params = {'date': FUTURE_DATE.isoformat(), 'serviceId': 'service-1', 'duration': '60'}

    before = seeded_client.get('/booking/slots/available', params=slot_params)
    assert [slot['window_id'] for slot in before.json()['data']['slots']] == ['slot-1']

    created = seeded_client.post(
        '/booking/create',
        json={'service_id': 'service-1', 'time_slot_id': 'slot-1', 'vehicle_size': 'M'},
        headers=_auth_headers('customer-1'),
    )
    assert created.status_code == 201
    assert created.json()['data']['status'] == 'pending'
    assert created.json()['data']['total_price'] == 60.0

    after = seeded_client.get('/booking/slots/available', params=slot_params)
    assert after.json()['data']['slots'] == []

    again = seeded_client.post(
        '/booking/create',
        json={'service_id': 'service-1', 'time_slot_id': 'slot-1', 'vehicle_size': 'M'},
        headers=_auth_headers('customer-1'),
    )
    assert again.status_code == 409
    assert again.json()['error']['code'] == 'TIME_SLOT_UNAVAILABLE'

    mine = seeded_client.get('/customer/bookings', headers=_auth_headers('customer-1'))
    assert len(mine.json()['data']) == 1


def test_oversized_duration_is_rejected_before_evaluation(seeded_client) -> None:
    response = seeded_client.get(
        '/booking/slots/available',
        params={'date': FUTURE_DATE.isoformat(), 'serviceId': 'service-1', 'duration': '1000000000000'},
    )

    assert response.status_code == 400
    assert response.json()['error']['code'] == 'INVALID_INPUT'


def test_admin_bulk_and_pricing_routes_are_mounted(seeded_client) -> None:
    session = seeded_client.app.state.session_factory()
    try:
        session.add(UserProfile(id='admin-1', email='admin@example.com', role='admin', is_active=True))
        session.commit()
    finally:
        session.close()
    headers = _auth_headers('admin-1')

    bulk = seeded_client.post('/admin/time-slots/bulk', headers=headers, json={
        'start_date': '2099-06-02',
        'end_date': '2099-06-02',
        'days_of_week': ['2'],
        'time_slots': [{'start_time': '09:00', 'duration_minutes': 60}],
    })
    pricing = seeded_client.get('/admin/services/pricing', headers=headers)
    customers = seeded_client.get('/admin/customers', headers=headers)

    assert bulk.status_code == 201
    assert bulk.json()['data']['dates_covered'] == 1
    assert pricing.json()['data']['service-1']['small']['price'] == 50.0
    assert [item['id'] for item in customers.json()['data']] == ['customer-1']
