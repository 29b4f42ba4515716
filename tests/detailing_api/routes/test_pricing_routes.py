import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from detailing_api.api.responses import ErrorCode
from detailing_api.models.service import ServicePricing
from detailing_api.routes.pricing_routes import get_pricing, update_pricing
from detailing_api.schemas import ServicePricingUpdateRequest


def test_get_pricing_falls_back_to_multipliers(db, admin, service) -> None:
    response = get_pricing(admin=admin, db=db)

    matrix = response['data'][service.id]
    assert {column: entry['price'] for column, entry in matrix.items()} == {
        'small': 50.0,
        'medium': 60.0,
        'large': 70.0,
        'extra_large': 80.0,
    }
    assert matrix['large']['vehicle_size'] == 'L'
    assert not any(entry['is_custom'] for entry in matrix.values())


def test_update_pricing_upserts_overrides(db, admin, service) -> None:
    first = update_pricing(
        ServicePricingUpdateRequest(service_id=service.id, pricing={'small': 45, 'XL': 95.5}),
        admin=admin,
        db=db,
    )
    second = update_pricing(
        ServicePricingUpdateRequest(service_id=service.id, pricing={'small': None, 'medium': 65}),
        admin=admin,
        db=db,
    )

    assert first['data']['message'] == 'Pricing updated successfully'
    assert first['data']['pricing']['small']['price'] == 45.0
    assert second['data']['pricing']['small'] == {
        'service_id': service.id,
        'vehicle_size_id': 'small',
        'vehicle_size': 'S',
        'price': 50.0,
        'is_custom': False,
    }
    assert second['data']['pricing']['medium']['price'] == 65.0
    assert second['data']['pricing']['extra_large']['price'] == 95.5
    assert db.query(ServicePricing).count() == 1
    assert db.query(ServicePricing).first().updated_by == admin.id


def test_update_pricing_unknown_service(db, admin) -> None:
    with pytest.raises(HTTPException) as exc:
        update_pricing(
            ServicePricingUpdateRequest(service_id='missing', pricing={'small': 10}),
            admin=admin,
            db=db,
        )

    assert exc.value.status_code == 404
    assert exc.value.code == ErrorCode.NOT_FOUND


@pytest.mark.parametrize('payload', [
    {'service_id': 'service-1', 'pricing': {}},
    {'service_id': '  ', 'pricing': {'small': 10}},
    {'service_id': 'service-1', 'pricing': {'small': -1}},
    {'service_id': 'service-1', 'pricing': {'jumbo': 10}},
    {'pricing': {'small': 10}},
])
def test_pricing_request_validation(payload: dict) -> None:
    with pytest.raises(ValidationError):
        ServicePricingUpdateRequest(**payload)
