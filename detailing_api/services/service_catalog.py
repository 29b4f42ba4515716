import logging

from sqlalchemy.orm import Session

from detailing_api.api.responses import ApiError, ErrorCode
from detailing_api.models.service import Service, ServicePricing
from detailing_api.scheduling.pricing import SIZE_PRICE_COLUMNS, calculate_price, normalize_vehicle_size

logger = logging.getLogger(__name__)


def get_active_service(service_id: str, db: Session) -> Service:
    service = db.query(Service).filter(
        Service.id == service_id,
        Service.is_active.is_(True),
    ).first()
    if service is None:
        raise ApiError(ErrorCode.NOT_FOUND, 'Service not found')
    return service


def get_service_pricing(service_id: str, db: Session) -> ServicePricing | None:
    return db.query(ServicePricing).filter(ServicePricing.service_id == service_id).first()


def price_for(service: Service, vehicle_size: str, db: Session) -> float:
    """Admin override for the size when one is set, otherwise base price times the size multiplier."""
    size = normalize_vehicle_size(vehicle_size)
    pricing = get_service_pricing(service.id, db)
    if pricing is not None:
        override = getattr(pricing, SIZE_PRICE_COLUMNS[size])
        if override is not None:
            return round(float(override), 2)
    return calculate_price(service.base_price, size)


def pricing_matrix(service: Service, pricing: ServicePricing | None) -> dict:
    matrix = {}
    for size, column in SIZE_PRICE_COLUMNS.items():
        override = getattr(pricing, column) if pricing is not None else None
        matrix[column] = {
            'service_id': service.id,
            'vehicle_size_id': column,
            'vehicle_size': size,
            'price': round(float(override), 2) if override is not None else calculate_price(service.base_price, size),
            'is_custom': override is not None,
        }
    return matrix


def upsert_service_pricing(
    service: Service,
    prices: dict[str, float | None],
    updated_by: str,
    db: Session,
) -> ServicePricing:
    pricing = get_service_pricing(service.id, db)
    if pricing is None:
        pricing = ServicePricing(service_id=service.id)
        db.add(pricing)

    for column, price in prices.items():
        setattr(pricing, column, price)
    pricing.updated_by = updated_by

    logger.info('Pricing for service %s updated by %s: %s', service.id, updated_by, prices)
    return pricing
