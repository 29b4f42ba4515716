import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode, success_body
from detailing_api.auth.dependencies import require_admin
from detailing_api.database import get_db
from detailing_api.models.service import Service, ServicePricing
from detailing_api.models.user import UserProfile
from detailing_api.schemas import ServicePricingUpdateRequest
from detailing_api.services.service_catalog import pricing_matrix, upsert_service_pricing

logger = logging.getLogger(__name__)

router = APIRouter(tags=['admin-pricing'])


@router.get('/pricing')
def get_pricing(
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    try:
        services = db.query(Service).order_by(Service.name.asc()).all()
        overrides = {pricing.service_id: pricing for pricing in db.query(ServicePricing).all()}
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body({
        service.id: pricing_matrix(service, overrides.get(service.id))
        for service in services
    })


@router.put('/pricing')
def update_pricing(
    data: ServicePricingUpdateRequest,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        service = db.query(Service).filter(Service.id == data.service_id).first()
        if service is None:
            raise ApiError(ErrorCode.NOT_FOUND, 'Service not found')

        pricing = upsert_service_pricing(service, data.pricing, admin.id, db)
        db.commit()
        db.refresh(pricing)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body({
        'message': 'Pricing updated successfully',
        'pricing': pricing_matrix(service, pricing),
    })
