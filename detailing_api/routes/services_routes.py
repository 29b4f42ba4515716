from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from detailing_api.api.responses import DATABASE_UNAVAILABLE_MESSAGE, ApiError, ErrorCode, success_body
from detailing_api.database import get_db
from detailing_api.models.service import Service
from detailing_api.schemas import ServiceResponse
from detailing_api.services.service_catalog import get_active_service

router = APIRouter(tags=['services'])


@router.get('')
def list_services(db: Session = Depends(get_db)):
    try:
        services = db.query(Service).filter(
            Service.is_active.is_(True),
        ).order_by(Service.name.asc()).all()
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body([ServiceResponse.model_validate(service) for service in services])


@router.get('/{service_id}')
def get_service(service_id: str, db: Session = Depends(get_db)):
    try:
        service = get_active_service(service_id, db)
    except SQLAlchemyError as exc:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE_MESSAGE) from exc

    return success_body(ServiceResponse.model_validate(service))
