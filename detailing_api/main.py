import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from detailing_api.api.responses import register_exception_handlers
from detailing_api.core import config
from detailing_api.database import create_db_engine, create_session_factory, ensure_schema
from detailing_api.routes import (
    admin_routes,
    auth_routes,
    booking_routes,
    customer_admin_routes,
    customer_routes,
    pricing_routes,
    services_routes,
    time_slot_routes,
)

logger = logging.getLogger(__name__)


def create_app(database_url: str | None = None) -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    config.validate_runtime_config()

    app = FastAPI(title='Detailing Booking API', debug=config.DEBUG)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    engine = create_db_engine(database_url or config.DATABASE_URL, echo=config.DATABASE_ECHO)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            ensure_schema(engine)
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    @app.on_event('shutdown')
    def dispose_engine() -> None:
        engine.dispose()

    @app.get('/')
    def root():
        return {'status': 'Detailing Booking API Running'}

    register_exception_handlers(app)

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(services_routes.router, prefix='/services')
    app.include_router(booking_routes.router, prefix='/booking')
    app.include_router(customer_routes.router, prefix='/customer/bookings')
    app.include_router(admin_routes.router, prefix='/admin')
    app.include_router(customer_admin_routes.router, prefix='/admin/customers')
    app.include_router(pricing_routes.router, prefix='/admin/services')
    app.include_router(time_slot_routes.router, prefix='/admin/time-slots')

    return app
