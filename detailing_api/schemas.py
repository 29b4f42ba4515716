from datetime import date, datetime, time

from pydantic import BaseModel, field_validator

from detailing_api.scheduling.pricing import normalize_price_column, normalize_vehicle_size
from detailing_api.scheduling.time_validation import add_minutes

MAX_NOTES_LENGTH = 600
MAX_REASON_LENGTH = 500
MIN_TEMPLATE_MINUTES = 30
MAX_TEMPLATE_MINUTES = 480


def _normalize_optional_text(value: str | None, max_length: int) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'Must be {max_length} characters or fewer.')

    return normalized


class BookingResponse(BaseModel):
    id: str
    booking_reference: str
    customer_id: str
    service_id: str | None = None
    time_slot_id: str | None = None
    scheduled_date: date
    scheduled_start_time: time
    scheduled_end_time: time
    status: str
    vehicle_size: str | None = None
    total_price: float | None = None
    notes: str | None = None
    admin_notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class TimeSlotResponse(BaseModel):
    id: str
    slot_date: date
    start_time: time
    end_time: time
    max_bookings: int
    is_available: bool
    closed_by_admin: bool = False
    notes: str | None = None

    class Config:
        from_attributes = True


class ServiceResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    duration_minutes: int
    base_price: float
    is_active: bool

    class Config:
        from_attributes = True


class RescheduleRequestResponse(BaseModel):
    id: str
    booking_id: str
    customer_id: str
    time_slot_id: str | None = None
    requested_date: date
    requested_time: time
    requested_end_time: time | None = None
    reason: str | None = None
    status: str
    admin_response: str | None = None
    created_at: datetime | None = None
    responded_at: datetime | None = None

    class Config:
        from_attributes = True


class CreateBookingRequest(BaseModel):
    service_id: str
    time_slot_id: str
    vehicle_size: str
    notes: str | None = None

    @field_validator('vehicle_size')
    @classmethod
    def validate_vehicle_size(cls, value: str) -> str:
        return normalize_vehicle_size(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_NOTES_LENGTH)


class CalculatePriceRequest(BaseModel):
    service_id: str
    vehicle_size: str

    @field_validator('vehicle_size')
    @classmethod
    def validate_vehicle_size(cls, value: str) -> str:
        return normalize_vehicle_size(value)


class CancelBookingRequest(BaseModel):
    reason: str
    acknowledge_no_refund: bool = False

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = _normalize_optional_text(value, MAX_REASON_LENGTH)
        if normalized is None:
            raise ValueError('Cancellation reason is required.')
        return normalized


class CustomerRescheduleRequest(BaseModel):
    date: date
    time: time
    reason: str

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = _normalize_optional_text(value, MAX_REASON_LENGTH)
        if normalized is None:
            raise ValueError('Reschedule reason is required.')
        return normalized


class AdminRescheduleRequest(BaseModel):
    new_date: date
    new_time: time
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_REASON_LENGTH)


class AdminCancelRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_REASON_LENGTH)


class StatusUpdateRequest(BaseModel):
    status: str
    reason: str | None = None
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('reason', 'notes')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_NOTES_LENGTH)


class RescheduleResponseRequest(BaseModel):
    action: str
    admin_response: str | None = None

    @field_validator('action')
    @classmethod
    def validate_action(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {'approve', 'decline'}:
            raise ValueError('Action must be "approve" or "decline".')
        return normalized

    @field_validator('admin_response')
    @classmethod
    def validate_admin_response(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_REASON_LENGTH)


class TimeSlotCreateRequest(BaseModel):
    slot_date: date
    start_time: time
    end_time: time
    max_bookings: int = 1
    notes: str | None = None

    @field_validator('max_bookings')
    @classmethod
    def validate_max_bookings(cls, value: int) -> int:
        if value < 0:
            raise ValueError('max_bookings cannot be negative.')
        return value

    @field_validator('end_time')
    @classmethod
    def validate_end_after_start(cls, value: time, info) -> time:
        start_time = info.data.get('start_time')
        if start_time is not None and value <= start_time:
            raise ValueError('end_time must be after start_time.')
        return value


class TimeSlotUpdateRequest(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    max_bookings: int | None = None
    is_available: bool | None = None
    notes: str | None = None

    @field_validator('max_bookings')
    @classmethod
    def validate_max_bookings(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError('max_bookings cannot be negative.')
        return value


class TimeSlotTemplate(BaseModel):
    start_time: time
    duration_minutes: int

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int, info) -> int:
        if value < MIN_TEMPLATE_MINUTES or value > MAX_TEMPLATE_MINUTES:
            raise ValueError(
                f'duration_minutes must be between {MIN_TEMPLATE_MINUTES} and {MAX_TEMPLATE_MINUTES}.'
            )
        start_time = info.data.get('start_time')
        if start_time is not None:
            add_minutes(start_time, value)
        return value

    @property
    def end_time(self) -> time:
        return add_minutes(self.start_time, self.duration_minutes)


class TimeSlotBulkCreateRequest(BaseModel):
    start_date: date
    end_date: date
    days_of_week: list[int]
    time_slots: list[TimeSlotTemplate]
    max_bookings: int = 1
    exclude_dates: list[date] = []
    notes: str | None = None

    @field_validator('end_date')
    @classmethod
    def validate_end_date(cls, value: date, info) -> date:
        start_date = info.data.get('start_date')
        if start_date is not None and value < start_date:
            raise ValueError('end_date must be on or after start_date.')
        return value

    @field_validator('days_of_week')
    @classmethod
    def validate_days_of_week(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError('At least one day of the week is required.')
        if any(day < 0 or day > 6 for day in value):
            raise ValueError('days_of_week values must be 0 (Sunday) through 6 (Saturday).')
        return sorted(set(value))

    @field_validator('time_slots')
    @classmethod
    def validate_time_slots(cls, value: list[TimeSlotTemplate]) -> list[TimeSlotTemplate]:
        if not value:
            raise ValueError('At least one time slot is required.')
        return value

    @field_validator('max_bookings')
    @classmethod
    def validate_max_bookings(cls, value: int) -> int:
        if value < 0:
            raise ValueError('max_bookings cannot be negative.')
        return value


class ServicePricingUpdateRequest(BaseModel):
    service_id: str
    pricing: dict[str, float | None]

    @field_validator('service_id')
    @classmethod
    def validate_service_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('service_id is required.')
        return normalized

    @field_validator('pricing')
    @classmethod
    def validate_pricing(cls, value: dict[str, float | None]) -> dict[str, float | None]:
        if not value:
            raise ValueError('pricing is required.')

        normalized = {}
        for size, price in value.items():
            if price is not None and price < 0:
                raise ValueError('Prices cannot be negative.')
            normalized[normalize_price_column(size)] = None if price is None else round(price, 2)
        return normalized
