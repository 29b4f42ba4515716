"""Booking status lifecycle rules."""

from pydantic import BaseModel

BOOKING_STATUSES = ('pending', 'confirmed', 'rescheduled', 'in_progress', 'completed', 'cancelled')

VALID_TRANSITIONS: dict[str, tuple[str, ...]] = {
    'pending': ('confirmed', 'cancelled'),
    'confirmed': ('in_progress', 'rescheduled', 'cancelled'),
    'rescheduled': ('confirmed', 'in_progress', 'cancelled'),
    'in_progress': ('completed', 'cancelled'),
    'completed': ('in_progress',),
    'cancelled': ('pending',),
}

ACTIVE_STATUSES = ('pending', 'confirmed', 'rescheduled', 'in_progress')
RESCHEDULABLE_STATUSES = ('pending', 'confirmed', 'rescheduled')

STATUS_LABELS = {
    'pending': 'Pending Review',
    'confirmed': 'Confirmed',
    'rescheduled': 'Rescheduled',
    'in_progress': 'Service In Progress',
    'completed': 'Completed',
    'cancelled': 'Cancelled',
}


class TransitionValidation(BaseModel):
    valid: bool
    reason: str | None = None
    warning: str | None = None
    requires_confirmation: bool = False


def is_valid_transition(from_status: str, to_status: str) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, ())


def get_valid_next_statuses(current_status: str) -> list[str]:
    return list(VALID_TRANSITIONS.get(current_status, ()))


def validate_transition(from_status: str, to_status: str) -> TransitionValidation:
    if not is_valid_transition(from_status, to_status):
        return TransitionValidation(
            valid=False,
            reason=f'Cannot transition from "{from_status}" to "{to_status}". Invalid status change.',
        )

    validation = TransitionValidation(valid=True)

    if from_status == 'completed':
        validation.warning = 'Reopening a completed booking.'
        validation.requires_confirmation = True

    if to_status == 'cancelled':
        validation.requires_confirmation = True
        if from_status in ACTIVE_STATUSES:
            validation.warning = 'This will cancel an active booking.'

    return validation


def is_active_status(status: str) -> bool:
    return status in ACTIVE_STATUSES


def get_status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)
