"""Cancellation notice policy.

Bookings cancelled inside the notice period (24 hours by default) are not
refunded, and the customer has to acknowledge that before the cancellation
goes through. Appointments that have already started cannot be cancelled.
"""

import math
from datetime import datetime

from pydantic import BaseModel

from detailing_api.core import config

CANCELLABLE_STATUSES = ('pending', 'confirmed', 'rescheduled')


class CancellationPolicyCheck(BaseModel):
    can_cancel: bool
    is_within_notice_period: bool
    hours_until_appointment: float
    refund_eligible: bool
    warning_message: str | None = None


def check_cancellation_policy(
    booking,
    now: datetime | None = None,
    notice_hours: int | None = None,
) -> CancellationPolicyCheck:
    if booking.status not in CANCELLABLE_STATUSES:
        return CancellationPolicyCheck(
            can_cancel=False,
            is_within_notice_period=False,
            hours_until_appointment=0,
            refund_eligible=False,
            warning_message=f'Cannot cancel booking with status: {booking.status}',
        )

    current = now or datetime.now()
    notice = config.CANCELLATION_NOTICE_HOURS if notice_hours is None else notice_hours
    appointment_start = datetime.combine(booking.scheduled_date, booking.scheduled_start_time)
    hours_until_appointment = (appointment_start - current).total_seconds() / 3600

    is_within_notice_period = hours_until_appointment <= notice
    warning_message = None
    if is_within_notice_period:
        if hours_until_appointment <= 0:
            warning_message = 'This appointment has already started or passed. Cancellation is not possible.'
        elif hours_until_appointment <= 2:
            warning_message = (
                f'This appointment is in {hours_until_appointment:.1f} hours. '
                f'Cancellation within {notice} hours means no refund will be provided.'
            )
        else:
            warning_message = (
                f'This appointment is in {math.floor(hours_until_appointment)} hours. '
                f'Cancellation within {notice} hours means no refund will be provided.'
            )

    return CancellationPolicyCheck(
        can_cancel=hours_until_appointment > 0,
        is_within_notice_period=is_within_notice_period,
        hours_until_appointment=round(max(0.0, hours_until_appointment), 2),
        refund_eligible=not is_within_notice_period,
        warning_message=warning_message,
    )
