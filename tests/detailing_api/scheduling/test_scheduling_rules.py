from datetime import date, datetime, time
from types import SimpleNamespace

import pytest

from detailing_api.scheduling.cancellation import check_cancellation_policy
from detailing_api.scheduling.pricing import calculate_price, normalize_price_column, normalize_vehicle_size
from detailing_api.scheduling.status_transitions import (
    get_status_label,
    get_valid_next_statuses,
    is_active_status,
    is_valid_transition,
    validate_transition,
)
from detailing_api.scheduling.time_validation import (
    add_minutes,
    is_time_slot_past,
    parse_duration_minutes,
    parse_iso_date,
)


def test_parse_iso_date_accepts_strict_format() -> None:
    assert parse_iso_date('2025-06-01') == date(2025, 6, 1)


@pytest.mark.parametrize('value', ['2025-6-1', '06/01/2025', '2025-06-01T10:00', '2025-06-01\n', '2025-13-01', '', '\u0662\u0660\u0662\u0665-06-01'])
def test_parse_iso_date_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError):
        parse_iso_date(value)


@pytest.mark.parametrize(('value', 'expected'), [('60', 60), (' 90 ', 90), (45, 45), ('1440', 1440)])
def test_parse_duration_minutes_accepts_positive_integers(value, expected: int) -> None:
    assert parse_duration_minutes(value) == expected


@pytest.mark.parametrize('value', ['abc', '0', '-15', '1.5', '', True, '1_000', '\u0663\u0660', -30, 1441, '99999999999999'])
def test_parse_duration_minutes_rejects_invalid_values(value) -> None:
    with pytest.raises(ValueError):
        parse_duration_minutes(value)


def test_add_minutes_refuses_to_cross_midnight() -> None:
    assert add_minutes(time(10, 30), 45) == time(11, 15)

    with pytest.raises(ValueError):
        add_minutes(time(23, 30), 60)


def test_is_time_slot_past_applies_buffer() -> None:
    now = datetime(2025, 6, 1, 9, 0)

    assert is_time_slot_past(date(2025, 6, 1), time(8, 59), now=now) is True
    assert is_time_slot_past(date(2025, 6, 1), time(9, 20), buffer_minutes=30, now=now) is True
    assert is_time_slot_past(date(2025, 6, 1), time(9, 30), buffer_minutes=30, now=now) is False


def test_status_transition_table() -> None:
    assert is_valid_transition('pending', 'confirmed') is True
    assert is_valid_transition('pending', 'completed') is False
    assert is_valid_transition('confirmed', 'rescheduled') is True
    assert is_valid_transition('unknown', 'pending') is False
    assert get_valid_next_statuses('in_progress') == ['completed', 'cancelled']
    assert get_valid_next_statuses('unknown') == []


def test_validate_transition_flags_cancellation_of_active_booking() -> None:
    validation = validate_transition('confirmed', 'cancelled')

    assert validation.valid is True
    assert validation.requires_confirmation is True
    assert validation.warning == 'This will cancel an active booking.'


def test_validate_transition_rejects_invalid_change() -> None:
    validation = validate_transition('completed', 'pending')

    assert validation.valid is False
    assert 'Invalid status change' in validation.reason


def test_status_helpers() -> None:
    assert is_active_status('rescheduled') is True
    assert is_active_status('cancelled') is False
    assert get_status_label('in_progress') == 'Service In Progress'
    assert get_status_label('mystery') == 'mystery'


def _booking(status: str, scheduled: datetime) -> SimpleNamespace:
    return SimpleNamespace(
        status=status,
        scheduled_date=scheduled.date(),
        scheduled_start_time=scheduled.time(),
    )


def test_cancellation_policy_outside_notice_period_is_refundable() -> None:
    now = datetime(2025, 6, 1, 9, 0)

    policy = check_cancellation_policy(_booking('confirmed', datetime(2025, 6, 3, 9, 0)), now=now, notice_hours=24)

    assert policy.can_cancel is True
    assert policy.is_within_notice_period is False
    assert policy.refund_eligible is True
    assert policy.hours_until_appointment == 48
    assert policy.warning_message is None


def test_cancellation_policy_inside_notice_period_warns() -> None:
    now = datetime(2025, 6, 1, 9, 0)

    policy = check_cancellation_policy(_booking('pending', datetime(2025, 6, 1, 19, 0)), now=now, notice_hours=24)

    assert policy.can_cancel is True
    assert policy.is_within_notice_period is True
    assert policy.refund_eligible is False
    assert policy.warning_message.startswith('This appointment is in 10 hours.')


def test_cancellation_policy_past_appointment_cannot_be_cancelled() -> None:
    now = datetime(2025, 6, 1, 9, 0)

    policy = check_cancellation_policy(_booking('confirmed', datetime(2025, 6, 1, 8, 0)), now=now, notice_hours=24)

    assert policy.can_cancel is False
    assert policy.hours_until_appointment == 0


def test_cancellation_policy_rejects_non_cancellable_status() -> None:
    policy = check_cancellation_policy(_booking('completed', datetime(2099, 1, 1, 9, 0)))

    assert policy.can_cancel is False
    assert policy.warning_message == 'Cannot cancel booking with status: completed'


def test_pricing_applies_vehicle_size_multiplier() -> None:
    assert normalize_vehicle_size(' xl ') == 'XL'
    assert calculate_price(50, 'S') == 50.0
    assert calculate_price(50, 'm') == 60.0
    assert calculate_price(49.99, 'L') == 69.99

    with pytest.raises(ValueError):
        calculate_price(50, 'XXL')


@pytest.mark.parametrize(('value', 'expected'), [
    ('extra_large', 'extra_large'),
    (' XL ', 'extra_large'),
    ('m', 'medium'),
    ('Small', 'small'),
])
def test_normalize_price_column(value: str, expected: str) -> None:
    assert normalize_price_column(value) == expected


def test_normalize_price_column_rejects_unknown_size() -> None:
    with pytest.raises(ValueError):
        normalize_price_column('huge')
