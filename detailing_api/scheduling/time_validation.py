import re
from datetime import date, datetime, time, timedelta

ISO_DATE_PATTERN = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2}', re.ASCII)
DURATION_PATTERN = re.compile(r'[0-9]+', re.ASCII)

# A window never spans midnight, so no service can be longer than a day.
MAX_DURATION_MINUTES = 24 * 60


def parse_iso_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string. Raises ValueError otherwise."""
    if not ISO_DATE_PATTERN.fullmatch(value):
        raise ValueError('Invalid date format. Use YYYY-MM-DD')
    return date.fromisoformat(value)


def parse_duration_minutes(value: str | int) -> int:
    if isinstance(value, bool):
        raise ValueError('Duration must be a positive number')

    text = str(value).strip()
    if not DURATION_PATTERN.fullmatch(text):
        raise ValueError('Duration must be a positive number')

    minutes = int(text)
    if minutes <= 0:
        raise ValueError('Duration must be a positive number')
    if minutes > MAX_DURATION_MINUTES:
        raise ValueError(f'Duration cannot exceed {MAX_DURATION_MINUTES} minutes')

    return minutes


def add_minutes(value: time, minutes: int) -> time:
    shifted = datetime.combine(date.min, value) + timedelta(minutes=minutes)
    if shifted.date() != date.min:
        raise ValueError('Time range crosses midnight.')
    return shifted.time()


def is_time_slot_past(
    slot_date: date,
    slot_time: time,
    buffer_minutes: int = 0,
    now: datetime | None = None,
) -> bool:
    current = now or datetime.now()
    return datetime.combine(slot_date, slot_time) < current + timedelta(minutes=buffer_minutes)
