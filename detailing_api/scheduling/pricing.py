VEHICLE_SIZE_MULTIPLIERS = {
    'S': 1.0,
    'M': 1.2,
    'L': 1.4,
    'XL': 1.6,
}

VEHICLE_SIZE_NAMES = {
    'S': 'Small',
    'M': 'Medium',
    'L': 'Large',
    'XL': 'Extra Large',
}


def normalize_vehicle_size(value: str) -> str:
    normalized = value.strip().upper()
    if normalized not in VEHICLE_SIZE_MULTIPLIERS:
        raise ValueError('Invalid vehicle size.')
    return normalized


def calculate_price(base_price: float, vehicle_size: str) -> float:
    size = normalize_vehicle_size(vehicle_size)
    return round(float(base_price) * VEHICLE_SIZE_MULTIPLIERS[size], 2)


# Column names on ``service_pricing`` for each size code.
SIZE_PRICE_COLUMNS = {
    'S': 'small',
    'M': 'medium',
    'L': 'large',
    'XL': 'extra_large',
}


def normalize_price_column(value: str) -> str:
    """Accept either a size code (``xl``) or a column name (``extra_large``)."""
    normalized = value.strip().lower()
    if normalized in SIZE_PRICE_COLUMNS.values():
        return normalized
    return SIZE_PRICE_COLUMNS[normalize_vehicle_size(normalized)]
