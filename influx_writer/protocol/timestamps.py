"""
Timestamp Precision Helpers

Line protocol timestamps are integer offsets from the Unix epoch. The unit is
chosen per write request with the `precision` query parameter and defaults
to nanoseconds on the server.
"""

from datetime import datetime, timezone
from typing import Union

from influx_writer.errors import ValidationError

# Nanoseconds per unit, keyed by the server's precision names
PRECISION_FACTORS = {
    'ns': 1,
    'u': 1_000,
    'ms': 1_000_000,
    's': 1_000_000_000,
    'm': 60 * 1_000_000_000,
    'h': 3600 * 1_000_000_000,
}

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_valid_precision(precision: str) -> bool:
    return precision in PRECISION_FACTORS


def to_epoch(value: Union[datetime, int], precision: str = 'ns') -> int:
    """
    Convert a datetime to an integer epoch timestamp

    Naive datetimes are treated as UTC. Integers are assumed to already be in
    the requested precision and are returned unchanged.

    Args:
        value: datetime or int
        precision: One of ns, u, ms, s, m, h

    Returns:
        Integer timestamp in the requested precision, floored so that
        sub-unit remainders always round toward the earlier instant
    """
    if not is_valid_precision(precision):
        raise ValidationError(f"Unknown timestamp precision: {precision}")

    if isinstance(value, bool):
        raise ValidationError("Timestamp must be a datetime or int, got bool")
    if isinstance(value, int):
        return value
    if not isinstance(value, datetime):
        raise ValidationError(f"Timestamp must be a datetime or int, got {type(value).__name__}")

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    # timedelta arithmetic keeps microsecond precision, float timestamps would not
    delta = value - EPOCH
    nanoseconds = (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000
    return nanoseconds // PRECISION_FACTORS[precision]
