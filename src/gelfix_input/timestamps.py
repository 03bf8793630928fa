from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from numbers import Number
from typing import Any, Optional, Union

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_USEC_PER_SECOND = 1_000_000

Numeric = Union[int, float, Decimal]


def is_numeric(value: Any) -> bool:
    """True for JSON numbers; booleans are not timestamps."""
    return isinstance(value, Number) and not isinstance(value, bool)


def coerce_timestamp(value: Numeric) -> Optional[datetime]:
    """
    Convert seconds since the epoch into an aware UTC datetime.

    Floats go through timedelta, which rounds to the nearest microsecond.
    Decimals keep their integer part exact and have the fraction rounded
    half-even to whole microseconds, so precision a float cannot carry is
    not lost before rounding.

    Returns None for values with no datetime equivalent: NaN, infinities and
    instants outside years 1-9999 (epoch milliseconds sent as seconds end
    up here).
    """
    try:
        if isinstance(value, Decimal):
            seconds = int(value)
            usec = ((value - seconds) * _USEC_PER_SECOND).quantize(
                Decimal(1), rounding=ROUND_HALF_EVEN
            )
            return _EPOCH + timedelta(seconds=seconds, microseconds=int(usec))
        if isinstance(value, int):
            return _EPOCH + timedelta(seconds=value)
        return _EPOCH + timedelta(seconds=float(value))
    except (ArithmeticError, ValueError):
        return None
