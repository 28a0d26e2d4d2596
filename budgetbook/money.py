from decimal import Decimal, InvalidOperation as DecimalError
from typing import Any, Iterable, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce ints, floats and numeric strings to Decimal; None if not numeric."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (DecimalError, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def total(amounts: Iterable[Any]) -> Decimal:
    return sum((to_decimal(a) or ZERO for a in amounts), ZERO)


def percentage(part: Any, whole: Any) -> Decimal:
    """part / whole * 100 as an exact Decimal; 0 when whole is zero."""
    whole_dec = to_decimal(whole) or ZERO
    if whole_dec == ZERO:
        return ZERO
    return (to_decimal(part) or ZERO) * HUNDRED / whole_dec
