from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from pharmacore.config import get_settings
from pharmacore.errors import ValidationError

CENT = Decimal("0.01")


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def to_decimal(value: Any, *, field: str = "value") -> Decimal:
    """Parse ``value`` into a Decimal without going through binary floats."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number.")
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}.")
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a finite number.")
    return parsed


def to_whole_number(value: Any, *, field: str = "Quantity") -> int:
    """Units are whole numbers; 2.9 is rejected rather than truncated to 2."""
    parsed = to_decimal(value, field=field)
    if parsed != parsed.to_integral_value():
        raise ValidationError(f"{field} must be a whole number, got {value!r}.")
    return int(parsed)


def positive_quantity(value: Any, *, field: str = "Quantity") -> int:
    qty = to_whole_number(value, field=field)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0, got {qty}.")
    return qty


def to_decimal_or_none(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def safe_div(n: Decimal, d: Decimal) -> Decimal:
    return n / d if d else Decimal("0")


def format_money(amount: Any, currency: Optional[str] = None) -> str:
    if currency is None:
        currency = get_settings().currency
    return f"{currency} {money(to_decimal(amount)):,.2f}"
