from __future__ import annotations

from decimal import Decimal, ROUND_CEILING
from typing import Any

from pharmacore.errors import ValidationError
from pharmacore.utils import money, to_decimal

MARKUP_MULTIPLIER = Decimal("1.33")
ROUNDING_STEP = Decimal("5")
HUNDRED = Decimal("100")


def apply_markup(cost: Any, multiplier: Any = MARKUP_MULTIPLIER) -> Decimal:
    return money(to_decimal(cost, field="cost") * to_decimal(multiplier, field="multiplier"))


def vat_amount(ex_vat_price: Any, vat_rate: Any, has_vat: bool) -> Decimal:
    if not has_vat:
        return Decimal("0.00")
    price = to_decimal(ex_vat_price, field="ex-VAT price")
    rate = to_decimal(vat_rate, field="VAT rate")
    return money(price * rate / HUNDRED)


def apply_vat(ex_vat_price: Any, vat_rate: Any, has_vat: bool) -> Decimal:
    price = to_decimal(ex_vat_price, field="ex-VAT price")
    if not has_vat:
        return price
    return price + vat_amount(price, vat_rate, has_vat)


def round_up_to_nearest_5_or_10(value: Any) -> Decimal:
    """ceil(value / 5) * 5: always a multiple of 5 and never below ``value``."""
    v = to_decimal(value, field="price")
    if v < 0:
        raise ValidationError(f"Price to round must not be negative, got {v}.")
    steps = (v / ROUNDING_STEP).to_integral_value(rounding=ROUND_CEILING)
    return steps * ROUNDING_STEP
