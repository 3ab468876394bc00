from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from pharmacore.errors import FloorPriceError, ValidationError
from pharmacore.models import PriceTier
from pharmacore.services.markup import HUNDRED, round_up_to_nearest_5_or_10, vat_amount
from pharmacore.services.pricing import validate_floor_price, validate_percent
from pharmacore.utils import money, to_decimal


@dataclass(frozen=True)
class SalePricingInput:
    actual_cost: Any
    selling_price_ex_vat: Any
    price_tier: PriceTier
    has_vat: bool = False
    vat_rate: Any = 0
    # Floor for the batch, when it has one. Re-checked here even though the
    # sale workflow already checks it.
    minimum_price_ex_vat: Optional[Any] = None
    batch_id: Optional[int] = None


@dataclass(frozen=True)
class SalePricing:
    price_tier: PriceTier
    actual_cost: Decimal
    selling_price_ex_vat: Decimal
    vat_amount: Decimal
    final_price_raw: Decimal
    final_price_rounded: Decimal
    rounding_extra: Decimal
    profit: Decimal


def calculate_sale_pricing(data: SalePricingInput) -> SalePricing:
    actual_cost = to_decimal(data.actual_cost, field="Actual cost")
    selling = to_decimal(data.selling_price_ex_vat, field="Selling price")
    if actual_cost < 0:
        raise ValidationError(f"Actual cost must be >= 0, got {actual_cost}.")
    if selling <= 0:
        raise ValidationError(f"Selling price must be > 0, got {selling}.")
    if not isinstance(data.price_tier, PriceTier):
        raise ValidationError(f"Unknown price tier {data.price_tier!r}.")
    vat_rate = validate_percent(data.vat_rate if data.vat_rate is not None else 0, field="VAT rate")

    if not validate_floor_price(selling, data.minimum_price_ex_vat):
        raise FloorPriceError(data.batch_id, selling, to_decimal(data.minimum_price_ex_vat))

    vat = vat_amount(selling, vat_rate, data.has_vat)
    raw = selling + vat
    rounded = round_up_to_nearest_5_or_10(raw)
    extra = rounded - raw

    return SalePricing(
        price_tier=data.price_tier,
        actual_cost=actual_cost,
        selling_price_ex_vat=selling,
        vat_amount=vat,
        final_price_raw=raw,
        final_price_rounded=rounded,
        rounding_extra=extra,
        profit=(selling - actual_cost) + extra,
    )


def ex_vat_from_with_vat(price_with_vat: Any, vat_rate: Any, has_vat: bool) -> Decimal:
    """Back out the ex-VAT price from an operator-entered customer price."""
    price = to_decimal(price_with_vat, field="Price")
    rate = to_decimal(vat_rate, field="VAT rate")
    if not has_vat or rate == 0:
        return price
    return money(price / (1 + rate / HUNDRED))
