"""
Product pricing: cost + supplier discount + VAT -> floor and recommended prices.

The recommended (target) price is always marked up from the *original* cost.
A supplier discount never lowers the recommended price; it only creates a
floor (minimum) price, marked up from the discounted cost, and the gap is kept
as margin.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from pharmacore.errors import ValidationError
from pharmacore.models import PriceTier
from pharmacore.services.markup import (
    HUNDRED,
    MARKUP_MULTIPLIER,
    apply_markup,
    apply_vat,
    round_up_to_nearest_5_or_10,
)
from pharmacore.utils import money, to_decimal

LOW_MARGIN_BAND = Decimal("0.2")


@dataclass(frozen=True)
class PricingInput:
    original_cost: Any
    discount_percent: Any = None
    has_vat: bool = False
    vat_rate: Any = 0


@dataclass(frozen=True)
class ProductPricing:
    original_cost: Decimal
    discounted_cost: Optional[Decimal]
    actual_cost: Decimal
    has_discount: bool

    minimum_price_ex_vat: Optional[Decimal]
    minimum_price_with_vat: Optional[Decimal]
    minimum_price_rounded: Optional[Decimal]

    target_price_ex_vat: Decimal
    target_price_with_vat: Decimal
    target_price_rounded: Decimal

    def ex_vat_for(self, tier: PriceTier) -> Optional[Decimal]:
        if tier is PriceTier.MINIMUM:
            return self.minimum_price_ex_vat
        return self.target_price_ex_vat


def validate_percent(value: Any, *, field: str) -> Decimal:
    pct = to_decimal(value, field=field)
    if pct < 0 or pct > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100, got {pct}.")
    return pct


def calculate_product_pricing(
    data: PricingInput,
    *,
    multiplier: Any = MARKUP_MULTIPLIER,
) -> ProductPricing:
    original_cost = to_decimal(data.original_cost, field="Original cost")
    if original_cost <= 0:
        raise ValidationError(f"Original cost must be > 0, got {original_cost}.")

    discount = Decimal("0")
    if data.discount_percent is not None:
        discount = validate_percent(data.discount_percent, field="Discount percent")
    vat_rate = validate_percent(data.vat_rate if data.vat_rate is not None else 0, field="VAT rate")

    has_discount = discount > 0
    discounted_cost = money(original_cost * (1 - discount / HUNDRED)) if has_discount else None
    actual_cost = discounted_cost if discounted_cost is not None else original_cost

    target_ex_vat = apply_markup(original_cost, multiplier)
    target_with_vat = apply_vat(target_ex_vat, vat_rate, data.has_vat)

    minimum_ex_vat = minimum_with_vat = minimum_rounded = None
    if discounted_cost is not None:
        minimum_ex_vat = apply_markup(discounted_cost, multiplier)
        minimum_with_vat = apply_vat(minimum_ex_vat, vat_rate, data.has_vat)
        minimum_rounded = round_up_to_nearest_5_or_10(minimum_with_vat)

    return ProductPricing(
        original_cost=original_cost,
        discounted_cost=discounted_cost,
        actual_cost=actual_cost,
        has_discount=has_discount,
        minimum_price_ex_vat=minimum_ex_vat,
        minimum_price_with_vat=minimum_with_vat,
        minimum_price_rounded=minimum_rounded,
        target_price_ex_vat=target_ex_vat,
        target_price_with_vat=target_with_vat,
        target_price_rounded=round_up_to_nearest_5_or_10(target_with_vat),
    )


def validate_floor_price(selling_price_ex_vat: Any, minimum_price_ex_vat: Optional[Any]) -> bool:
    if minimum_price_ex_vat is None:
        return True
    return to_decimal(selling_price_ex_vat) >= to_decimal(minimum_price_ex_vat)


def is_low_margin(current_price: Any, minimum_price: Optional[Any], target_price: Any) -> bool:
    """True when ``current_price`` sits in the bottom 20% of the minimum..target band."""
    if minimum_price is None:
        return False
    current = to_decimal(current_price)
    minimum = to_decimal(minimum_price)
    threshold = minimum + (to_decimal(target_price) - minimum) * LOW_MARGIN_BAND
    return current <= threshold


def price_tier_label(tier: PriceTier) -> str:
    return "Minimum Price" if tier is PriceTier.MINIMUM else "Target Price"
