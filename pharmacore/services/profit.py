"""
Profit decomposition over completed sale lines.

total profit = base + discount-driven + rounding-driven, computed in Decimal so
the parts add back up to the total exactly.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from pharmacore.models import SaleLineItem
from pharmacore.services.markup import HUNDRED, MARKUP_MULTIPLIER
from pharmacore.utils import money, safe_div, to_decimal

ZERO = Decimal("0")


@dataclass(frozen=True)
class ProfitRecord:
    """Per-unit figures for one sold line, weighted by ``quantity``."""

    profit: Decimal
    actual_cost: Decimal
    selling_price_ex_vat: Decimal
    rounding_extra: Decimal
    quantity: int = 1
    discounted_cost: Optional[Decimal] = None
    original_cost: Optional[Decimal] = None
    # Multiplier the batch was priced with; the aggregator default otherwise.
    markup_multiplier: Optional[Decimal] = None

    @classmethod
    def from_line_item(cls, item: SaleLineItem) -> "ProfitRecord":
        return cls(
            profit=item.profit,
            actual_cost=item.cost_at_sale,
            selling_price_ex_vat=item.selling_price_ex_vat,
            rounding_extra=item.rounding_extra,
            quantity=item.quantity,
            discounted_cost=item.discounted_cost,
            original_cost=item.original_cost,
            markup_multiplier=item.markup_multiplier,
        )


@dataclass(frozen=True)
class ProfitBreakdown:
    total_profit: Decimal
    base_profit: Decimal
    discount_driven_profit: Decimal
    rounding_driven_profit: Decimal
    total_revenue: Decimal
    total_cost: Decimal
    average_margin: Decimal
    line_count: int


def calculate_profit_breakdown(
    records: Iterable[Any],
    *,
    multiplier: Any = MARKUP_MULTIPLIER,
) -> ProfitBreakdown:
    default_mult = to_decimal(multiplier, field="multiplier")

    total_profit = ZERO
    discount_driven = ZERO
    rounding_driven = ZERO
    revenue = ZERO
    cost = ZERO
    n = 0

    for rec in records:
        qty = int(getattr(rec, "quantity", 1))
        n += 1
        total_profit += to_decimal(rec.profit) * qty
        rounding_driven += to_decimal(rec.rounding_extra) * qty
        revenue += to_decimal(rec.selling_price_ex_vat) * qty
        cost += to_decimal(rec.actual_cost) * qty

        discounted = getattr(rec, "discounted_cost", None)
        original = getattr(rec, "original_cost", None)
        if discounted is not None and original is not None:
            savings = to_decimal(original) - to_decimal(discounted)
            own = getattr(rec, "markup_multiplier", None)
            mult = default_mult if own is None else to_decimal(own, field="multiplier")
            discount_driven += savings * mult * qty

    # Cents, like the other totals; base is derived so the parts still sum to the total.
    discount_driven = money(discount_driven)
    margin = safe_div(total_profit, revenue) * HUNDRED

    return ProfitBreakdown(
        total_profit=total_profit,
        base_profit=total_profit - discount_driven - rounding_driven,
        discount_driven_profit=discount_driven,
        rounding_driven_profit=rounding_driven,
        total_revenue=revenue,
        total_cost=cost,
        average_margin=margin.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        line_count=n,
    )
