from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from pharmacore.utils import to_decimal_or_none


class PriceTier(str, Enum):
    MINIMUM = "MINIMUM"
    TARGET = "TARGET"


class MovementType(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    category_id: Optional[int]
    supplier_id: Optional[int]
    barcode: Optional[str]
    min_stock_level: int
    has_vat: bool

    @classmethod
    def from_row(cls, r: sqlite3.Row) -> "Product":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            category_id=r["category_id"],
            supplier_id=r["supplier_id"],
            barcode=r["barcode"],
            min_stock_level=int(r["min_stock_level"]),
            has_vat=bool(r["has_vat"]),
        )


@dataclass(frozen=True)
class ProductBatch:
    id: int
    product_id: int
    supplier_id: int
    purchase_invoice_id: int
    batch_number: str
    expiry_date: Optional[str]
    received_at: str
    has_vat: bool
    vat_rate: Decimal
    markup_multiplier: Decimal
    original_cost: Decimal
    discount_percent: Optional[Decimal]
    discounted_cost: Optional[Decimal]
    minimum_price_ex_vat: Optional[Decimal]
    minimum_price_rounded: Optional[Decimal]
    target_price_ex_vat: Decimal
    target_price_rounded: Decimal
    quantity_received: int

    @property
    def actual_cost(self) -> Decimal:
        return self.discounted_cost if self.discounted_cost is not None else self.original_cost

    @property
    def has_discount(self) -> bool:
        return self.discounted_cost is not None

    def tier_price_ex_vat(self, tier: PriceTier) -> Optional[Decimal]:
        if tier is PriceTier.MINIMUM:
            return self.minimum_price_ex_vat
        return self.target_price_ex_vat

    @classmethod
    def from_row(cls, r: sqlite3.Row) -> "ProductBatch":
        return cls(
            id=int(r["id"]),
            product_id=int(r["product_id"]),
            supplier_id=int(r["supplier_id"]),
            purchase_invoice_id=int(r["purchase_invoice_id"]),
            batch_number=str(r["batch_number"]),
            expiry_date=r["expiry_date"],
            received_at=str(r["received_at"]),
            has_vat=bool(r["has_vat"]),
            vat_rate=Decimal(r["vat_rate"]),
            markup_multiplier=Decimal(r["markup_multiplier"]),
            original_cost=Decimal(r["original_cost"]),
            discount_percent=to_decimal_or_none(r["discount_percent"]),
            discounted_cost=to_decimal_or_none(r["discounted_cost"]),
            minimum_price_ex_vat=to_decimal_or_none(r["minimum_price_ex_vat"]),
            minimum_price_rounded=to_decimal_or_none(r["minimum_price_rounded"]),
            target_price_ex_vat=Decimal(r["target_price_ex_vat"]),
            target_price_rounded=Decimal(r["target_price_rounded"]),
            quantity_received=int(r["quantity_received"]),
        )


@dataclass(frozen=True)
class StockMovement:
    id: int
    batch_id: int
    movement_type: MovementType
    quantity: int
    reference_type: Optional[str]
    reference_id: Optional[str]
    notes: Optional[str]
    created_by: Optional[str]
    created_at: str

    @classmethod
    def from_row(cls, r: sqlite3.Row) -> "StockMovement":
        return cls(
            id=int(r["id"]),
            batch_id=int(r["batch_id"]),
            movement_type=MovementType(r["movement_type"]),
            quantity=int(r["quantity"]),
            reference_type=r["reference_type"],
            reference_id=r["reference_id"],
            notes=r["notes"],
            created_by=r["created_by"],
            created_at=str(r["created_at"]),
        )


@dataclass(frozen=True)
class SaleLineItem:
    """One persisted sale line. Money fields are per unit."""

    id: int
    sale_id: int
    batch_id: int
    movement_id: int
    quantity: int
    price_tier: PriceTier
    has_vat: bool
    vat_rate: Decimal
    selling_price_ex_vat: Decimal
    vat_amount: Decimal
    final_price_raw: Decimal
    final_price_rounded: Decimal
    rounding_extra: Decimal
    cost_at_sale: Decimal
    original_cost: Decimal
    discounted_cost: Optional[Decimal]
    markup_multiplier: Decimal
    profit: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.final_price_rounded * self.quantity

    @property
    def line_profit(self) -> Decimal:
        return self.profit * self.quantity

    @classmethod
    def from_row(cls, r: sqlite3.Row) -> "SaleLineItem":
        return cls(
            id=int(r["id"]),
            sale_id=int(r["sale_id"]),
            batch_id=int(r["batch_id"]),
            movement_id=int(r["movement_id"]),
            quantity=int(r["quantity"]),
            price_tier=PriceTier(r["price_tier"]),
            has_vat=bool(r["has_vat"]),
            vat_rate=Decimal(r["vat_rate"]),
            selling_price_ex_vat=Decimal(r["selling_price_ex_vat"]),
            vat_amount=Decimal(r["vat_amount"]),
            final_price_raw=Decimal(r["final_price_raw"]),
            final_price_rounded=Decimal(r["final_price_rounded"]),
            rounding_extra=Decimal(r["rounding_extra"]),
            cost_at_sale=Decimal(r["cost_at_sale"]),
            original_cost=Decimal(r["original_cost"]),
            discounted_cost=to_decimal_or_none(r["discounted_cost"]),
            markup_multiplier=Decimal(r["markup_multiplier"]),
            profit=Decimal(r["profit"]),
        )
