from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from pharmacore.db import q, q1, transaction, x
from pharmacore.errors import FloorPriceError, NotFoundError, ValidationError
from pharmacore.models import PriceTier, ProductBatch, SaleLineItem, StockMovement
from pharmacore.services.ledger import get_batch, record_adjustment, record_sale, select_fifo_batch
from pharmacore.services.sale_pricing import SalePricing, SalePricingInput, calculate_sale_pricing
from pharmacore.utils import iso_now, positive_quantity, to_decimal

log = logging.getLogger(__name__)


@dataclass
class SaleLineRequest:
    product_id: int
    quantity: int
    price_tier: PriceTier = PriceTier.TARGET
    selling_price_ex_vat: Any = None   # operator override; defaults to the tier price
    batch_id: Optional[int] = None     # FIFO when omitted


@dataclass
class SaleResult:
    sale_id: int
    receipt_number: str
    total_amount: Decimal
    items: list[SaleLineItem] = field(default_factory=list)

    @property
    def total_profit(self) -> Decimal:
        return sum((i.line_profit for i in self.items), Decimal("0"))


def _normalize_tier(tier: Any) -> PriceTier:
    if isinstance(tier, PriceTier):
        return tier
    try:
        return PriceTier(str(tier).strip().upper())
    except ValueError:
        raise ValidationError("Invalid price tier. Use 'MINIMUM' or 'TARGET'.")


def _generate_receipt_number(conn, sale_ts: str) -> str:
    """
    Daily sequence:
      RCP-{YYYYMMDD}-{NNNN}
    """
    prefix = f"RCP-{sale_ts[:10].replace('-', '')}-"
    r = q1(conn, "SELECT COUNT(1) AS n FROM sales WHERE receipt_number LIKE ?", (prefix + "%",))
    n = int(r["n"]) if r else 0
    return f"{prefix}{n + 1:04d}"


def price_sale_line(
    batch: ProductBatch,
    *,
    price_tier: PriceTier,
    selling_price_ex_vat: Any = None,
) -> SalePricing:
    tier_price = batch.tier_price_ex_vat(price_tier)
    if tier_price is None:
        raise ValidationError(
            f"Batch {batch.id} has no minimum price (no supplier discount); sell at the target price."
        )

    selling = tier_price if selling_price_ex_vat is None else to_decimal(
        selling_price_ex_vat, field="Selling price"
    )
    if batch.minimum_price_ex_vat is not None and selling < batch.minimum_price_ex_vat:
        log.warning(
            "floor price violation: batch=%s attempted=%s minimum=%s",
            batch.id, selling, batch.minimum_price_ex_vat,
        )
        raise FloorPriceError(batch.id, selling, batch.minimum_price_ex_vat)

    return calculate_sale_pricing(
        SalePricingInput(
            actual_cost=batch.actual_cost,
            selling_price_ex_vat=selling,
            price_tier=price_tier,
            has_vat=batch.has_vat,
            vat_rate=batch.vat_rate,
            minimum_price_ex_vat=batch.minimum_price_ex_vat,
            batch_id=batch.id,
        )
    )


def _resolve_batch(conn, line: SaleLineRequest, quantity: int) -> ProductBatch:
    if line.batch_id is None:
        return select_fifo_batch(conn, line.product_id, quantity)
    batch = get_batch(conn, line.batch_id)
    if batch.product_id != int(line.product_id):
        raise ValidationError(f"Batch {batch.id} does not belong to product {line.product_id}.")
    return batch


def _insert_line_item(conn, *, sale_id: int, batch: ProductBatch, quantity: int,
                      pricing: SalePricing, movement: StockMovement) -> SaleLineItem:
    item_id = x(
        conn,
        """
        INSERT INTO sale_items (
            sale_id, batch_id, movement_id, quantity, price_tier,
            has_vat, vat_rate, selling_price_ex_vat, vat_amount,
            final_price_raw, final_price_rounded, rounding_extra,
            cost_at_sale, original_cost, discounted_cost, markup_multiplier, profit
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(sale_id),
            batch.id,
            movement.id,
            int(quantity),
            pricing.price_tier.value,
            1 if batch.has_vat else 0,
            batch.vat_rate,
            pricing.selling_price_ex_vat,
            pricing.vat_amount,
            pricing.final_price_raw,
            pricing.final_price_rounded,
            pricing.rounding_extra,
            pricing.actual_cost,
            batch.original_cost,
            batch.discounted_cost,
            batch.markup_multiplier,
            pricing.profit,
        ),
    )
    return SaleLineItem(
        id=item_id,
        sale_id=int(sale_id),
        batch_id=batch.id,
        movement_id=movement.id,
        quantity=int(quantity),
        price_tier=pricing.price_tier,
        has_vat=batch.has_vat,
        vat_rate=batch.vat_rate,
        selling_price_ex_vat=pricing.selling_price_ex_vat,
        vat_amount=pricing.vat_amount,
        final_price_raw=pricing.final_price_raw,
        final_price_rounded=pricing.final_price_rounded,
        rounding_extra=pricing.rounding_extra,
        cost_at_sale=pricing.actual_cost,
        original_cost=batch.original_cost,
        discounted_cost=batch.discounted_cost,
        markup_multiplier=batch.markup_multiplier,
        profit=pricing.profit,
    )


def complete_sale(conn, lines: list[SaleLineRequest], *, actor: Optional[str] = None) -> SaleResult:
    """
    Header, line items and their sale movements are written in one
    transaction. Any rejected line (floor price, stock, validation) rolls
    the whole sale back.
    """
    if not lines:
        raise ValidationError("A sale needs at least one line.")

    with transaction(conn):
        sale_ts = iso_now()
        receipt_number = _generate_receipt_number(conn, sale_ts)
        sale_id = x(
            conn,
            "INSERT INTO sales (receipt_number, sale_ts, total_amount, created_by) VALUES (?, ?, ?, ?)",
            (receipt_number, sale_ts, "0", actor),
        )

        result = SaleResult(sale_id=sale_id, receipt_number=receipt_number, total_amount=Decimal("0"))
        for line in lines:
            qty = positive_quantity(line.quantity, field=f"Quantity for product {line.product_id}")
            tier = _normalize_tier(line.price_tier)

            batch = _resolve_batch(conn, line, qty)
            pricing = price_sale_line(batch, price_tier=tier, selling_price_ex_vat=line.selling_price_ex_vat)
            movement = record_sale(conn, batch.id, qty, sale_id, actor=actor)
            item = _insert_line_item(
                conn, sale_id=sale_id, batch=batch, quantity=qty, pricing=pricing, movement=movement
            )
            result.items.append(item)
            result.total_amount += item.line_total

        # Still inside the creating transaction; the header is final once committed.
        x(conn, "UPDATE sales SET total_amount=? WHERE id=?", (result.total_amount, sale_id))

    log.info("sale %s completed: %d line(s), total %s", receipt_number, len(result.items), result.total_amount)
    return result


def get_sale_items(conn, sale_id: int) -> list[SaleLineItem]:
    rows = q(conn, "SELECT * FROM sale_items WHERE sale_id=? ORDER BY id", (int(sale_id),))
    return [SaleLineItem.from_row(r) for r in rows]


def is_reversed(conn, sale_id: int) -> bool:
    return q1(conn, "SELECT 1 FROM sale_reversals WHERE sale_id=?", (int(sale_id),)) is not None


def reverse_sale(
    conn,
    sale_id: int,
    *,
    actor: Optional[str] = None,
    reason: Optional[str] = None,
) -> list[StockMovement]:
    """
    Returns the sold units to their batches with positive adjustments. The
    sale and its line items stay untouched; the reversal is recorded alongside.
    """
    with transaction(conn):
        if q1(conn, "SELECT 1 FROM sales WHERE id=?", (int(sale_id),)) is None:
            raise NotFoundError(f"Sale {sale_id} not found.")
        try:
            x(
                conn,
                "INSERT INTO sale_reversals (sale_id, reversed_ts, reason, created_by) VALUES (?, ?, ?, ?)",
                (int(sale_id), iso_now(), reason, actor),
            )
        except sqlite3.IntegrityError:
            raise ValidationError(f"Sale {sale_id} has already been reversed.")

        movements = [
            record_adjustment(
                conn,
                item.batch_id,
                item.quantity,
                sale_id,
                notes=reason,
                reference_type="sale_reversal",
                actor=actor,
            )
            for item in get_sale_items(conn, sale_id)
        ]

    log.info("sale %s reversed: %d movement(s)", sale_id, len(movements))
    return movements


def list_sale_items_between(
    conn,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    *,
    include_reversed: bool = False,
) -> list[SaleLineItem]:
    where: list[str] = []
    params: list = []
    if date_from:
        where.append("DATE(s.sale_ts) >= DATE(?)")
        params.append(date_from)
    if date_to:
        where.append("DATE(s.sale_ts) <= DATE(?)")
        params.append(date_to)
    if not include_reversed:
        where.append("s.id NOT IN (SELECT sale_id FROM sale_reversals)")

    sql = "SELECT i.* FROM sale_items i JOIN sales s ON s.id = i.sale_id"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY s.sale_ts, i.id"
    return [SaleLineItem.from_row(r) for r in q(conn, sql, params)]
