from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from pharmacore.config import get_settings
from pharmacore.db import q, q1, transaction, x
from pharmacore.errors import NotFoundError, ValidationError
from pharmacore.models import ProductBatch, StockMovement
from pharmacore.services.ledger import record_adjustment, record_purchase
from pharmacore.services.pricing import PricingInput, ProductPricing, calculate_product_pricing
from pharmacore.services.products import get_product
from pharmacore.utils import iso_now, iso_today, positive_quantity, to_decimal

log = logging.getLogger(__name__)


@dataclass
class PurchaseLineInput:
    product_id: int
    quantity: int
    original_cost: Any
    discount_percent: Any = None
    vat_rate: Any = None               # configured default for VAT-able products
    expiry_date: Optional[str] = None
    batch_number: Optional[str] = None  # generated when omitted


@dataclass
class PurchaseResult:
    invoice_id: int
    invoice_number: str
    batch_ids: list[int] = field(default_factory=list)


def _normalize_date(value: Optional[str], what: str) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return date.fromisoformat(str(value).strip()).isoformat()
    except ValueError:
        raise ValidationError(f"{what} must be an ISO date (YYYY-MM-DD), got {value!r}.")


def _generate_batch_number(conn, *, product_id: int, received_date: str) -> str:
    """
    Sequential per product and year:
      BATCH-{YYYY}-{NNN}

    Example:
      BATCH-2025-007
    """
    prefix = f"BATCH-{str(received_date)[:4]}-"
    r = q1(
        conn,
        "SELECT COUNT(1) AS n FROM product_batches WHERE product_id=? AND batch_number LIKE ?",
        (int(product_id), prefix + "%"),
    )
    n = int(r["n"]) if r else 0
    return f"{prefix}{n + 1:03d}"


def get_batch_by_number(conn, product_id: int, batch_number: str) -> ProductBatch:
    r = q1(
        conn,
        "SELECT * FROM product_batches WHERE product_id=? AND batch_number=?",
        (int(product_id), str(batch_number)),
    )
    if r is None:
        raise NotFoundError(f"Batch {batch_number!r} of product {product_id} not found.")
    return ProductBatch.from_row(r)


def list_batches(conn, product_id: int) -> list[ProductBatch]:
    rows = q(conn, "SELECT * FROM product_batches WHERE product_id=? ORDER BY id", (int(product_id),))
    return [ProductBatch.from_row(r) for r in rows]


def create_batch(
    conn,
    *,
    product_id: int,
    supplier_id: int,
    purchase_invoice_id: int,
    batch_number: str,
    expiry_date: Optional[str],
    has_vat: bool,
    vat_rate: Any,
    discount_percent: Any,
    markup_multiplier: Any,
    pricing: ProductPricing,
    quantity: int,
) -> int:
    """
    Inserts the batch row only. Pricing columns, including the multiplier they
    were marked up with, are written once here and are immutable afterwards;
    stock is added separately through the ledger.
    """
    if not batch_number:
        raise ValidationError("Batch number is required.")
    try:
        return x(
            conn,
            """
            INSERT INTO product_batches (
                product_id, supplier_id, purchase_invoice_id, batch_number,
                expiry_date, received_at, has_vat, vat_rate, markup_multiplier,
                original_cost, discount_percent, discounted_cost,
                minimum_price_ex_vat, minimum_price_rounded,
                target_price_ex_vat, target_price_rounded,
                quantity_received
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(product_id),
                int(supplier_id),
                int(purchase_invoice_id),
                str(batch_number),
                expiry_date,
                iso_now(),
                1 if has_vat else 0,
                vat_rate,
                to_decimal(markup_multiplier, field="Markup multiplier"),
                pricing.original_cost,
                discount_percent,
                pricing.discounted_cost,
                pricing.minimum_price_ex_vat,
                pricing.minimum_price_rounded,
                pricing.target_price_ex_vat,
                pricing.target_price_rounded,
                int(quantity),
            ),
        )
    except sqlite3.IntegrityError:
        raise ValidationError(f"Batch {batch_number!r} already exists for product {product_id}.")


def receive_purchase_invoice(
    conn,
    *,
    invoice_number: str,
    supplier_id: int,
    lines: list[PurchaseLineInput],
    invoice_date: Optional[str] = None,
    notes: Optional[str] = None,
    actor: Optional[str] = None,
    markup_multiplier: Any = None,
) -> PurchaseResult:
    """
    One purchase invoice creates one batch per line, each with its own pricing,
    and a purchase movement for the received quantity. All or nothing.

    ``markup_multiplier`` defaults to the configured markup; a line without a
    VAT rate gets the configured default rate when its product is VAT-able.
    """
    invoice_number = str(invoice_number or "").strip()
    if not invoice_number:
        raise ValidationError("Invoice number is required.")
    if not lines:
        raise ValidationError("At least one invoice line is required.")
    invoice_date = _normalize_date(invoice_date, "Invoice date") or iso_today()

    settings = get_settings()
    if markup_multiplier is None:
        markup_multiplier = settings.markup_multiplier

    with transaction(conn):
        if q1(conn, "SELECT 1 FROM suppliers WHERE id=?", (int(supplier_id),)) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found.")
        try:
            invoice_id = x(
                conn,
                """
                INSERT INTO purchase_invoices (invoice_number, supplier_id, invoice_date, notes, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (invoice_number, int(supplier_id), invoice_date, notes, actor, iso_now()),
            )
        except sqlite3.IntegrityError:
            raise ValidationError(f"Purchase invoice {invoice_number!r} already exists.")

        result = PurchaseResult(invoice_id=invoice_id, invoice_number=invoice_number)
        for i, line in enumerate(lines, start=1):
            product = get_product(conn, line.product_id)
            qty = positive_quantity(line.quantity, field=f"Line {i} quantity")

            vat_rate = line.vat_rate
            if vat_rate is None:
                vat_rate = settings.default_vat_rate if product.has_vat else 0

            pricing = calculate_product_pricing(
                PricingInput(
                    original_cost=line.original_cost,
                    discount_percent=line.discount_percent,
                    has_vat=product.has_vat,
                    vat_rate=vat_rate,
                ),
                multiplier=markup_multiplier,
            )
            batch_number = (line.batch_number or "").strip() or _generate_batch_number(
                conn, product_id=product.id, received_date=invoice_date
            )

            batch_id = create_batch(
                conn,
                product_id=product.id,
                supplier_id=int(supplier_id),
                purchase_invoice_id=invoice_id,
                batch_number=batch_number,
                expiry_date=_normalize_date(line.expiry_date, f"Line {i} expiry date"),
                has_vat=product.has_vat,
                vat_rate=to_decimal(vat_rate),
                discount_percent=to_decimal(line.discount_percent) if pricing.has_discount else None,
                markup_multiplier=markup_multiplier,
                pricing=pricing,
                quantity=qty,
            )
            record_purchase(conn, batch_id, qty, invoice_id, actor=actor)
            result.batch_ids.append(batch_id)

    log.info("received invoice %s: %d batch(es)", invoice_number, len(result.batch_ids))
    return result


def is_invoice_reversed(conn, invoice_id: int) -> bool:
    return q1(conn, "SELECT 1 FROM purchase_reversals WHERE invoice_id=?", (int(invoice_id),)) is not None


def reverse_purchase_invoice(
    conn,
    invoice_id: int,
    *,
    reason: Optional[str] = None,
    actor: Optional[str] = None,
) -> list[StockMovement]:
    """
    Takes the received units of every batch on the invoice back out with
    negative adjustments. If any batch no longer holds its full received
    quantity the whole reversal is rejected. The invoice and its batches
    stay as they are.
    """
    with transaction(conn):
        if q1(conn, "SELECT 1 FROM purchase_invoices WHERE id=?", (int(invoice_id),)) is None:
            raise NotFoundError(f"Purchase invoice {invoice_id} not found.")
        try:
            x(
                conn,
                "INSERT INTO purchase_reversals (invoice_id, reversed_ts, reason, created_by) VALUES (?, ?, ?, ?)",
                (int(invoice_id), iso_now(), reason, actor),
            )
        except sqlite3.IntegrityError:
            raise ValidationError(f"Purchase invoice {invoice_id} has already been reversed.")

        rows = q(
            conn,
            "SELECT * FROM product_batches WHERE purchase_invoice_id=? ORDER BY id",
            (int(invoice_id),),
        )
        movements = [
            record_adjustment(
                conn,
                batch.id,
                -batch.quantity_received,
                invoice_id,
                notes=reason,
                reference_type="purchase_reversal",
                actor=actor,
            )
            for batch in (ProductBatch.from_row(r) for r in rows)
        ]

    log.info("purchase invoice %s reversed: %d movement(s)", invoice_id, len(movements))
    return movements
