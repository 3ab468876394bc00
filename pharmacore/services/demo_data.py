from __future__ import annotations

import random
from datetime import date, timedelta

from pharmacore.db import ensure_schema, q, q1, transaction, x
from pharmacore.models import PriceTier
from pharmacore.schema import GUARD_TRIGGER_NAMES
from pharmacore.services.batches import PurchaseLineInput, receive_purchase_invoice
from pharmacore.services.products import create_product
from pharmacore.services.sales import SaleLineRequest, complete_sale

DEFAULT_CATEGORIES = ["Analgesics", "Antibiotics", "Antihistamines", "Supplements"]
DEFAULT_SUPPLIERS = ["Mediplus Distributors", "Kenya Pharma Supplies"]

# name, category, has_vat, min_stock_level, unit cost
DEMO_PRODUCTS = [
    ("Paracetamol 500mg x100", "Analgesics", False, 20, "120"),
    ("Ibuprofen 400mg x30", "Analgesics", False, 15, "85"),
    ("Amoxicillin 500mg x21", "Antibiotics", False, 10, "240"),
    ("Cetirizine 10mg x10", "Antihistamines", True, 10, "60"),
    ("Vitamin C 1000mg x20", "Supplements", True, 5, "310"),
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)

    for name in DEFAULT_CATEGORIES:
        x(conn, "INSERT OR IGNORE INTO categories(name) VALUES (?)", (name,))

    for name in DEFAULT_SUPPLIERS:
        x(conn, "INSERT OR IGNORE INTO suppliers(name) VALUES (?)", (name,))


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs). The append-only guards
    # are lifted for the wipe and restored by ensure_schema().
    with transaction(conn):
        for trg in GUARD_TRIGGER_NAMES:
            conn.execute(f"DROP TRIGGER IF EXISTS {trg};")
        for t in [
            "sale_items",
            "sale_reversals",
            "purchase_reversals",
            "sales",
            "stock_take_items",
            "stock_take_sessions",
            "stock_movements",
            "product_batches",
            "purchase_invoices",
            "products",
            "categories",
            "suppliers",
        ]:
            conn.execute(f"DELETE FROM {t};")
    ensure_schema(conn)


def load_demo_data(conn, *, seed: int = 7) -> None:
    rnd = random.Random(seed)
    upsert_reference_data(conn)

    categories = {r["name"]: int(r["id"]) for r in q(conn, "SELECT id, name FROM categories")}
    suppliers = [int(r["id"]) for r in q(conn, "SELECT id FROM suppliers ORDER BY id")]

    product_ids: list[int] = []
    lines: list[PurchaseLineInput] = []
    for name, category, has_vat, min_level, cost in DEMO_PRODUCTS:
        existing = q1(conn, "SELECT id FROM products WHERE name=?", (name,))
        pid = int(existing["id"]) if existing else create_product(
            conn,
            name=name,
            category_id=categories.get(category),
            supplier_id=suppliers[0],
            min_stock_level=min_level,
            has_vat=has_vat,
        )
        product_ids.append(pid)
        lines.append(
            PurchaseLineInput(
                product_id=pid,
                quantity=rnd.randint(30, 120),
                original_cost=cost,
                discount_percent=rnd.choice([None, 5, 10]),
                vat_rate=16 if has_vat else 0,
                expiry_date=(date.today() + timedelta(days=rnd.randint(20, 400))).isoformat(),
            )
        )

    n = int(q1(conn, "SELECT COUNT(1) AS n FROM purchase_invoices")["n"])
    receive_purchase_invoice(
        conn,
        invoice_number=f"DEMO-INV-{n + 1:03d}",
        supplier_id=suppliers[0],
        lines=lines,
        notes="Demo purchase invoice",
        actor="demo",
    )

    # A few walk-in sales at target price
    for pid in product_ids[:3]:
        complete_sale(
            conn,
            [SaleLineRequest(product_id=pid, quantity=rnd.randint(1, 5), price_tier=PriceTier.TARGET)],
            actor="demo",
        )
