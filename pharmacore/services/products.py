from __future__ import annotations

import sqlite3
from typing import Optional

from pharmacore.db import q, q1, x
from pharmacore.errors import NotFoundError, ValidationError
from pharmacore.models import Product
from pharmacore.utils import iso_now, to_whole_number

# Descriptive fields only. VAT applicability is fixed once the product exists.
EDITABLE_FIELDS = ("name", "category_id", "barcode", "min_stock_level")


def _clean_name(name: Optional[str], what: str) -> str:
    s = str(name or "").strip()
    if not s:
        raise ValidationError(f"{what} name is required.")
    return s


def _min_stock(value) -> int:
    level = to_whole_number(value, field="Minimum stock level")
    if level < 0:
        raise ValidationError("Minimum stock level must be >= 0.")
    return level


def create_supplier(conn, name: str, *, phone: Optional[str] = None, email: Optional[str] = None) -> int:
    name = _clean_name(name, "Supplier")
    try:
        return x(conn, "INSERT INTO suppliers(name, phone, email) VALUES (?, ?, ?)", (name, phone, email))
    except sqlite3.IntegrityError:
        raise ValidationError(f"Supplier {name!r} already exists.")


def create_category(conn, name: str) -> int:
    name = _clean_name(name, "Category")
    try:
        return x(conn, "INSERT INTO categories(name) VALUES (?)", (name,))
    except sqlite3.IntegrityError:
        raise ValidationError(f"Category {name!r} already exists.")


def create_product(
    conn,
    *,
    name: str,
    category_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
    barcode: Optional[str] = None,
    min_stock_level: int = 0,
    has_vat: bool = False,
) -> int:
    name = _clean_name(name, "Product")
    min_stock_level = _min_stock(min_stock_level)
    try:
        return x(
            conn,
            """
            INSERT INTO products (name, category_id, supplier_id, barcode, min_stock_level, has_vat, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                name,
                category_id,
                supplier_id,
                (barcode or "").strip() or None,
                min_stock_level,
                1 if has_vat else 0,
                iso_now(),
            ),
        )
    except sqlite3.IntegrityError as e:
        raise ValidationError(f"Could not create product {name!r}: {e}")


def get_product(conn, product_id: int) -> Product:
    r = q1(conn, "SELECT * FROM products WHERE id=?", (int(product_id),))
    if r is None:
        raise NotFoundError(f"Product {product_id} not found.")
    return Product.from_row(r)


def list_products(conn) -> list[Product]:
    return [Product.from_row(r) for r in q(conn, "SELECT * FROM products ORDER BY name")]


def update_product_details(conn, product_id: int, **changes) -> Product:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Only descriptive fields can be edited; got {sorted(unknown)}.")
    get_product(conn, product_id)
    if not changes:
        return get_product(conn, product_id)

    if "name" in changes:
        changes["name"] = _clean_name(changes["name"], "Product")
    if "min_stock_level" in changes:
        changes["min_stock_level"] = _min_stock(changes["min_stock_level"])

    cols = ", ".join(f"{c}=?" for c in changes)
    try:
        x(conn, f"UPDATE products SET {cols} WHERE id=?", (*changes.values(), int(product_id)))
    except sqlite3.IntegrityError as e:
        raise ValidationError(f"Could not update product {product_id}: {e}")
    return get_product(conn, product_id)
