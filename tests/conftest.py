# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own SQLite file under tmp_path (schema applied)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON
# - `ids` seeds one supplier, one category and two products
# - `receive` books a one-line purchase invoice and returns the batch id
# - HOME and PHARMACORE_* are isolated per test; settings cache is cleared
# ---------------------------------------------------------------------

from __future__ import annotations

import itertools

import pytest

from pharmacore.config import get_settings
from pharmacore.db import connect, ensure_schema
from pharmacore.services.batches import PurchaseLineInput, receive_purchase_invoice
from pharmacore.services.products import create_category, create_product, create_supplier


SETTINGS_ENV = [
    "PHARMACORE_DATA_DIR",
    "PHARMACORE_MARKUP",
    "PHARMACORE_VAT_RATE",
    "PHARMACORE_CURRENCY",
    "PHARMACORE_EXPIRY_WARNING_DAYS",
]


@pytest.fixture(autouse=True)
def settings_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("HOME", str(home))
    for var in SETTINGS_ENV:
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield home
    get_settings.cache_clear()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "pharmacy.db"


@pytest.fixture
def conn(db_path):
    c = connect(db_path)
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def ids(conn):
    supplier_id = create_supplier(conn, "Mediplus Distributors")
    category_id = create_category(conn, "Analgesics")
    vat_product = create_product(
        conn,
        name="Cetirizine 10mg x10",
        category_id=category_id,
        supplier_id=supplier_id,
        min_stock_level=10,
        has_vat=True,
    )
    plain_product = create_product(
        conn,
        name="Paracetamol 500mg x100",
        category_id=category_id,
        supplier_id=supplier_id,
        min_stock_level=5,
        has_vat=False,
    )
    return {
        "supplier_id": supplier_id,
        "category_id": category_id,
        "vat_product": vat_product,
        "plain_product": plain_product,
    }


@pytest.fixture
def receive(conn, ids):
    counter = itertools.count(1)

    def _receive(
        product_id=None,
        quantity=50,
        *,
        cost="100",
        discount=None,
        vat_rate=16,
        expiry=None,
        batch_number=None,
    ) -> int:
        result = receive_purchase_invoice(
            conn,
            invoice_number=f"INV-{next(counter):04d}",
            supplier_id=ids["supplier_id"],
            lines=[
                PurchaseLineInput(
                    product_id=product_id or ids["vat_product"],
                    quantity=quantity,
                    original_cost=cost,
                    discount_percent=discount,
                    vat_rate=vat_rate,
                    expiry_date=expiry,
                    batch_number=batch_number,
                )
            ],
            actor="tester",
        )
        return result.batch_ids[0]

    return _receive
