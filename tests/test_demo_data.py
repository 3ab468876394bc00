from pharmacore.db import q1
from pharmacore.services.demo_data import DEMO_PRODUCTS, load_demo_data, upsert_reference_data, wipe_all
from pharmacore.services.ledger import product_stock
from pharmacore.services.reports import profit_report


def _count(conn, table):
    return q1(conn, f"SELECT COUNT(1) AS n FROM {table}")["n"]


def test_reference_data_is_idempotent(conn):
    upsert_reference_data(conn)
    upsert_reference_data(conn)
    assert _count(conn, "categories") == 4
    assert _count(conn, "suppliers") == 2


def test_demo_data_loads_a_consistent_ledger(conn):
    load_demo_data(conn)
    assert _count(conn, "products") == len(DEMO_PRODUCTS)
    assert _count(conn, "product_batches") == len(DEMO_PRODUCTS)
    assert _count(conn, "sales") == 3
    assert profit_report(conn).line_count == 3

    for r in conn.execute("SELECT id FROM products").fetchall():
        assert product_stock(conn, r["id"]) > 0


def test_loading_twice_reuses_products(conn):
    load_demo_data(conn)
    load_demo_data(conn)
    assert _count(conn, "products") == len(DEMO_PRODUCTS)
    assert _count(conn, "purchase_invoices") == 2


def test_wipe_all_keeps_schema_and_guards(conn):
    load_demo_data(conn)
    wipe_all(conn)
    for table in ["sales", "sale_items", "stock_movements", "product_batches", "products"]:
        assert _count(conn, table) == 0
    n = q1(conn, "SELECT COUNT(1) AS n FROM sqlite_master WHERE type='trigger'")["n"]
    assert n == 6
