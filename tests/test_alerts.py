from datetime import date

from pharmacore.config import get_settings
from pharmacore.services.alerts import EXPIRY_WARNING, LOW_STOCK, expiry_alerts, low_stock_alerts, stock_alerts
from pharmacore.services.ledger import record_sale

TODAY = date(2026, 10, 18)


def test_low_stock_at_or_below_minimum(conn, ids, receive):
    # vat_product min 10, plain_product min 5
    batch_id = receive(ids["vat_product"], 12)
    receive(ids["plain_product"], 6)
    assert low_stock_alerts(conn) == []

    record_sale(conn, batch_id, 2, "S-1")
    (alert,) = low_stock_alerts(conn)
    assert alert.alert_type == LOW_STOCK
    assert alert.product_id == ids["vat_product"]
    assert alert.current_stock == 10
    assert alert.min_stock_level == 10
    assert alert.shortfall == 0


def test_products_without_batches_are_low(conn, ids):
    alerts = low_stock_alerts(conn)
    assert {a.product_id for a in alerts} == {ids["vat_product"], ids["plain_product"]}
    assert all(a.current_stock == 0 for a in alerts)
    shortfalls = {a.product_id: a.shortfall for a in alerts}
    assert shortfalls == {ids["vat_product"]: 10, ids["plain_product"]: 5}


def test_expiry_window(conn, ids, receive):
    receive(ids["vat_product"], 20, expiry="2026-10-18")   # today: already due
    soon = receive(ids["vat_product"], 20, expiry="2026-10-19")
    edge = receive(ids["vat_product"], 20, expiry="2026-11-17")  # 30 days
    receive(ids["vat_product"], 20, expiry="2026-11-18")   # 31 days
    receive(ids["vat_product"], 20)                          # no expiry

    alerts = expiry_alerts(conn, today=TODAY)
    assert [a.batch_id for a in alerts] == [soon, edge]
    assert [a.days_to_expiry for a in alerts] == [1, 30]
    assert all(a.alert_type == EXPIRY_WARNING for a in alerts)
    assert alerts[0].shortfall is None

    assert [a.batch_id for a in expiry_alerts(conn, today=TODAY, warning_days=7)] == [soon]


def test_exhausted_batches_do_not_warn(conn, ids, receive):
    batch_id = receive(ids["vat_product"], 2, expiry="2026-10-25")
    record_sale(conn, batch_id, 2, "S-1")
    assert expiry_alerts(conn, today=TODAY) == []


def test_stock_alerts_combines_both_kinds(conn, ids, receive):
    receive(ids["vat_product"], 50, expiry="2026-10-20")
    alerts = stock_alerts(conn, today=TODAY)
    kinds = [(a.alert_type, a.product_id) for a in alerts]
    assert (LOW_STOCK, ids["plain_product"]) in kinds
    assert (EXPIRY_WARNING, ids["vat_product"]) in kinds
    assert (LOW_STOCK, ids["vat_product"]) not in kinds


def test_expiry_window_defaults_to_configured_days(conn, ids, receive, monkeypatch):
    soon = receive(ids["vat_product"], 20, expiry="2026-10-21")
    receive(ids["vat_product"], 20, expiry="2026-11-10")
    assert len(expiry_alerts(conn, today=TODAY)) == 2

    monkeypatch.setenv("PHARMACORE_EXPIRY_WARNING_DAYS", "7")
    get_settings.cache_clear()
    assert [a.batch_id for a in expiry_alerts(conn, today=TODAY)] == [soon]
    assert [a.batch_id for a in stock_alerts(conn, today=TODAY) if a.alert_type == EXPIRY_WARNING] == [soon]
