from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from pharmacore.config import get_settings
from pharmacore.db import q

LOW_STOCK = "low_stock"
EXPIRY_WARNING = "expiry_warning"


@dataclass(frozen=True)
class StockAlert:
    alert_type: str
    product_id: int
    product_name: str
    current_stock: Optional[int] = None
    min_stock_level: Optional[int] = None
    batch_id: Optional[int] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[str] = None
    days_to_expiry: Optional[int] = None

    @property
    def shortfall(self) -> Optional[int]:
        if self.alert_type != LOW_STOCK:
            return None
        return max(0, int(self.min_stock_level) - int(self.current_stock))


def low_stock_alerts(conn) -> list[StockAlert]:
    rows = q(
        conn,
        """
        WITH stock AS (
          SELECT b.product_id, COALESCE(SUM(m.quantity), 0) AS qty
          FROM product_batches b
          LEFT JOIN stock_movements m ON m.batch_id = b.id
          GROUP BY b.product_id
        )
        SELECT p.id, p.name, p.min_stock_level, COALESCE(s.qty, 0) AS qty
        FROM products p
        LEFT JOIN stock s ON s.product_id = p.id
        WHERE COALESCE(s.qty, 0) <= p.min_stock_level
        ORDER BY p.name
        """,
    )
    return [
        StockAlert(
            alert_type=LOW_STOCK,
            product_id=int(r["id"]),
            product_name=str(r["name"]),
            current_stock=int(r["qty"]),
            min_stock_level=int(r["min_stock_level"]),
        )
        for r in rows
    ]


def expiry_alerts(conn, *, today: Optional[date] = None, warning_days: Optional[int] = None) -> list[StockAlert]:
    """Batches still holding stock that expire within 1..warning_days days (configured by default)."""
    today = today or date.today()
    if warning_days is None:
        warning_days = get_settings().expiry_warning_days
    rows = q(
        conn,
        """
        SELECT b.id AS batch_id, b.batch_number, b.expiry_date,
               p.id AS product_id, p.name AS product_name,
               COALESCE(SUM(m.quantity), 0) AS qty
        FROM product_batches b
        JOIN products p ON p.id = b.product_id
        LEFT JOIN stock_movements m ON m.batch_id = b.id
        WHERE b.expiry_date IS NOT NULL
        GROUP BY b.id
        HAVING qty > 0
        ORDER BY b.expiry_date, b.id
        """,
    )
    out: list[StockAlert] = []
    for r in rows:
        days = (date.fromisoformat(r["expiry_date"]) - today).days
        if 0 < days <= int(warning_days):
            out.append(
                StockAlert(
                    alert_type=EXPIRY_WARNING,
                    product_id=int(r["product_id"]),
                    product_name=str(r["product_name"]),
                    current_stock=int(r["qty"]),
                    batch_id=int(r["batch_id"]),
                    batch_number=str(r["batch_number"]),
                    expiry_date=str(r["expiry_date"]),
                    days_to_expiry=days,
                )
            )
    return out


def stock_alerts(conn, *, today: Optional[date] = None, expiry_warning_days: Optional[int] = None) -> list[StockAlert]:
    return low_stock_alerts(conn) + expiry_alerts(conn, today=today, warning_days=expiry_warning_days)
