from __future__ import annotations

from typing import Any, Optional

import pandas as pd

from pharmacore.config import get_settings
from pharmacore.db import q
from pharmacore.services.profit import ProfitBreakdown, ProfitRecord, calculate_profit_breakdown
from pharmacore.services.sales import list_sale_items_between

PROFIT_BY_DAY_COLUMNS = ["day", "lines", "units", "revenue", "profit", "rounding_extra"]


def profit_report(
    conn,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    *,
    multiplier: Any = None,
) -> ProfitBreakdown:
    """Reversed sales are excluded. ``multiplier`` only applies to lines that do not carry their own."""
    if multiplier is None:
        multiplier = get_settings().markup_multiplier
    items = list_sale_items_between(conn, date_from, date_to)
    return calculate_profit_breakdown(
        (ProfitRecord.from_line_item(i) for i in items),
        multiplier=multiplier,
    )


def profit_by_day(conn, date_from: Optional[str] = None, date_to: Optional[str] = None) -> pd.DataFrame:
    """Display frame; exact totals come from profit_report()."""
    where = ["s.id NOT IN (SELECT sale_id FROM sale_reversals)"]
    params: list = []
    if date_from:
        where.append("DATE(s.sale_ts) >= DATE(?)")
        params.append(date_from)
    if date_to:
        where.append("DATE(s.sale_ts) <= DATE(?)")
        params.append(date_to)

    rows = q(
        conn,
        f"""
        SELECT DATE(s.sale_ts) AS day, i.quantity, i.selling_price_ex_vat, i.profit, i.rounding_extra
        FROM sale_items i
        JOIN sales s ON s.id = i.sale_id
        WHERE {" AND ".join(where)}
        ORDER BY s.sale_ts, i.id
        """,
        params,
    )
    if not rows:
        return pd.DataFrame(columns=PROFIT_BY_DAY_COLUMNS)

    df = pd.DataFrame([dict(r) for r in rows])
    for col in ["selling_price_ex_vat", "profit", "rounding_extra"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df["revenue"] = df["selling_price_ex_vat"] * df["quantity"]
    df["profit"] = df["profit"] * df["quantity"]
    df["rounding_extra"] = df["rounding_extra"] * df["quantity"]

    out = (
        df.groupby("day", as_index=False)
        .agg(
            lines=("quantity", "size"),
            units=("quantity", "sum"),
            revenue=("revenue", "sum"),
            profit=("profit", "sum"),
            rounding_extra=("rounding_extra", "sum"),
        )
        .sort_values("day")
        .reset_index(drop=True)
    )
    return out[PROFIT_BY_DAY_COLUMNS].round(2)


def inventory_summary(conn) -> pd.DataFrame:
    rows = q(
        conn,
        """
        WITH stock AS (
          SELECT batch_id, COALESCE(SUM(quantity), 0) AS on_hand
          FROM stock_movements
          GROUP BY batch_id
        )
        SELECT
          b.id AS batch_id,
          p.name AS product,
          b.batch_number,
          b.expiry_date,
          COALESCE(st.on_hand, 0) AS on_hand,
          COALESCE(b.discounted_cost, b.original_cost) AS actual_cost,
          b.target_price_rounded
        FROM product_batches b
        JOIN products p ON p.id = b.product_id
        LEFT JOIN stock st ON st.batch_id = b.id
        ORDER BY p.name, b.expiry_date IS NULL, b.expiry_date, b.id
        """,
    )
    cols = ["batch_id", "product", "batch_number", "expiry_date", "on_hand",
            "actual_cost", "target_price_rounded", "stock_value"]
    if not rows:
        return pd.DataFrame(columns=cols)

    df = pd.DataFrame([dict(r) for r in rows])
    for col in ["actual_cost", "target_price_rounded"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["stock_value"] = (df["on_hand"] * df["actual_cost"]).round(2)
    return df[cols]
