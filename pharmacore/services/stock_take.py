from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from pharmacore.db import q, q1, transaction, x
from pharmacore.errors import NotFoundError, ValidationError
from pharmacore.models import StockMovement
from pharmacore.services.ledger import current_stock, get_batch, record_adjustment
from pharmacore.utils import iso_now, to_whole_number

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockTakeSummary:
    items_counted: int
    total_discrepancy: int      # sum of |delta|
    value_impact: Decimal       # sum of delta * actual cost


def _count(value) -> int:
    counted = to_whole_number(value, field="Counted quantity")
    if counted < 0:
        raise ValidationError(f"Counted quantity must be >= 0, got {counted}.")
    return counted


def apply_stock_count(
    conn,
    counts: Mapping[int, int],
    *,
    reference_id,
    actor: Optional[str] = None,
    reference_type: str = "stock_take",
) -> list[StockMovement]:
    """
    Reconcile counted quantities against derived stock. Each non-zero
    difference becomes an adjustment movement; matching batches get nothing.
    """
    movements: list[StockMovement] = []
    with transaction(conn):
        for batch_id, counted in counts.items():
            counted = _count(counted)
            get_batch(conn, batch_id)
            delta = counted - current_stock(conn, batch_id)
            if delta == 0:
                continue
            movements.append(
                record_adjustment(
                    conn,
                    batch_id,
                    delta,
                    reference_id,
                    notes=f"Stock count {counted}",
                    reference_type=reference_type,
                    actor=actor,
                )
            )
    return movements


def start_stock_take(
    conn,
    name: str,
    *,
    actor: Optional[str] = None,
    batch_ids: Optional[Iterable[int]] = None,
) -> int:
    """Open a session, snapshotting expected stock for the given batches (default: all with stock)."""
    name = str(name or "").strip()
    if not name:
        raise ValidationError("Stock take name is required.")

    with transaction(conn):
        if batch_ids is None:
            rows = q(
                conn,
                """
                SELECT batch_id, SUM(quantity) AS qty
                FROM stock_movements
                GROUP BY batch_id
                HAVING qty > 0
                ORDER BY batch_id
                """,
            )
            expected = [(int(r["batch_id"]), int(r["qty"])) for r in rows]
        else:
            expected = []
            for b in batch_ids:
                get_batch(conn, b)
                expected.append((int(b), current_stock(conn, b)))

        session_id = x(
            conn,
            "INSERT INTO stock_take_sessions (name, status, created_by, started_at) VALUES (?, 'in_progress', ?, ?)",
            (name, actor, iso_now()),
        )
        for batch_id, qty in expected:
            x(
                conn,
                "INSERT INTO stock_take_items (session_id, batch_id, expected_quantity) VALUES (?, ?, ?)",
                (session_id, batch_id, qty),
            )
    return session_id


def _open_session(conn, session_id: int):
    s = q1(conn, "SELECT * FROM stock_take_sessions WHERE id=?", (int(session_id),))
    if s is None:
        raise NotFoundError(f"Stock take {session_id} not found.")
    if s["status"] != "in_progress":
        raise ValidationError(f"Stock take {session_id} is already completed.")
    return s


def record_count(conn, session_id: int, batch_id: int, actual_quantity: int) -> None:
    actual_quantity = _count(actual_quantity)
    with transaction(conn):
        _open_session(conn, session_id)
        item = q1(
            conn,
            "SELECT id FROM stock_take_items WHERE session_id=? AND batch_id=?",
            (int(session_id), int(batch_id)),
        )
        if item is None:
            # Batch found on the shelf that was not in the snapshot.
            get_batch(conn, batch_id)
            x(
                conn,
                """
                INSERT INTO stock_take_items (session_id, batch_id, expected_quantity, actual_quantity)
                VALUES (?, ?, ?, ?)
                """,
                (int(session_id), int(batch_id), current_stock(conn, batch_id), actual_quantity),
            )
        else:
            x(conn, "UPDATE stock_take_items SET actual_quantity=? WHERE id=?", (actual_quantity, int(item["id"])))


def complete_stock_take(conn, session_id: int, *, actor: Optional[str] = None) -> list[StockMovement]:
    """
    Counted items are reconciled against *current* derived stock, so sales made
    while the count was in progress are not double-counted. Uncounted items
    are left alone.
    """
    with transaction(conn):
        _open_session(conn, session_id)
        rows = q(
            conn,
            "SELECT batch_id, actual_quantity FROM stock_take_items WHERE session_id=? AND actual_quantity IS NOT NULL",
            (int(session_id),),
        )
        movements = apply_stock_count(
            conn,
            {int(r["batch_id"]): int(r["actual_quantity"]) for r in rows},
            reference_id=session_id,
            actor=actor,
        )
        x(
            conn,
            "UPDATE stock_take_sessions SET status='completed', completed_at=? WHERE id=?",
            (iso_now(), int(session_id)),
        )

    log.info("stock take %s completed: %d adjustment(s)", session_id, len(movements))
    return movements


def stock_take_summary(conn, session_id: int) -> StockTakeSummary:
    """Discrepancy against the snapshot taken when the session started."""
    if q1(conn, "SELECT 1 FROM stock_take_sessions WHERE id=?", (int(session_id),)) is None:
        raise NotFoundError(f"Stock take {session_id} not found.")
    rows = q(
        conn,
        """
        SELECT batch_id, expected_quantity, actual_quantity
        FROM stock_take_items
        WHERE session_id=? AND actual_quantity IS NOT NULL
        """,
        (int(session_id),),
    )
    total = 0
    value = Decimal("0")
    for r in rows:
        delta = int(r["actual_quantity"]) - int(r["expected_quantity"])
        total += abs(delta)
        value += get_batch(conn, r["batch_id"]).actual_cost * delta
    return StockTakeSummary(items_counted=len(rows), total_discrepancy=total, value_impact=value)
