"""
Batch stock ledger.

Stock is never stored: it is the sum of a batch's stock_movements rows. Rows are
append-only; a correction is another movement. Every stock-reducing write runs
the availability check and the insert inside one BEGIN IMMEDIATE transaction
while holding the batch's lock, so concurrent sales against the same batch can
never drive it negative. The schema carries a trigger enforcing the same rule
for any writer that bypasses this module.

Use one connection per thread.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
import weakref
from contextlib import contextmanager
from typing import Iterator, Optional

from pharmacore.db import q, q1, transaction, x
from pharmacore.errors import InsufficientStockError, NotFoundError, ValidationError
from pharmacore.models import MovementType, ProductBatch, StockMovement
from pharmacore.utils import iso_now, positive_quantity, to_whole_number

log = logging.getLogger(__name__)

_locks_guard = threading.Lock()
# Locks live only while some caller holds them.
_batch_locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()


def _batch_lock(batch_id: int) -> threading.RLock:
    with _locks_guard:
        lock = _batch_locks.get(batch_id)
        if lock is None:
            lock = _batch_locks[batch_id] = threading.RLock()
        return lock


@contextmanager
def batch_scope(conn: sqlite3.Connection, batch_id: int) -> Iterator[sqlite3.Connection]:
    """Transaction first, then the batch lock: a lock holder always owns the write lock."""
    with transaction(conn):
        with _batch_lock(int(batch_id)):
            yield conn


# -------------------------
# Reads
# -------------------------

def get_batch(conn, batch_id: int) -> ProductBatch:
    r = q1(conn, "SELECT * FROM product_batches WHERE id=?", (int(batch_id),))
    if r is None:
        raise NotFoundError(f"Batch {batch_id} not found.")
    return ProductBatch.from_row(r)


def current_stock(conn, batch_id: int) -> int:
    r = q1(
        conn,
        "SELECT COALESCE(SUM(quantity), 0) AS qty FROM stock_movements WHERE batch_id=?",
        (int(batch_id),),
    )
    return int(r["qty"])


def product_stock(conn, product_id: int) -> int:
    r = q1(
        conn,
        """
        SELECT COALESCE(SUM(m.quantity), 0) AS qty
        FROM stock_movements m
        JOIN product_batches b ON b.id = m.batch_id
        WHERE b.product_id=?
        """,
        (int(product_id),),
    )
    return int(r["qty"])


def list_movements(conn, batch_id: int) -> list[StockMovement]:
    rows = q(
        conn,
        "SELECT * FROM stock_movements WHERE batch_id=? ORDER BY id",
        (int(batch_id),),
    )
    return [StockMovement.from_row(r) for r in rows]


def available_batches(conn, product_id: int) -> list[tuple[ProductBatch, int]]:
    """
    Batches of a product that still have stock, in FIFO order:
    nearest expiry first (no expiry last), then oldest received.
    """
    rows = q(
        conn,
        """
        SELECT b.*, COALESCE(SUM(m.quantity), 0) AS on_hand
        FROM product_batches b
        LEFT JOIN stock_movements m ON m.batch_id = b.id
        WHERE b.product_id=?
        GROUP BY b.id
        HAVING on_hand > 0
        ORDER BY b.expiry_date IS NULL, b.expiry_date ASC, b.received_at ASC, b.id ASC
        """,
        (int(product_id),),
    )
    return [(ProductBatch.from_row(r), int(r["on_hand"])) for r in rows]


def select_fifo_batch(conn, product_id: int, quantity: int) -> ProductBatch:
    """First FIFO batch that can cover ``quantity`` alone. Lines are never split."""
    quantity = positive_quantity(quantity)
    candidates = available_batches(conn, product_id)
    for batch, on_hand in candidates:
        if on_hand >= quantity:
            return batch

    largest = max((on_hand for _, on_hand in candidates), default=0)
    log.warning(
        "FIFO selection failed: product=%s requested=%s largest_batch=%s",
        product_id, quantity, largest,
    )
    raise InsufficientStockError(None, quantity, largest, product_id=int(product_id))


# -------------------------
# Writes
# -------------------------

def _append(
    conn,
    *,
    batch_id: int,
    movement_type: MovementType,
    quantity: int,
    reference_type: Optional[str],
    reference_id,
    notes: Optional[str],
    actor: Optional[str],
) -> StockMovement:
    created_at = iso_now()
    try:
        movement_id = x(
            conn,
            """
            INSERT INTO stock_movements (
                batch_id, movement_type, quantity,
                reference_type, reference_id, notes, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(batch_id),
                movement_type.value,
                int(quantity),
                reference_type,
                str(reference_id) if reference_id is not None else None,
                notes,
                actor,
                created_at,
            ),
        )
    except sqlite3.IntegrityError as e:
        if "insufficient stock" in str(e):
            raise InsufficientStockError(batch_id, -quantity, current_stock(conn, batch_id)) from e
        raise

    log.info(
        "stock movement #%s: batch=%s type=%s qty=%+d ref=%s:%s",
        movement_id, batch_id, movement_type.value, quantity, reference_type, reference_id,
    )
    return StockMovement(
        id=movement_id,
        batch_id=int(batch_id),
        movement_type=movement_type,
        quantity=int(quantity),
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        notes=notes,
        created_by=actor,
        created_at=created_at,
    )


def _reduce(conn, batch_id: int, quantity: int, movement_type: MovementType, **kw) -> StockMovement:
    available = current_stock(conn, batch_id)
    if quantity > available:
        log.warning(
            "rejected %s: batch=%s requested=%s available=%s",
            movement_type.value, batch_id, quantity, available,
        )
        raise InsufficientStockError(int(batch_id), quantity, available)
    return _append(conn, batch_id=batch_id, movement_type=movement_type, quantity=-quantity, **kw)


def record_purchase(
    conn,
    batch_id: int,
    quantity: int,
    reference_id,
    *,
    reference_type: str = "purchase_invoice",
    actor: Optional[str] = None,
) -> StockMovement:
    quantity = positive_quantity(quantity)
    with batch_scope(conn, batch_id):
        get_batch(conn, batch_id)
        return _append(
            conn,
            batch_id=batch_id,
            movement_type=MovementType.PURCHASE,
            quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=None,
            actor=actor,
        )


def record_sale(
    conn,
    batch_id: int,
    quantity: int,
    reference_id,
    *,
    reference_type: str = "sale",
    actor: Optional[str] = None,
) -> StockMovement:
    quantity = positive_quantity(quantity)
    with batch_scope(conn, batch_id):
        get_batch(conn, batch_id)
        return _reduce(
            conn,
            batch_id,
            quantity,
            MovementType.SALE,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=None,
            actor=actor,
        )


def record_adjustment(
    conn,
    batch_id: int,
    delta: int,
    reference_id,
    notes: Optional[str] = None,
    *,
    reference_type: str = "adjustment",
    actor: Optional[str] = None,
) -> StockMovement:
    delta = to_whole_number(delta, field="Adjustment")
    if delta == 0:
        raise ValidationError("Adjustment delta must be non-zero.")

    with batch_scope(conn, batch_id):
        get_batch(conn, batch_id)
        kw = dict(reference_type=reference_type, reference_id=reference_id, notes=notes, actor=actor)
        if delta < 0:
            return _reduce(conn, batch_id, -delta, MovementType.ADJUSTMENT, **kw)
        return _append(conn, batch_id=batch_id, movement_type=MovementType.ADJUSTMENT, quantity=delta, **kw)
