from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from pharmacore.config import Settings, get_settings
from pharmacore.loggers import get_logger
from pharmacore.schema import GUARD_TRIGGERS_SQL, SCHEMA_SQL

# Money is persisted as exact decimal text.
sqlite3.register_adapter(Decimal, str)

BUSY_TIMEOUT_MS = 10_000


def connect(db_path: Path | str) -> sqlite3.Connection:
    # isolation_level=None: autocommit outside of explicit transaction() blocks.
    conn = sqlite3.connect(
        str(db_path),
        check_same_thread=False,
        isolation_level=None,
        timeout=BUSY_TIMEOUT_MS / 1000,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS};")
    if str(db_path) != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL;")
    return conn


def open_database(settings: Optional[Settings] = None) -> sqlite3.Connection:
    """Connect to the configured database and make sure the schema is present."""
    settings = settings or get_settings()
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(settings.db_path)
    ensure_schema(conn)
    get_logger().info("opened database %s", settings.db_path)
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.executescript(GUARD_TRIGGERS_SQL)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    BEGIN IMMEDIATE ... COMMIT, rolling back on any exception.

    If the connection is already inside a transaction the block joins it, so
    workflows can compose ledger calls into one atomic unit.
    """
    if conn.in_transaction:
        yield conn
        return

    conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def q1(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
    rows = q(conn, sql, params)
    return rows[0] if rows else None


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    cur = conn.execute(sql, tuple(params))
    last = cur.lastrowid
    cur.close()
    return int(last or 0)
