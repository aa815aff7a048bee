"""Database schema DDL definitions and initialization utilities.

Tables:
  - exchange_rates: append-only rate time-series, one partition per currency pair
    (daily reference rows live under derived "<pair>-DAILY-<date>" keys)
  - order_impacts: latest computed impact snapshot per (order_id, store_id)
  - metadata: key/value store (schema version)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

EXCHANGE_RATES_DDL = """
CREATE TABLE IF NOT EXISTS exchange_rates (
    currency_pair TEXT NOT NULL, -- 'USD-INR' or 'USD-INR-DAILY-2024-01-15'
    timestamp INTEGER NOT NULL, -- acquisition instant, ms epoch
    rate REAL NOT NULL CHECK (rate > 0),
    source TEXT,
    type TEXT, -- NULL | 'daily_reference'
    ttl INTEGER NOT NULL, -- expiry, epoch seconds
    PRIMARY KEY (currency_pair, timestamp)
);
"""

ORDER_IMPACTS_DDL = """
CREATE TABLE IF NOT EXISTS order_impacts (
    order_id TEXT NOT NULL,
    store_id TEXT NOT NULL,
    order_date TEXT NOT NULL, -- ISO-8601 UTC, lexicographically sortable
    order_amount REAL NOT NULL,
    order_rate REAL NOT NULL,
    current_rate REAL NOT NULL,
    margin_loss REAL NOT NULL,
    percentage_change REAL NOT NULL,
    timestamp INTEGER NOT NULL, -- calculation instant, ms epoch
    ttl INTEGER NOT NULL,
    PRIMARY KEY (order_id, store_id)
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

ORDER_IMPACTS_STORE_INDEX_DDL = """
CREATE INDEX IF NOT EXISTS idx_order_impacts_store_date
ON order_impacts(store_id, order_date DESC, order_id DESC);
"""

DDL_ORDER: Sequence[str] = (
    EXCHANGE_RATES_DDL,
    ORDER_IMPACTS_DDL,
    METADATA_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        cur.execute(ORDER_IMPACTS_STORE_INDEX_DDL)
        conn.commit()
    finally:
        conn.close()
