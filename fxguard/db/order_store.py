"""Order impact store: latest impact snapshot per (order_id, store_id)."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, timedelta
from pathlib import Path
from typing import Iterator, List, Optional

from fxguard.core.errors import PersistenceError
from fxguard.models.orders import OrderImpactRecord

_COLUMNS = (
    "order_id, store_id, order_date, order_amount, order_rate, current_rate, "
    "margin_loss, percentage_change, timestamp, ttl"
)


class OrderImpactStore:
    def __init__(self, db_path: Path, timeout: float = 15.0):
        self.db_path = db_path
        self.timeout = timeout

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open order store: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise PersistenceError(f"order store failure: {e}") from e
        finally:
            conn.close()

    def put(self, record: OrderImpactRecord) -> None:
        """Insert or replace the snapshot for the record's order/store."""
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO order_impacts ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(order_id, store_id) DO UPDATE SET
                    order_date = excluded.order_date,
                    order_amount = excluded.order_amount,
                    order_rate = excluded.order_rate,
                    current_rate = excluded.current_rate,
                    margin_loss = excluded.margin_loss,
                    percentage_change = excluded.percentage_change,
                    timestamp = excluded.timestamp,
                    ttl = excluded.ttl
                """,
                (
                    record.order_id,
                    record.store_id,
                    record.order_date,
                    record.order_amount,
                    record.order_rate,
                    record.current_rate,
                    record.margin_loss,
                    record.percentage_change,
                    record.timestamp,
                    record.ttl,
                ),
            )

    def get(self, order_id: str, store_id: str) -> Optional[OrderImpactRecord]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM order_impacts WHERE order_id = ? AND store_id = ?",
                (order_id, store_id),
            ).fetchone()
        return OrderImpactRecord(**dict(row)) if row else None

    def list_by_store(
        self,
        store_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        page_size: int = 100,
    ) -> Iterator[OrderImpactRecord]:
        """Yield a store's records newest ``order_date`` first.

        ``start``/``end`` are inclusive calendar dates. Rows are read one page at
        a time, resuming after the last (order_date, order_id) seen, so the
        iterator holds no connection between pages. Call again to restart.
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        lower = start.isoformat() if start else None
        upper = (end + timedelta(days=1)).isoformat() if end else None
        cursor: Optional[tuple] = None
        while True:
            page = self._fetch_page(store_id, lower, upper, cursor, page_size)
            yield from page
            if len(page) < page_size:
                return
            last = page[-1]
            cursor = (last.order_date, last.order_id)

    def _fetch_page(
        self,
        store_id: str,
        lower: Optional[str],
        upper: Optional[str],
        after: Optional[tuple],
        limit: int,
    ) -> List[OrderImpactRecord]:
        clauses = ["store_id = ?"]
        params: list = [store_id]
        if lower is not None:
            clauses.append("order_date >= ?")
            params.append(lower)
        if upper is not None:
            clauses.append("order_date < ?")
            params.append(upper)
        if after is not None:
            clauses.append("(order_date < ? OR (order_date = ? AND order_id < ?))")
            params.extend([after[0], after[0], after[1]])
        params.append(limit)
        sql = (
            f"SELECT {_COLUMNS} FROM order_impacts WHERE {' AND '.join(clauses)} "
            "ORDER BY order_date DESC, order_id DESC LIMIT ?"
        )
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [OrderImpactRecord(**dict(r)) for r in rows]

    def purge_expired(self, now_epoch_seconds: int) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM order_impacts WHERE ttl <= ?", (now_epoch_seconds,)
            )
            return cur.rowcount
