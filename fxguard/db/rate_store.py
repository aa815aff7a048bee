"""Rate store: append-only exchange-rate time-series on SQLite.

Responsibilities
----------------
- Append rate records keyed by (currency_pair, timestamp); an existing key is a
  ``ConflictError``, never an overwrite.
- Answer "latest rate" and "rate in effect at instant T" (greatest timestamp
  not after T, no interpolation) for a pair.
- Hold daily reference rows under derived keys, first write of the day wins.
- Reclaim rows whose ttl has passed.

Every call opens and closes its own connection, so concurrent readers and
writers in separate threads or processes need no coordination beyond SQLite's.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from fxguard.core.errors import ConflictError, PersistenceError
from fxguard.models.rates import RateRecord

_COLUMNS = "currency_pair, timestamp, rate, source, type, ttl"
_INSERT_SQL = f"INSERT INTO exchange_rates ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)"


def _row_to_record(row: sqlite3.Row) -> RateRecord:
    data: Dict[str, Any] = dict(row)
    return RateRecord(**data)


def _params(record: RateRecord) -> tuple:
    return (
        record.currency_pair,
        record.timestamp,
        record.rate,
        record.source,
        record.type,
        record.ttl,
    )


class RateStore:
    def __init__(self, db_path: Path, timeout: float = 15.0):
        self.db_path = db_path
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Connection helpers
    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open rate store: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:  # commit on success, rollback on error
                yield conn
        except sqlite3.IntegrityError as e:
            raise ConflictError(str(e)) from e
        except sqlite3.Error as e:
            raise PersistenceError(f"rate store failure: {e}") from e
        finally:
            conn.close()

    def _fetch_one(self, sql: str, params: tuple) -> Optional[RateRecord]:
        with self._connect() as conn:
            row = conn.execute(sql, params).fetchone()
        return _row_to_record(row) if row else None

    # ------------------------------------------------------------------
    # Writes
    def append(self, record: RateRecord) -> None:
        with self._connect() as conn:
            conn.execute(_INSERT_SQL, _params(record))

    def append_with_daily_reference(
        self, record: RateRecord, daily: RateRecord
    ) -> bool:
        """Append ``record`` and seed ``daily`` if its key has no row yet.

        Both writes share one transaction. Returns True when the daily
        reference row was created by this call.
        """
        with self._connect() as conn:
            conn.execute(_INSERT_SQL, _params(record))
            cur = conn.execute(
                f"""
                INSERT INTO exchange_rates ({_COLUMNS})
                SELECT ?, ?, ?, ?, ?, ?
                WHERE NOT EXISTS (
                    SELECT 1 FROM exchange_rates WHERE currency_pair = ?
                )
                """,
                _params(daily) + (daily.currency_pair,),
            )
            return cur.rowcount == 1

    def purge_expired(self, now_epoch_seconds: int) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM exchange_rates WHERE ttl <= ?", (now_epoch_seconds,)
            )
            return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    def latest(self, pair: str) -> Optional[RateRecord]:
        return self._fetch_one(
            f"""
            SELECT {_COLUMNS} FROM exchange_rates
            WHERE currency_pair = ?
            ORDER BY timestamp DESC
            LIMIT 1
            """,
            (pair,),
        )

    def at_or_before(self, pair: str, instant_ms: int) -> Optional[RateRecord]:
        return self._fetch_one(
            f"""
            SELECT {_COLUMNS} FROM exchange_rates
            WHERE currency_pair = ? AND timestamp <= ?
            ORDER BY timestamp DESC
            LIMIT 1
            """,
            (pair, instant_ms),
        )

    def by_derived_key(self, key: str) -> Optional[RateRecord]:
        # Derived keys hold a single row; the earliest one is the reference if
        # an older store ever wrote more than one.
        return self._fetch_one(
            f"""
            SELECT {_COLUMNS} FROM exchange_rates
            WHERE currency_pair = ?
            ORDER BY timestamp ASC
            LIMIT 1
            """,
            (key,),
        )
