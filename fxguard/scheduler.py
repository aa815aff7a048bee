"""Periodic rate refresh.

``RateRefreshScheduler`` runs one acquisition per interval on a background
thread; each run gets a hard wall-clock budget and is abandoned (nothing
written) when it overruns. The module is also the one-shot entry point for
external schedulers: ``python -m fxguard.scheduler`` exits non-zero when the
run fails so cron or a timer unit can alert and retry on its next period.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional

from fxguard.core.config import get_settings
from fxguard.core.errors import FxGuardError
from fxguard.core.logging import init_logging
from fxguard.db.migrate import apply_migrations
from fxguard.db.order_store import OrderImpactStore
from fxguard.db.rate_store import RateStore
from fxguard.services.rates.acquisition import RateAcquisitionService
from fxguard.services.registry import build_services

logger = logging.getLogger("fxguard.scheduler")


class RateRefreshScheduler:
    def __init__(
        self,
        service: RateAcquisitionService,
        *,
        interval_seconds: float = 30 * 60,
        budget_seconds: float = 30.0,
        rate_store: Optional[RateStore] = None,
        order_store: Optional[OrderImpactStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._service = service
        self._interval = interval_seconds
        self._budget = budget_seconds
        self._rate_store = rate_store
        self._order_store = order_store
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # One worker: an overrunning run keeps it busy and the next run waits
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="rate-acquisition"
        )

    def run_once(self) -> bool:
        """Run one acquisition within the budget; True when a rate was stored."""
        deadline = time.monotonic() + self._budget
        future = self._executor.submit(self._service.acquire, deadline)
        try:
            future.result(timeout=self._budget)
        except FutureTimeout:
            logger.error(
                "rate acquisition exceeded %.0fs budget, abandoning run", self._budget
            )
            return False
        except FxGuardError:
            logger.exception("rate acquisition failed")
            return False
        self._purge_expired()
        return True

    def _purge_expired(self) -> None:
        now = int(self._clock())
        for store in (self._rate_store, self._order_store):
            if store is None:
                continue
            try:
                removed = store.purge_expired(now)
            except FxGuardError:
                logger.warning("expiry sweep failed", exc_info=True)
                continue
            if removed:
                logger.info("purged %d expired rows from %s", removed, type(store).__name__)

    # Background loop ----------------------------------------------------
    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="rate-refresh", daemon=True
        )
        self._thread.start()
        logger.info("rate refresh scheduled every %.0fs", self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("unexpected error in rate refresh")
            self._stop.wait(self._interval)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="fxguard-fetch-rates", description="Fetch and store the tracked FX rate."
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="run a single acquisition (default)")
    mode.add_argument("--loop", action="store_true", help="keep refreshing on the configured interval")
    args = parser.parse_args(argv)

    settings = get_settings()
    init_logging(debug=settings.debug)
    apply_migrations(settings.db_path)  # type: ignore[arg-type]
    services = build_services(settings)
    scheduler = RateRefreshScheduler(
        services.acquisition,
        interval_seconds=settings.refresh_interval_minutes * 60,
        budget_seconds=settings.acquisition_budget_seconds,
        rate_store=services.rate_store,
        order_store=services.order_store,
    )
    try:
        if args.loop:
            scheduler.start()
            try:
                while True:
                    time.sleep(3600)
            except KeyboardInterrupt:
                logger.info("stopping rate refresh")
            return 0
        return 0 if scheduler.run_once() else 1
    finally:
        scheduler.stop()
        services.close()


if __name__ == "__main__":
    sys.exit(main())
