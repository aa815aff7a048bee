from __future__ import annotations

"""Rate acquisition: one fresh rate per run, primary provider first.

A run asks the primary provider, drops to the fallback on any provider failure
(quota exhaustion is logged quietly, other failures as warnings) and gives up
only when the fallback fails too. The rate row and the first-of-the-day
reference row are written in one transaction, so a failed run writes nothing.
"""
import logging
import time
from datetime import datetime
from typing import Callable, Optional, Tuple

from fxguard.core.errors import (
    AcquisitionTimeoutError,
    ProviderError,
    ProviderUnavailableError,
)
from fxguard.db.rate_store import RateStore
from fxguard.models.constants import DAILY_REFERENCE_TYPE
from fxguard.models.rates import (
    RateRecord,
    daily_reference_key,
    expiry_from,
    make_pair,
    to_epoch_ms,
    utc_now,
)
from .base import RateProvider

logger = logging.getLogger("fxguard.acquisition")


class RateAcquisitionService:
    def __init__(
        self,
        store: RateStore,
        primary: RateProvider,
        fallback: RateProvider,
        *,
        base_currency: str = "USD",
        quote_currency: str = "INR",
        ttl_days: int = 90,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._primary = primary
        self._fallback = fallback
        self._base = base_currency.upper()
        self._quote = quote_currency.upper()
        self.pair = make_pair(self._base, self._quote)
        self._ttl_days = ttl_days
        self._clock = clock

    def acquire(self, deadline: Optional[float] = None) -> RateRecord:
        """Fetch and persist one rate for the tracked pair.

        deadline: ``time.monotonic()`` value after which the run must not write.
        Raises ProviderError when no provider produced a rate and
        PersistenceError when the write failed.
        """
        rate, provider = self._fetch()
        if deadline is not None and time.monotonic() > deadline:
            raise AcquisitionTimeoutError(
                f"acquisition of {self.pair} exceeded its budget; nothing written"
            )

        now = self._clock()
        timestamp = to_epoch_ms(now)
        ttl = expiry_from(timestamp, self._ttl_days)
        record = RateRecord(
            currency_pair=self.pair,
            timestamp=timestamp,
            rate=rate,
            source=provider.name,
            ttl=ttl,
        )
        daily = RateRecord(
            currency_pair=daily_reference_key(self.pair, now.date()),
            timestamp=timestamp,
            rate=rate,
            source=provider.name,
            ttl=ttl,
            type=DAILY_REFERENCE_TYPE,
        )
        seeded = self._store.append_with_daily_reference(record, daily)
        logger.info(
            "stored rate: 1 %s = %.4f %s (source: %s%s)",
            self._base,
            rate,
            self._quote,
            provider.name,
            ", daily reference" if seeded else "",
            extra={"pair": self.pair, "source": provider.name},
        )
        return record

    def close(self) -> None:
        self._primary.close()
        self._fallback.close()

    def _fetch(self) -> Tuple[float, RateProvider]:
        try:
            return self._primary.fetch_rate(self._base, self._quote), self._primary
        except ProviderUnavailableError as e:
            logger.info(
                "%s unavailable (%s), using fallback",
                self._primary.name,
                e,
                extra={"pair": self.pair, "source": self._primary.name},
            )
        except ProviderError as e:
            logger.warning(
                "%s failed, using fallback: %s",
                self._primary.name,
                e,
                exc_info=True,
                extra={"pair": self.pair, "source": self._primary.name},
            )

        try:
            return self._fallback.fetch_rate(self._base, self._quote), self._fallback
        except ProviderError as e:
            logger.error(
                "%s failed: %s",
                self._fallback.name,
                e,
                extra={"pair": self.pair, "source": self._fallback.name},
            )
            raise ProviderError(
                f"No exchange rate available from any source for {self.pair}"
            ) from e
