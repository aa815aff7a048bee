from __future__ import annotations

from datetime import datetime
from typing import Callable

from fxguard.core.errors import NoDataError
from fxguard.db.rate_store import RateStore
from fxguard.models.constants import DEFAULT_BASE_CURRENCY, DEFAULT_QUOTE_CURRENCY
from fxguard.models.rates import CurrentRate, daily_reference_key, make_pair, utc_now


class RateQueryService:
    """Read-only view of the latest rate and its drift since today's reference."""

    def __init__(self, store: RateStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    def get_current_rate(
        self,
        from_ccy: str = DEFAULT_BASE_CURRENCY,
        to_ccy: str = DEFAULT_QUOTE_CURRENCY,
    ) -> CurrentRate:
        pair = make_pair(from_ccy, to_ccy)
        latest = self._store.latest(pair)
        if latest is None:
            raise NoDataError("No rates found")

        daily_change = 0.0
        daily_change_percent = 0.0
        daily = self._store.by_derived_key(
            daily_reference_key(pair, self._clock().date())
        )
        if daily is not None:
            daily_change = latest.rate - daily.rate
            daily_change_percent = daily_change / daily.rate * 100

        return CurrentRate(
            currency_pair=pair,
            rate=latest.rate,
            timestamp=latest.timestamp,
            daily_change=daily_change,
            daily_change_percent=daily_change_percent,
        )
