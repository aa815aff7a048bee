from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from fxguard.core.config import Settings
from fxguard.db.migrate import apply_migrations
from fxguard.db.order_store import OrderImpactStore
from fxguard.db.rate_store import RateStore
from fxguard.main import create_app
from fxguard.models.rates import RateRecord, expiry_from, to_epoch_ms
from fxguard.services.impact import ImpactCalculationService
from fxguard.services.rates.acquisition import RateAcquisitionService
from fxguard.services.rates.base import RateProvider
from fxguard.services.rates.query import RateQueryService
from fxguard.services.registry import ServiceRegistry

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Settable clock; services call it like ``datetime.now``."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class StubProvider(RateProvider):
    def __init__(self, name: str, rate: Optional[float] = None, error: Optional[Exception] = None):
        self.name = name
        self._rate = rate
        self._error = error
        self.calls = 0

    def fetch_rate(self, base: str, quote: str) -> float:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._rate


def rate_at(
    moment: datetime, rate: float, pair: str = "USD-INR", source: str = "test"
) -> RateRecord:
    ts = to_epoch_ms(moment)
    return RateRecord(
        currency_pair=pair, timestamp=ts, rate=rate, source=source, ttl=expiry_from(ts, 90)
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "fxguard-test.sqlite3",
        primary_rate_provider="static",
        fallback_rate_provider="static",
    )
    s.init_post_load()
    apply_migrations(s.db_path)
    return s


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def rate_store(settings) -> RateStore:
    return RateStore(settings.db_path)


@pytest.fixture
def order_store(settings) -> OrderImpactStore:
    return OrderImpactStore(settings.db_path)


@pytest.fixture
def services(settings, rate_store, order_store, clock) -> ServiceRegistry:
    return ServiceRegistry(
        settings=settings,
        rate_store=rate_store,
        order_store=order_store,
        acquisition=RateAcquisitionService(
            rate_store,
            StubProvider("stub-primary", rate=83.5),
            StubProvider("stub-fallback", rate=83.4),
            clock=clock,
        ),
        rate_query=RateQueryService(rate_store, clock=clock),
        impact=ImpactCalculationService(rate_store, order_store, clock=clock),
    )


@pytest.fixture
def app(settings, services):
    return create_app(settings_override=settings, services_override=services)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
