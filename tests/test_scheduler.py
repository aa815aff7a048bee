from __future__ import annotations

import time
from datetime import timedelta

import pytest

from conftest import NOW, StubProvider, rate_at
from fxguard.core.config import get_settings
from fxguard.core.errors import ProviderError
from fxguard.db.rate_store import RateStore
from fxguard.scheduler import RateRefreshScheduler, main
from fxguard.services.rates.acquisition import RateAcquisitionService


class SlowProvider(StubProvider):
    def fetch_rate(self, base, quote):
        time.sleep(0.5)
        return super().fetch_rate(base, quote)


def _scheduler(rate_store, order_store, clock, primary, fallback, **kwargs):
    service = RateAcquisitionService(rate_store, primary, fallback, clock=clock)
    return RateRefreshScheduler(
        service,
        rate_store=rate_store,
        order_store=order_store,
        clock=lambda: clock().timestamp(),
        **kwargs,
    )


def test_run_once_stores_rate_and_purges_expired(rate_store, order_store, clock):
    stale = rate_at(NOW - timedelta(days=100), 79.0)
    rate_store.append(stale)
    scheduler = _scheduler(
        rate_store, order_store, clock, StubProvider("fixer.io", rate=83.0), StubProvider("fallback", rate=1.0)
    )
    try:
        assert scheduler.run_once() is True
    finally:
        scheduler.stop()

    assert rate_store.latest("USD-INR").rate == 83.0
    assert rate_store.at_or_before("USD-INR", stale.timestamp) is None


def test_run_once_reports_failure_when_all_providers_fail(rate_store, order_store, clock):
    scheduler = _scheduler(
        rate_store,
        order_store,
        clock,
        StubProvider("fixer.io", error=ProviderError("down")),
        StubProvider("fallback", error=ProviderError("down too")),
    )
    try:
        assert scheduler.run_once() is False
    finally:
        scheduler.stop()

    assert rate_store.latest("USD-INR") is None


def test_run_over_budget_is_abandoned_without_write(rate_store, order_store, clock):
    scheduler = _scheduler(
        rate_store,
        order_store,
        clock,
        SlowProvider("fixer.io", rate=83.0),
        StubProvider("fallback", rate=1.0),
        budget_seconds=0.1,
    )
    try:
        assert scheduler.run_once() is False
        time.sleep(0.7)  # let the abandoned worker reach its deadline check
    finally:
        scheduler.stop()

    assert rate_store.latest("USD-INR") is None


def test_background_loop_runs_immediately(rate_store, order_store, clock):
    scheduler = _scheduler(
        rate_store,
        order_store,
        clock,
        StubProvider("fixer.io", rate=83.0),
        StubProvider("fallback", rate=1.0),
        interval_seconds=3600,
    )
    scheduler.start()
    try:
        for _ in range(50):
            if rate_store.latest("USD-INR") is not None:
                break
            time.sleep(0.05)
    finally:
        scheduler.stop(timeout=2)

    assert rate_store.latest("USD-INR").source == "fixer.io"


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PRIMARY_RATE_PROVIDER", "static")
    monkeypatch.setenv("FALLBACK_RATE_PROVIDER", "static")
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def test_cli_single_run_exit_codes(cli_env, monkeypatch):
    assert main(["--once"]) == 0
    store = RateStore(cli_env / "fxguard.sqlite3")
    assert store.latest("USD-INR").source == "static"

    # static has no GBP-JPY quote, so both providers fail
    monkeypatch.setenv("BASE_CURRENCY", "GBP")
    monkeypatch.setenv("QUOTE_CURRENCY", "JPY")
    get_settings.cache_clear()
    assert main([]) == 1
