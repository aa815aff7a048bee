from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from conftest import NOW, rate_at
from fxguard.core.errors import NoDataError, PersistenceError, ValidationError
from fxguard.models.orders import ImpactRequest, OrderImpactRecord
from fxguard.services.impact import (
    WITHIN_RANGE_MESSAGE,
    ImpactCalculationService,
    build_suggestion,
    compute_impact,
    parse_order_date,
)


class UntouchableStore:
    """Fails the test if the service reaches storage."""

    def __getattr__(self, name):
        raise AssertionError(f"store.{name} accessed")


class FailingOrderStore:
    def put(self, record):
        raise PersistenceError("disk full")


def _request(**overrides) -> ImpactRequest:
    body = {
        "orderAmount": 1000,
        "orderDate": (NOW - timedelta(days=10)).isoformat(),
        "fromCurrency": "USD",
        "toCurrency": "INR",
    }
    body.update(overrides)
    return ImpactRequest.model_validate({k: v for k, v in body.items() if v is not None})


@pytest.fixture
def seeded(rate_store):
    rate_store.append(rate_at(NOW - timedelta(days=20), 80.0))
    rate_store.append(rate_at(NOW - timedelta(days=12), 85.0))
    rate_store.append(rate_at(NOW - timedelta(days=1), 83.0))
    return rate_store


def test_rate_rise_is_within_acceptable_range():
    figures = compute_impact(1000, 83.0, 85.0)

    assert figures.expected_amount == 83000
    assert figures.current_amount == 85000
    assert figures.margin_loss == -2000
    assert figures.percentage_change == pytest.approx(2.4096, abs=1e-4)
    assert build_suggestion(1000, figures.margin_loss, figures.percentage_change) == WITHIN_RANGE_MESSAGE


def test_rate_drop_suggests_raise_by_magnitude_rounded_up():
    figures = compute_impact(1000, 85.0, 83.0)

    assert figures.margin_loss == 2000
    assert figures.percentage_change == pytest.approx(-2.3529, abs=1e-4)
    assert (
        build_suggestion(1000, figures.margin_loss, figures.percentage_change)
        == "Consider raising prices by 3% to maintain margins"
    )


def test_impact_is_deterministic():
    assert compute_impact(250.5, 82.1, 83.7) == compute_impact(250.5, 82.1, 83.7)


def test_loss_exactly_at_threshold_is_acceptable():
    assert build_suggestion(1000, 20.0, -0.5) == WITHIN_RANGE_MESSAGE
    assert build_suggestion(1000, 20.01, -0.5).startswith("Consider raising prices by 1%")


def test_service_uses_rate_in_effect_at_order_time(seeded, order_store, clock):
    service = ImpactCalculationService(seeded, order_store, clock=clock)

    result = service.calculate_impact(_request())

    assert result.order_rate == 85.0
    assert result.current_rate == 83.0
    assert result.expected_inr_amount == 85000
    assert result.current_inr_amount == 83000
    assert result.margin_loss == 2000
    assert result.suggestion == "Consider raising prices by 3% to maintain margins"


def test_order_before_first_rate_is_no_data(seeded, order_store, clock):
    service = ImpactCalculationService(seeded, order_store, clock=clock)

    with pytest.raises(NoDataError):
        service.calculate_impact(_request(orderDate=(NOW - timedelta(days=30)).isoformat()))


def test_unknown_pair_is_no_data(seeded, order_store, clock):
    service = ImpactCalculationService(seeded, order_store, clock=clock)

    with pytest.raises(NoDataError):
        service.calculate_impact(_request(fromCurrency="EUR"))


@pytest.mark.parametrize(
    "overrides",
    [
        {"orderAmount": None},
        {"orderAmount": 0},
        {"orderAmount": -5},
        {"orderAmount": float("nan")},
        {"orderAmount": float("inf")},
        {"orderDate": None},
        {"orderDate": "last tuesday"},
        {"fromCurrency": None},
        {"toCurrency": ""},
    ],
)
def test_invalid_input_never_touches_storage(overrides):
    service = ImpactCalculationService(UntouchableStore(), UntouchableStore())

    with pytest.raises(ValidationError):
        service.calculate_impact(_request(**overrides))


def test_records_order_snapshot_when_ids_given(seeded, order_store, clock):
    service = ImpactCalculationService(seeded, order_store, clock=clock)

    service.calculate_impact(_request(orderId="1001", storeId="shop-1"))
    stored = order_store.get("1001", "shop-1")

    assert stored is not None
    assert stored.margin_loss == 2000
    assert stored.order_date == (NOW - timedelta(days=10)).isoformat()
    assert stored.ttl == int(NOW.timestamp()) + 365 * 24 * 60 * 60


def test_recalculation_overwrites_snapshot(seeded, order_store, clock):
    service = ImpactCalculationService(seeded, order_store, clock=clock)
    service.calculate_impact(_request(orderId="1001", storeId="shop-1"))

    seeded.append(rate_at(NOW, 86.0))
    clock.advance(hours=1)
    service.calculate_impact(_request(orderId="1001", storeId="shop-1"))

    rows = list(order_store.list_by_store("shop-1"))
    assert len(rows) == 1
    assert rows[0].current_rate == 86.0


def test_no_snapshot_without_both_ids(seeded, order_store, clock):
    service = ImpactCalculationService(seeded, order_store, clock=clock)

    service.calculate_impact(_request(orderId="1001"))

    assert order_store.get("1001", "") is None
    assert list(order_store.list_by_store("shop-1")) == []


def test_snapshot_failure_does_not_change_result(seeded, clock, caplog):
    service = ImpactCalculationService(seeded, FailingOrderStore(), clock=clock)

    with caplog.at_level(logging.WARNING, logger="fxguard.impact"):
        result = service.calculate_impact(_request(orderId="1001", storeId="shop-1"))

    assert result.margin_loss == 2000
    assert "failed to record impact for order 1001" in caplog.text


def test_invalid_snapshot_record_does_not_change_result(seeded, order_store, clock, monkeypatch, caplog):
    def reject(**fields):
        return OrderImpactRecord.model_validate({})

    monkeypatch.setattr("fxguard.services.impact.OrderImpactRecord", reject)
    service = ImpactCalculationService(seeded, order_store, clock=clock)

    with caplog.at_level(logging.WARNING, logger="fxguard.impact"):
        result = service.calculate_impact(_request(orderId="1001", storeId="shop-1"))

    assert result.margin_loss == 2000
    assert order_store.get("1001", "shop-1") is None
    assert "failed to record impact for order 1001" in caplog.text


def test_parse_order_date_accepts_zulu_and_date_only():
    assert parse_order_date("2024-03-05T10:00:00Z").isoformat() == "2024-03-05T10:00:00+00:00"
    assert parse_order_date("2024-03-05").isoformat() == "2024-03-05T00:00:00+00:00"
    assert parse_order_date("2024-03-05T15:30:00+05:30").hour == 10
