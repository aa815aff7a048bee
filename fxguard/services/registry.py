from __future__ import annotations

"""Wiring of stores, providers and services for one process.

Built once per app (or CLI run) from Settings and handed to routes through
FastAPI dependencies, so tests can swap any piece via dependency overrides.
"""
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from fxguard.core.config import Settings
from fxguard.db.order_store import OrderImpactStore
from fxguard.db.rate_store import RateStore
from fxguard.services.impact import ImpactCalculationService
from fxguard.services.rates.acquisition import RateAcquisitionService
from fxguard.services.rates.providers import make_rate_provider
from fxguard.services.rates.query import RateQueryService


@dataclass
class ServiceRegistry:
    settings: Settings
    rate_store: RateStore
    order_store: OrderImpactStore
    acquisition: RateAcquisitionService
    rate_query: RateQueryService
    impact: ImpactCalculationService

    def close(self) -> None:
        self.acquisition.close()


def build_services(
    settings: Settings, http_client: Optional[httpx.Client] = None
) -> ServiceRegistry:
    rate_store = RateStore(settings.db_path, timeout=settings.request_timeout_seconds)
    order_store = OrderImpactStore(
        settings.db_path, timeout=settings.request_timeout_seconds
    )
    acquisition = RateAcquisitionService(
        rate_store,
        make_rate_provider(settings.primary_rate_provider, settings, http_client),
        make_rate_provider(settings.fallback_rate_provider, settings, http_client),
        base_currency=settings.base_currency,
        quote_currency=settings.quote_currency,
        ttl_days=settings.rate_ttl_days,
    )
    return ServiceRegistry(
        settings=settings,
        rate_store=rate_store,
        order_store=order_store,
        acquisition=acquisition,
        rate_query=RateQueryService(rate_store),
        impact=ImpactCalculationService(
            rate_store,
            order_store,
            loss_threshold=settings.loss_alert_threshold,
            order_ttl_days=settings.order_ttl_days,
        ),
    )


# FastAPI dependencies -------------------------------------------------
def get_services(request: Request) -> ServiceRegistry:
    return request.app.state.services


def get_rate_query_service(request: Request) -> RateQueryService:
    return get_services(request).rate_query


def get_impact_service(request: Request) -> ImpactCalculationService:
    return get_services(request).impact


def get_order_store(request: Request) -> OrderImpactStore:
    return get_services(request).order_store
