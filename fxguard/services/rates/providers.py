"""Concrete rate providers and factory.

'fixer' is the primary source (free tier quotes EUR only, so USD/INR is derived
from two EUR legs), 'exchangerate-api' is the keyless fallback and 'static'
serves fixed values for offline development.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from fxguard.core.config import Settings
from fxguard.core.errors import (
    MissingQuoteError,
    ProviderError,
    ProviderUnavailableError,
)
from fxguard.services.http_client import get_json
from .base import RateProvider

logger = logging.getLogger("fxguard.providers")

_STATIC_RATES: Dict[Tuple[str, str], float] = {
    ("USD", "INR"): 83.0,
    ("EUR", "INR"): 90.0,
    ("EUR", "USD"): 1.08,
}


def _section(data: Mapping[str, Any], key: str, provider: str) -> Mapping[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ProviderError(f"{provider} response has a malformed '{key}' field")
    return value


def _positive_rate(rates: Mapping[str, Any], code: str, provider: str) -> float:
    value = rates.get(code)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise MissingQuoteError(f"{provider} response has no usable {code} quote")
    return float(value)


class StaticRateProvider(RateProvider):
    name = "static"

    def fetch_rate(self, base: str, quote: str) -> float:  # type: ignore[override]
        rate = _STATIC_RATES.get((base.upper(), quote.upper()))
        if rate is None:
            raise MissingQuoteError(f"no static rate for {base}-{quote}")
        return rate


class _HTTPRateProvider(RateProvider):
    def __init__(self, *, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self._timeout = timeout
        self._client = client or httpx.Client()

    def close(self) -> None:
        self._client.close()


class FixerRateProvider(_HTTPRateProvider):
    """Fixer latest-rates endpoint.

    With ``cross_base`` set (free plans), the request asks for both legs against
    that base and the pair is derived as ``(X/quote) / (X/base)``.
    """

    name = "fixer.io"
    QUOTA_EXCEEDED_CODE = 104

    def __init__(
        self,
        api_key: str,
        base_url: str,
        *,
        cross_base: Optional[str] = "EUR",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self._api_key = api_key
        self._base_url = str(base_url).rstrip("/")
        self._cross_base = cross_base.upper() if cross_base else None

    def fetch_rate(self, base: str, quote: str) -> float:  # type: ignore[override]
        base, quote = base.upper(), quote.upper()
        cross = self._cross_base is not None and base != self._cross_base
        params: Dict[str, str] = {"access_key": self._api_key}
        if cross:
            params["symbols"] = f"{quote},{base}"
        else:
            params["base"] = base
            params["symbols"] = quote
        data = get_json(
            f"{self._base_url}/latest",
            params=params,
            client=self._client,
            timeout=self._timeout,
        )
        if not data.get("success"):
            error = _section(data, "error", self.name)
            if error.get("code") == self.QUOTA_EXCEEDED_CODE:
                raise ProviderUnavailableError("fixer.io usage limit reached")
            detail = error.get("info") or error.get("type") or "unknown error"
            raise ProviderError(f"fixer.io error: {detail}")

        rates = _section(data, "rates", self.name)
        if not cross:
            return _positive_rate(rates, quote, self.name)
        quote_leg = self._leg(rates, quote)
        base_leg = self._leg(rates, base)
        rate = quote_leg / base_leg
        logger.debug(
            "derived %s-%s=%s from %s legs %s/%s",
            base,
            quote,
            rate,
            self._cross_base,
            quote_leg,
            base_leg,
        )
        return rate

    def _leg(self, rates: Mapping[str, Any], code: str) -> float:
        if code == self._cross_base:
            return 1.0
        return _positive_rate(rates, code, self.name)


class ExchangeRateApiProvider(_HTTPRateProvider):
    name = "exchangerate-api"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self._base_url = str(base_url).rstrip("/")

    def fetch_rate(self, base: str, quote: str) -> float:  # type: ignore[override]
        base, quote = base.upper(), quote.upper()
        data = get_json(
            f"{self._base_url}/{base}", client=self._client, timeout=self._timeout
        )
        if data.get("result") == "error":
            raise ProviderError(
                f"exchangerate-api error: {data.get('error-type', 'unknown error')}"
            )
        return _positive_rate(_section(data, "rates", self.name), quote, self.name)


def make_rate_provider(
    kind: str, settings: Settings, client: Optional[httpx.Client] = None
) -> RateProvider:
    if kind == "static":
        return StaticRateProvider()
    if kind == "fixer":
        return FixerRateProvider(
            settings.fixer_api_key,
            str(settings.fixer_base_url),
            cross_base=settings.fixer_cross_base,
            timeout=settings.provider_timeout_seconds,
            client=client,
        )
    if kind == "exchangerate-api":
        return ExchangeRateApiProvider(
            str(settings.exchangerate_api_base_url),
            timeout=settings.provider_timeout_seconds,
            client=client,
        )
    raise ValueError(f"Unknown rate provider kind '{kind}'")
