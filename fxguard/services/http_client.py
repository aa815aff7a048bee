from __future__ import annotations

"""Lightweight HTTP client util with retry.

GET JSON with a bounded timeout and a small number of retries on transport
errors. Every failure surfaces as ``HttpError`` so providers only have one
exception type to translate.
"""
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from fxguard.core.errors import ProviderError


class HttpError(ProviderError):
    pass


def get_json(
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    client: Optional[httpx.Client] = None,
    timeout: float = 5.0,
    retries: int = 1,
    backoff: float = 0.5,
) -> Dict[str, Any]:
    own_client = client is None
    http = client or httpx.Client()
    last_err: Optional[Exception] = None
    try:
        for attempt in range(retries + 1):
            try:
                resp = http.get(url, params=params, timeout=timeout)
                if resp.status_code >= 400:
                    raise HttpError(f"HTTP {resp.status_code} for {url}")
                data = resp.json()
                if not isinstance(data, dict):
                    raise HttpError(f"Expected a JSON object from {url}")
                return data
            except HttpError:
                # Status errors are answers, not transport hiccups; do not retry
                raise
            except (httpx.HTTPError, ValueError) as e:  # ValueError for JSON decode
                last_err = e
                if attempt == retries:
                    break
                time.sleep(backoff * (2**attempt))
    finally:
        if own_client:
            http.close()
    raise HttpError(f"Failed to fetch JSON from {url}: {last_err}")
