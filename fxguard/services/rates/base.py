from __future__ import annotations

"""Rate provider abstraction.

A provider answers one question: how many ``quote`` units buy one ``base`` unit
right now. Failures are reported through the ``ProviderError`` family so the
acquisition service can tell a soft outage (quota) from a hard one.
"""
from abc import ABC, abstractmethod


class RateProvider(ABC):
    name: str = "unknown"

    @abstractmethod
    def fetch_rate(self, base: str, quote: str) -> float:
        """Return quote units per 1 unit of base.

        Raises ProviderUnavailableError for soft failures and ProviderError
        (or a subclass) for everything else.
        """
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Providers holding connections may override to release them."""
