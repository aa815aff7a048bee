"""Pydantic domain models for the FX Margin Guard service."""

from .constants import DAILY_REFERENCE_TYPE  # re-export
from .orders import ImpactRequest, ImpactResult, OrderImpactRecord
from .rates import CurrentRate, RateRecord, daily_reference_key, make_pair

__all__ = [
    "DAILY_REFERENCE_TYPE",
    "CurrentRate",
    "ImpactRequest",
    "ImpactResult",
    "OrderImpactRecord",
    "RateRecord",
    "daily_reference_key",
    "make_pair",
]
