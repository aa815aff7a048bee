from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from fxguard.core.errors import ValidationError
from .constants import (
    DAILY_KEY_MARKER,
    DAILY_REFERENCE_TYPE,
    MS_PER_SECOND,
    SECONDS_PER_DAY,
)


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase in JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RateRecord(CamelModel):
    currency_pair: str
    timestamp: int = Field(..., ge=0, description="Acquisition instant, ms epoch")
    rate: float = Field(..., gt=0)
    source: Optional[str] = None
    ttl: int = Field(..., description="Expiry instant, epoch seconds")
    type: Optional[str] = None

    @property
    def is_daily_reference(self) -> bool:
        return self.type == DAILY_REFERENCE_TYPE


class CurrentRate(CamelModel):
    currency_pair: str
    rate: float
    timestamp: int
    daily_change: float = 0.0
    daily_change_percent: float = 0.0

    @field_validator("currency_pair")
    @classmethod
    def _pair_shape(cls, v: str) -> str:
        if v.count("-") != 1:
            raise ValueError("currency pair must look like BASE-QUOTE")
        return v


def normalize_currency(code: Optional[str]) -> str:
    code = (code or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Invalid currency code '{code}'")
    return code


def make_pair(from_ccy: Optional[str], to_ccy: Optional[str]) -> str:
    return f"{normalize_currency(from_ccy)}-{normalize_currency(to_ccy)}"


def daily_reference_key(pair: str, day: date) -> str:
    return f"{pair}{DAILY_KEY_MARKER}{day.isoformat()}"


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp()) * MS_PER_SECOND + moment.microsecond // 1000


def expiry_from(timestamp_ms: int, ttl_days: int) -> int:
    return timestamp_ms // MS_PER_SECOND + ttl_days * SECONDS_PER_DAY


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
