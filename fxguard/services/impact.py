"""Margin impact of exchange-rate drift on a past order.

``compute_impact`` and ``build_suggestion`` are pure; ``ImpactCalculationService``
adds the two rate lookups and the optional, best-effort order snapshot write.

Sign convention: ``margin_loss = amount * (order_rate - current_rate)``, so a
positive loss means the order's foreign proceeds now buy fewer quote units than
at order time. ``percentage_change`` is the rate move itself and is negative in
that case; the suggested raise is its magnitude rounded up.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError as ModelValidationError

from fxguard.core.errors import NoDataError, PersistenceError, ValidationError
from fxguard.db.order_store import OrderImpactStore
from fxguard.db.rate_store import RateStore
from fxguard.models.orders import ImpactRequest, ImpactResult, OrderImpactRecord
from fxguard.models.rates import expiry_from, make_pair, to_epoch_ms, utc_now

logger = logging.getLogger("fxguard.impact")

DEFAULT_LOSS_THRESHOLD = 0.02
WITHIN_RANGE_MESSAGE = "Margin impact is within acceptable range"


@dataclass(frozen=True)
class ImpactFigures:
    expected_amount: float
    current_amount: float
    margin_loss: float
    percentage_change: float


def compute_impact(
    order_amount: float, order_rate: float, current_rate: float
) -> ImpactFigures:
    expected = order_amount * order_rate
    current = order_amount * current_rate
    return ImpactFigures(
        expected_amount=expected,
        current_amount=current,
        margin_loss=expected - current,
        percentage_change=(current_rate - order_rate) / order_rate * 100,
    )


def build_suggestion(
    order_amount: float,
    margin_loss: float,
    percentage_change: float,
    threshold: float = DEFAULT_LOSS_THRESHOLD,
) -> str:
    if margin_loss > order_amount * threshold:
        raise_by = math.ceil(abs(percentage_change))
        return f"Consider raising prices by {raise_by}% to maintain margins"
    return WITHIN_RANGE_MESSAGE


def parse_order_date(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"orderDate is not an ISO-8601 date: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class ImpactCalculationService:
    def __init__(
        self,
        rate_store: RateStore,
        order_store: OrderImpactStore,
        *,
        loss_threshold: float = DEFAULT_LOSS_THRESHOLD,
        order_ttl_days: int = 365,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._rates = rate_store
        self._orders = order_store
        self._threshold = loss_threshold
        self._order_ttl_days = order_ttl_days
        self._clock = clock

    def calculate_impact(self, request: ImpactRequest) -> ImpactResult:
        amount, order_instant, pair = self._validate(request)

        order_rate = self._rates.at_or_before(pair, to_epoch_ms(order_instant))
        current_rate = self._rates.latest(pair)
        if order_rate is None or current_rate is None:
            raise NoDataError("Exchange rates not found")

        figures = compute_impact(amount, order_rate.rate, current_rate.rate)
        result = ImpactResult(
            order_rate=order_rate.rate,
            current_rate=current_rate.rate,
            expected_inr_amount=figures.expected_amount,
            current_inr_amount=figures.current_amount,
            margin_loss=figures.margin_loss,
            percentage_change=figures.percentage_change,
            suggestion=build_suggestion(
                amount, figures.margin_loss, figures.percentage_change, self._threshold
            ),
        )

        if request.order_id and request.store_id:
            self._record_order(request, amount, order_instant, result)
        return result

    def _validate(self, request: ImpactRequest) -> tuple[float, datetime, str]:
        if (
            not request.order_amount
            or not request.order_date
            or not request.from_currency
            or not request.to_currency
        ):
            raise ValidationError("Missing required fields")
        if not math.isfinite(request.order_amount) or request.order_amount < 0:
            raise ValidationError("orderAmount must be a finite positive number")
        order_instant = parse_order_date(request.order_date)
        pair = make_pair(request.from_currency, request.to_currency)
        return request.order_amount, order_instant, pair

    def _record_order(
        self,
        request: ImpactRequest,
        amount: float,
        order_instant: datetime,
        result: ImpactResult,
    ) -> None:
        """Best-effort snapshot; a failed write never changes the response."""
        timestamp = to_epoch_ms(self._clock())
        try:
            record = OrderImpactRecord(
                order_id=request.order_id,
                store_id=request.store_id,
                order_date=order_instant.isoformat(),
                order_amount=amount,
                order_rate=result.order_rate,
                current_rate=result.current_rate,
                margin_loss=result.margin_loss,
                percentage_change=result.percentage_change,
                timestamp=timestamp,
                ttl=expiry_from(timestamp, self._order_ttl_days),
            )
            self._orders.put(record)
        except (PersistenceError, ModelValidationError):
            logger.warning(
                "failed to record impact for order %s (store %s)",
                request.order_id,
                request.store_id,
                exc_info=True,
                extra={"order_id": request.order_id, "store_id": request.store_id},
            )
