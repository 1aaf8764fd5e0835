"""Dynamic ESS price schedule transformation.

The stats endpoint with ``type=dynamic_ess`` returns buy prices (``deGb``)
and sell prices (``deGs``) as separate ``[timestamp_ms, price]`` series.
``transform_price_schedule`` merges them into one schedule ordered by time.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from .constants import PRICE_CURRENCY, PRICE_INTERVAL_MINUTES
from .models import PriceInterval, PriceSchedule, PriceScheduleMetadata


def iso_timestamp(timestamp_ms: int | float) -> str:
    """ISO-8601 UTC string with milliseconds, e.g. ``2025-10-18T00:00:00.000Z``."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _series(data: Mapping[str, Any], key: str) -> list[Any]:
    series = data.get(key)
    return series if isinstance(series, list) else []


def transform_price_schedule(data: Any) -> PriceSchedule:
    """Merge buy and sell price series into a single schedule.

    Args:
        data: Stats ``records`` (or the whole body) holding ``deGb``/``deGs``

    Returns:
        PriceSchedule sorted by timestamp. ``spread`` is buy minus sell when
        both prices are present and non-zero.

    Raises:
        ValueError: If a series entry is not a ``[timestamp, price]`` pair
    """
    if not isinstance(data, Mapping):
        return PriceSchedule(payload=[], metadata=_metadata([]))

    prices: dict[int, dict[str, float]] = {}
    for timestamp, price in _series(data, "deGb"):
        prices.setdefault(timestamp, {})["buy"] = price
    for timestamp, price in _series(data, "deGs"):
        prices.setdefault(timestamp, {})["sell"] = price

    schedule: list[PriceInterval] = []
    for timestamp in sorted(prices):
        buy = prices[timestamp].get("buy")
        sell = prices[timestamp].get("sell")
        schedule.append(
            PriceInterval(
                timestamp=timestamp,
                datetime=iso_timestamp(timestamp),
                buy_price=buy,
                sell_price=sell,
                spread=buy - sell if buy and sell else None,
            )
        )

    return PriceSchedule(payload=schedule, metadata=_metadata(schedule))


def _metadata(schedule: list[PriceInterval]) -> PriceScheduleMetadata:
    return PriceScheduleMetadata(
        interval_minutes=PRICE_INTERVAL_MINUTES,
        count=len(schedule),
        start_time=schedule[0].datetime if schedule else None,
        end_time=schedule[-1].datetime if schedule else None,
        currency=PRICE_CURRENCY,
    )
