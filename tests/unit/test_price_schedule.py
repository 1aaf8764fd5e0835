"""Unit tests for Dynamic ESS price schedule transformation."""

from __future__ import annotations

from typing import Any

import pytest

from pyvrmapi.price_schedule import iso_timestamp, transform_price_schedule


class TestTransformPriceSchedule:
    """Test transform_price_schedule()."""

    def test_merges_and_sorts(self, dynamic_ess_prices_response: dict[str, Any]) -> None:
        """Buy and sell series merge into one ordered schedule."""
        schedule = transform_price_schedule(dynamic_ess_prices_response["records"])

        assert [interval.timestamp for interval in schedule.payload] == [
            1760744700000,
            1760745600000,
            1760746500000,
        ]
        first = schedule.payload[0]
        assert first.datetime == "2025-10-17T23:45:00.000Z"
        assert first.buy_price == 0.21
        assert first.sell_price == 0.1
        assert first.spread == pytest.approx(0.11)

    def test_missing_sell_price(self, dynamic_ess_prices_response: dict[str, Any]) -> None:
        """Intervals with only a buy price have no spread."""
        schedule = transform_price_schedule(dynamic_ess_prices_response["records"])

        last = schedule.payload[-1]
        assert last.buy_price == 0.3
        assert last.sell_price is None
        assert last.spread is None

    def test_zero_price_has_no_spread(self) -> None:
        """A zero price leaves the spread unset."""
        schedule = transform_price_schedule({"deGb": [[0, 0.2]], "deGs": [[0, 0]]})

        assert schedule.payload[0].sell_price == 0
        assert schedule.payload[0].spread is None

    def test_metadata(self, dynamic_ess_prices_response: dict[str, Any]) -> None:
        """Metadata summarizes the schedule."""
        metadata = transform_price_schedule(dynamic_ess_prices_response["records"]).metadata

        assert metadata.count == 3
        assert metadata.interval_minutes == 15
        assert metadata.currency == "EUR"
        assert metadata.start_time == "2025-10-17T23:45:00.000Z"
        assert metadata.end_time == "2025-10-18T00:15:00.000Z"

    @pytest.mark.parametrize("data", [None, [], "prices", {"other": [[0, 1]]}])
    def test_empty_schedule(self, data: Any) -> None:
        """Input without price series yields an empty schedule."""
        schedule = transform_price_schedule(data)

        assert schedule.payload == []
        assert schedule.metadata.count == 0
        assert schedule.metadata.start_time is None

    def test_malformed_entry(self) -> None:
        """Entries that are not pairs are rejected."""
        with pytest.raises(ValueError):
            transform_price_schedule({"deGb": [[1760745600000]]})

    def test_iso_timestamp(self) -> None:
        """Timestamps render in UTC with milliseconds."""
        assert iso_timestamp(1760745600000) == "2025-10-18T00:00:00.000Z"
        assert iso_timestamp(1760745600500) == "2025-10-18T00:00:00.500Z"
