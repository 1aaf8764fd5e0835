"""Unit tests for numeric start/end offsets.

End offsets are added to now, so "+24 hours" ends in the future rather
than 24 hours ago.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pyvrmapi.models import RequestConfig
from pyvrmapi.parameters import build_stats_parameters

# 2023-10-15 14:30:00 UTC
NOW = datetime(2023, 10, 15, 14, 30, tzinfo=UTC)
NOW_TS = 1697380200
NOW_HOUR = 1697378400


def floored(timestamp: int) -> int:
    return timestamp - timestamp % 3600


def params_for(start, end, **kwargs):
    config = RequestConfig(
        installations="stats",
        attribute_code="bs",
        time_start=start,
        time_end=end,
        use_utc=True,
        **kwargs,
    )
    return build_stats_parameters(config, NOW)


class TestEndOffsets:
    """Positive end offsets reach into the future."""

    @pytest.mark.parametrize("offset", [86400, 172800, 259200])
    def test_end_offset_is_added(self, offset: int) -> None:
        """+24h, +48h and +72h end after the start."""
        params = params_for("now", str(offset))

        assert params["start"] == NOW_HOUR
        assert params["end"] == floored(NOW_TS + offset)
        assert params["end"] > params["start"]

    def test_bod_to_plus_24_hours(self) -> None:
        """A day-start window can end tomorrow afternoon."""
        params = params_for("bod", "86400")

        assert params["start"] == 1697328000
        assert params["end"] == 1697464800

    def test_negative_start_to_positive_end(self) -> None:
        """One hour ago until 24 hours ahead spans 25 hours."""
        params = params_for("-3600", "86400")

        assert params["start"] == 1697374800
        assert params["end"] == 1697464800
        assert params["end"] - params["start"] == 90000

    def test_negative_end_offset(self) -> None:
        """Negative end offsets still subtract."""
        params = params_for("-86400", "-3600")

        assert params["start"] == floored(NOW_TS - 86400)
        assert params["end"] == floored(NOW_TS - 3600)


class TestZeroAndIntegerOffsets:
    """Zero and non-string offsets."""

    def test_zero_offset(self) -> None:
        """'0' resolves to the current hour on both ends."""
        params = params_for("0", "0")

        assert params["start"] == NOW_HOUR
        assert params["end"] == NOW_HOUR

    def test_integer_offsets(self) -> None:
        """Offsets given as ints behave like their string form."""
        assert params_for(-3600, 86400) == params_for("-3600", "86400")

    def test_offsets_ignore_calendar_zone(self) -> None:
        """Offsets are relative to the instant, not the calendar."""
        utc = params_for("-7200", "7200")
        config = RequestConfig(
            installations="stats", attribute_code="bs", time_start="-7200", time_end="7200"
        )

        local = build_stats_parameters(config, NOW)

        assert (local["start"], local["end"]) == (utc["start"], utc["end"])
