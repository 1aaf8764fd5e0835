"""Time-window and query parameter building for the stats endpoints.

Turns a ``RequestConfig`` into the query parameters of an
``installations/{site}/stats`` request. Symbolic time tokens are resolved
against an explicit ``now`` so results are reproducible:

Start tokens:
- ``now``: the current hour
- ``bod`` / ``boy`` / ``bot``: midnight of today / yesterday / tomorrow
- a signed integer: offset in seconds from now, floored to the hour

End tokens:
- ``eod``: midnight at the start of tomorrow (exclusive end of today)
- ``eoy``: 23:59:59 yesterday
- ``eot``: 23:59:59 tomorrow
- ``eoyr``: 23:59:59 on December 31 of the current year
- a signed integer: offset in seconds from now (added), floored to the hour

Calendar boundaries use UTC when ``use_utc`` is set, otherwise the local
zone passed as ``tz`` (the system zone when ``tz`` is None). Calendar
boundaries are never floored; only offsets and ``now`` are.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import TYPE_CHECKING

from .constants import (
    ATTRIBUTE_DYNAMIC_ESS,
    ATTRIBUTE_EVCS,
    DEFAULT_DYNAMIC_ESS_INTERVAL,
    END_END_OF_DAY,
    END_END_OF_TOMORROW,
    END_END_OF_YEAR,
    END_END_OF_YESTERDAY,
    SECONDS_PER_HOUR,
    START_BEGINNING_OF_DAY,
    START_BEGINNING_OF_TOMORROW,
    START_BEGINNING_OF_YESTERDAY,
    START_NOW,
    UNSET_TOKEN,
)

if TYPE_CHECKING:
    from .models import RequestConfig

_LOGGER = logging.getLogger(__name__)

ParameterValue = str | int | list[str]
ParameterMap = dict[str, ParameterValue]

# Leading signed integer, the way the form's offset dropdown values are read.
_OFFSET_PATTERN = re.compile(r"^\s*([+-]?\d+)")

_LAST_SECOND = time(23, 59, 59)


def floor_to_hour(timestamp: int) -> int:
    """Floor a Unix timestamp to the start of its hour."""
    return timestamp - (timestamp % SECONDS_PER_HOUR)


def parse_offset(value: str | int | None) -> int | None:
    """Parse a seconds offset.

    Accepts ints and strings starting with a signed integer (``"-3600"``,
    ``"+86400"``, ``"7200s"``). Returns None when no integer can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _OFFSET_PATTERN.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


def calendar_zone(use_utc: bool, tz: tzinfo | None = None) -> tzinfo | None:
    """Zone used for calendar boundaries.

    Returns None for the system local zone.
    """
    if use_utc:
        return UTC
    return tz


def _unix(moment: datetime) -> int:
    return math.floor(moment.timestamp())


def _calendar_date(now_ts: int, zone: tzinfo | None) -> date:
    return datetime.fromtimestamp(now_ts, zone).date()


def _at(day: date, moment: time, zone: tzinfo | None) -> int:
    # A naive datetime is interpreted in the system zone by timestamp().
    return _unix(datetime.combine(day, moment, tzinfo=zone))


def start_of_day(day: date, zone: tzinfo | None) -> int:
    """Unix seconds of midnight at the start of ``day`` in ``zone``."""
    return _at(day, time.min, zone)


def _is_set(value: str | int | None) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() not in ("", UNSET_TOKEN)
    # Numeric 0 means unset; the string "0" is a valid offset.
    return value != 0


def resolve_start(
    token: str | int | None,
    now: datetime,
    *,
    use_utc: bool = False,
    tz: tzinfo | None = None,
) -> int | None:
    """Resolve a start token to Unix seconds.

    Returns None for absent or unrecognized tokens.
    """
    if not _is_set(token):
        return None

    now_ts = _unix(now)
    zone = calendar_zone(use_utc, tz)
    today = _calendar_date(now_ts, zone)

    if token == START_NOW:
        return floor_to_hour(now_ts)
    if token == START_BEGINNING_OF_DAY:
        return start_of_day(today, zone)
    if token == START_BEGINNING_OF_YESTERDAY:
        return start_of_day(today - timedelta(days=1), zone)
    if token == START_BEGINNING_OF_TOMORROW:
        return start_of_day(today + timedelta(days=1), zone)

    offset = parse_offset(token)
    if offset is None:
        _LOGGER.debug("Ignoring unrecognized start token %r", token)
        return None
    return floor_to_hour(now_ts + offset)


def resolve_end(
    token: str | int | None,
    now: datetime,
    *,
    use_utc: bool = False,
    tz: tzinfo | None = None,
) -> int | None:
    """Resolve an end token to Unix seconds.

    Offsets are added to now, so a positive offset ends in the future.
    Returns None for absent or unrecognized tokens (``now`` is not an end
    token).
    """
    if not _is_set(token):
        return None

    now_ts = _unix(now)
    zone = calendar_zone(use_utc, tz)
    today = _calendar_date(now_ts, zone)

    if token == END_END_OF_DAY:
        return start_of_day(today + timedelta(days=1), zone)
    if token == END_END_OF_YESTERDAY:
        return _at(today - timedelta(days=1), _LAST_SECOND, zone)
    if token == END_END_OF_TOMORROW:
        return _at(today + timedelta(days=1), _LAST_SECOND, zone)
    if token == END_END_OF_YEAR:
        return _at(date(today.year, 12, 31), _LAST_SECOND, zone)

    offset = parse_offset(token)
    if offset is None:
        _LOGGER.debug("Ignoring unrecognized end token %r", token)
        return None
    return floor_to_hour(now_ts + offset)


def build_stats_parameters(
    config: RequestConfig,
    now: datetime,
    *,
    tz: tzinfo | None = None,
) -> ParameterMap:
    """Build the query parameters of a stats request.

    Args:
        config: Request configuration
        now: Instant the time tokens are resolved against
        tz: Local calendar zone; None means the system zone. Ignored when
            ``config.use_utc`` is set.

    Returns:
        A new parameter mapping. ``start``/``end`` are omitted when their
        tokens are absent or unrecognized.

    Example:
        >>> config = RequestConfig(attribute_code="Dc/0/Power", stats_interval="hours",
        ...                        time_start="bod", time_end="eod", use_utc=True)
        >>> build_stats_parameters(config, datetime(2023, 10, 15, 14, 30, tzinfo=UTC))
        {'type': 'custom', 'attributeCodes[]': 'Dc/0/Power', 'interval': 'hours',
         'start': 1697328000, 'end': 1697414400}
    """
    parameters: ParameterMap = {}
    attribute = config.attribute_code

    if attribute != ATTRIBUTE_DYNAMIC_ESS:
        parameters["type"] = "custom"
        if attribute is not None:
            parameters["attributeCodes[]"] = attribute
        if config.show_instance:
            parameters["show_instance"] = 1
    else:
        parameters["type"] = ATTRIBUTE_DYNAMIC_ESS
        if not config.stats_interval:
            parameters["interval"] = DEFAULT_DYNAMIC_ESS_INTERVAL

    if config.stats_interval:
        parameters["interval"] = config.stats_interval

    # evcs is reported by type only
    if attribute == ATTRIBUTE_EVCS:
        parameters.pop("attributeCodes[]", None)
        parameters["type"] = ATTRIBUTE_EVCS

    start = resolve_start(config.time_start, now, use_utc=config.use_utc, tz=tz)
    if start is not None:
        parameters["start"] = start

    end = resolve_end(config.time_end, now, use_utc=config.use_utc, tz=tz)
    if end is not None:
        parameters["end"] = end

    return parameters
