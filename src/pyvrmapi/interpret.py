"""Status lines for VRM API responses.

Every interpreter is a pure function of the response body and never raises:
missing or malformed fields degrade to a yellow "no data" status. The
original body is returned untouched as ``raw``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .constants import (
    DYNAMIC_ESS_MODE_NAMES,
    DYNAMIC_ESS_MODE_OFF,
    DYNAMIC_ESS_OPERATING_MODE_NAMES,
    UNKNOWN_NAME,
)
from .models import (
    ApiType,
    InstallationsQuery,
    StatusColor,
    StatusInterpretation,
    UserData,
    UsersQuery,
)
from .widgets import (
    WIDGET_STATUS_RULES,
    device_entries,
    display_value,
    find_widget_entry,
    widget_data,
)

_LOGGER = logging.getLogger(__name__)

NO_WIDGET_DATA_TEXT = "No data - incorrect instance?"


def _status(text: str, color: StatusColor, raw: Any, **fields: Any) -> StatusInterpretation:
    return StatusInterpretation(text=text, color=color, raw=raw, **fields)


def format_number(value: Any) -> Any:
    """Format numbers with one decimal, rounding halves away from zero.

    Non-numeric values are returned unchanged.
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        return value
    if not math.isfinite(value):
        return str(value)
    # Decimal(float) is exact, so 85.25 rounds up and 1.005 (really 1.00499...) down.
    return str(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def extract_user_data(body: Any) -> UserData | None:
    """Pull the user record out of a ``users/me`` response."""
    if not isinstance(body, Mapping):
        return None
    user = body.get("user")
    if not isinstance(user, Mapping):
        return None
    return UserData.model_validate({**user, "raw": body})


# ============================================================================
# Per-family interpreters
# ============================================================================


def interpret_users(body: Any, query: str = UsersQuery.ME) -> StatusInterpretation:
    """Summarize a users response."""
    if body is None:
        return _status("No user data found", StatusColor.YELLOW, body)

    if query == UsersQuery.ME:
        user = body.get("user") if isinstance(body, Mapping) else None
        if not isinstance(user, Mapping) or not user:
            return _status("No user data found", StatusColor.YELLOW, body)
        return _status(
            f"{user.get('name')} (ID: {user.get('id')})",
            StatusColor.GREEN,
            body,
            user_id=user.get("id"),
            user_name=user.get("name"),
            user_email=user.get("email"),
            user_country=user.get("country"),
            access_level=user.get("accessLevel"),
        )

    if query == UsersQuery.INSTALLATIONS:
        records = body.get("records") if isinstance(body, Mapping) else None
        if not isinstance(records, list):
            return _status("No installations data found", StatusColor.YELLOW, body)
        count = len(records)
        return _status(
            f"{count} installation{'' if count == 1 else 's'}",
            StatusColor.GREEN,
            body,
            installation_count=count,
        )

    return _status("Users data received", StatusColor.GREEN, body)


def interpret_stats(body: Any) -> StatusInterpretation:
    """Summarize a stats response by its first total."""
    totals = body.get("totals") if isinstance(body, Mapping) else None
    if not isinstance(totals, Mapping):
        return _status("No stats data", StatusColor.YELLOW, body, totals=None)

    if not totals:
        return _status("No totals", StatusColor.YELLOW, body, totals=totals)

    key = next(iter(totals))
    value = totals[key]
    formatted = format_number(value)
    return _status(
        f"{str(key).replace('_', ' ')}: {formatted}",
        StatusColor.GREEN,
        body,
        key=key,
        value=value,
        formatted_value=formatted,
        totals=totals,
    )


def interpret_dynamic_ess_settings(body: Any) -> StatusInterpretation:
    """Summarize Dynamic ESS settings as ``"{mode} - {operating mode} mode"``.

    Mode 0 (Off) is shown blue, every other mode green. Unknown codes are
    named "Unknown" but still produce a status line.
    """
    data = body.get("data") if isinstance(body, Mapping) else None
    mode = data.get("mode") if isinstance(data, Mapping) else None
    operating_mode = data.get("operatingMode") if isinstance(data, Mapping) else None

    if mode is None or operating_mode is None:
        return _status("No data", StatusColor.YELLOW, body, mode=None, operating_mode=None)

    mode_name = _lookup_name(DYNAMIC_ESS_MODE_NAMES, mode)
    operating_mode_name = _lookup_name(DYNAMIC_ESS_OPERATING_MODE_NAMES, operating_mode)
    color = StatusColor.BLUE if mode == DYNAMIC_ESS_MODE_OFF else StatusColor.GREEN

    return _status(
        f"{mode_name or UNKNOWN_NAME} - {operating_mode_name or UNKNOWN_NAME} mode",
        color,
        body,
        mode=mode,
        operating_mode=operating_mode,
        mode_name=mode_name,
        operating_mode_name=operating_mode_name,
        is_green_mode_on=data.get("isGreenModeOn"),
    )


def _lookup_name(names: dict[int, str], code: Any) -> str | None:
    if isinstance(code, bool):
        return None
    try:
        return names.get(code)
    except TypeError:
        # unhashable code
        return None


def interpret_widgets(
    body: Any,
    widget_type: str | None,
    instance: int | str | None = None,
) -> StatusInterpretation:
    """Summarize a widget response.

    A response without device entries usually means the configured
    instance does not exist on the site.
    """
    data = widget_data(body)
    if data is None or not device_entries(data):
        return _status(NO_WIDGET_DATA_TEXT, StatusColor.YELLOW, body, has_data=False)

    rule = WIDGET_STATUS_RULES.get(widget_type or "")
    if rule is None:
        return _status("Widget data received", StatusColor.GREEN, body, has_data=True)

    entry = find_widget_entry(data, rule)
    if entry is None:
        shown_instance = instance if instance not in (None, "") else 0
        return _status(
            rule.fallback.format(instance=shown_instance),
            StatusColor.GREEN,
            body,
            has_data=True,
            has_valid_data=False,
            **{rule.value_field: None},
        )

    value = display_value(entry)
    is_valid = entry.get("isValid")
    if is_valid == 0 and not isinstance(is_valid, bool):
        return _status(
            "Invalid data",
            StatusColor.YELLOW,
            body,
            has_data=True,
            has_valid_data=False,
            **{rule.value_field: value},
        )

    if entry.get("hasOldData") is True or data.get("hasOldData") is True:
        return _status(
            "Stale data - check sensor",
            StatusColor.YELLOW,
            body,
            has_data=True,
            has_valid_data=False,
            **{rule.value_field: value},
        )

    shown_instance = instance if instance not in (None, "") else entry.get("instance", 0)
    return _status(
        rule.template.format(value=value, instance=shown_instance),
        StatusColor.GREEN,
        body,
        has_data=True,
        has_valid_data=True,
        **{rule.value_field: value},
    )


# ============================================================================
# Dispatch
# ============================================================================


def api_error_status(body: Any) -> StatusInterpretation | None:
    """Status for a 2xx response whose body reports ``success: false``."""
    if isinstance(body, Mapping) and body.get("success") is False:
        error_code = body.get("error_code") or body.get("errors") or "API error"
        return _status(str(error_code), StatusColor.YELLOW, body, error_code=body.get("error_code"))
    return None


def interpret_response(
    family: ApiType | InstallationsQuery | str,
    body: Any,
    subtype: str | None = None,
    instance: int | str | None = None,
) -> StatusInterpretation:
    """Turn a response body into a status line.

    Args:
        family: Endpoint family (``"users"``, ``"installations"``,
            ``"widgets"``), or an installations subtype used directly
            (``"stats"``, ``"dynamic-ess-settings"``)
        body: Decoded JSON body
        subtype: Users query, installations subtype or widget type
        instance: Widget instance

    Returns:
        StatusInterpretation; never raises

    Example:
        >>> interpret_response("stats", {"totals": {"battery_soc": 85.25}}).text
        'battery soc: 85.3'
    """
    try:
        failure = api_error_status(body)
        if failure is not None:
            return failure

        family = str(family)
        if family in (InstallationsQuery.STATS, InstallationsQuery.DYNAMIC_ESS_SETTINGS):
            family, subtype = ApiType.INSTALLATIONS, family

        if family == ApiType.USERS:
            return interpret_users(body, subtype or UsersQuery.ME)
        if family == ApiType.INSTALLATIONS:
            if subtype == InstallationsQuery.STATS:
                return interpret_stats(body)
            if subtype == InstallationsQuery.DYNAMIC_ESS_SETTINGS:
                return interpret_dynamic_ess_settings(body)
        elif family == ApiType.WIDGETS:
            return interpret_widgets(body, subtype, instance)
    except Exception:
        _LOGGER.warning(
            "Could not interpret %s/%s response", family, subtype, exc_info=True
        )
        return _status("No data", StatusColor.YELLOW, body)

    return _status("Ok", StatusColor.GREEN, body)
