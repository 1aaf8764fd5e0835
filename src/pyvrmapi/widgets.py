"""Widget status rules.

Each supported widget type names the entry carrying its headline value in
three ways. Lookups are tried in order and the first match wins:

1. direct key lookup by attribute id (``records.data["450"]``)
2. scan for an entry whose ``code`` matches (``"tsT"``)
3. scan for an entry whose ``dataAttributeName`` matches (``"Temperature"``)

Adding a widget type means adding a row to ``WIDGET_STATUS_RULES``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .constants import WIDGET_METADATA_KEYS


@dataclass(frozen=True)
class WidgetStatusRule:
    """How one widget type is summarized.

    Attributes:
        attribute_id: Key of the headline entry in ``records.data``
        code: ``code`` field of the headline entry
        label: ``dataAttributeName`` field of the headline entry
        template: Status text; ``{value}`` is the entry's formatted value
            and ``{instance}`` the device instance
        fallback: Status text when data exists but no entry matches
        value_field: Name under which the formatted value is reported
    """

    attribute_id: str
    code: str
    label: str
    template: str
    fallback: str
    value_field: str


WIDGET_STATUS_RULES: dict[str, WidgetStatusRule] = {
    "TempSummaryAndGraph": WidgetStatusRule(
        attribute_id="450",
        code="tsT",
        label="Temperature",
        template="Temperature (inst. {instance}): {value}",
        fallback="Temperature sensor (inst. {instance})",
        value_field="temperature_value",
    ),
    "EvChargerSummary": WidgetStatusRule(
        attribute_id="824",
        code="evs",
        label="Status",
        template="{value}",
        fallback="EV charger (inst. {instance})",
        value_field="charger_status",
    ),
}

WidgetEntry = dict[str, Any]
LookupStrategy = Callable[[Mapping[Any, Any], WidgetStatusRule], WidgetEntry | None]


def widget_data(body: Any) -> Mapping[Any, Any] | None:
    """Return ``records.data`` of a widget response, if it is a mapping."""
    if not isinstance(body, Mapping):
        return None
    records = body.get("records")
    if not isinstance(records, Mapping):
        return None
    data = records.get("data")
    return data if isinstance(data, Mapping) else None


def _is_device_entry(key: Any, entry: Any) -> bool:
    return key not in WIDGET_METADATA_KEYS and isinstance(entry, Mapping) and "value" in entry


def device_entries(data: Mapping[Any, Any] | None) -> list[WidgetEntry]:
    """Entries holding device values, skipping payload metadata keys."""
    if not data:
        return []
    return [entry for key, entry in data.items() if _is_device_entry(key, entry)]


def _by_attribute_id(data: Mapping[Any, Any], rule: WidgetStatusRule) -> WidgetEntry | None:
    # JSON keys are strings; accept int keys from callers building dicts by hand.
    for key in (rule.attribute_id, int(rule.attribute_id)):
        entry = data.get(key)
        if isinstance(entry, Mapping):
            return dict(entry)
    return None


def _by_code(data: Mapping[Any, Any], rule: WidgetStatusRule) -> WidgetEntry | None:
    for key, entry in data.items():
        if _is_device_entry(key, entry) and entry.get("code") == rule.code:
            return dict(entry)
    return None


def _by_label(data: Mapping[Any, Any], rule: WidgetStatusRule) -> WidgetEntry | None:
    for key, entry in data.items():
        if _is_device_entry(key, entry) and entry.get("dataAttributeName") == rule.label:
            return dict(entry)
    return None


LOOKUP_STRATEGIES: tuple[LookupStrategy, ...] = (_by_attribute_id, _by_code, _by_label)


def find_widget_entry(data: Mapping[Any, Any], rule: WidgetStatusRule) -> WidgetEntry | None:
    """Find the headline entry of a widget, first matching strategy wins."""
    for strategy in LOOKUP_STRATEGIES:
        entry = strategy(data, rule)
        if entry is not None:
            return entry
    return None


def display_value(entry: Mapping[str, Any]) -> Any:
    """The entry's pre-formatted value, or its raw value when none is given."""
    formatted = entry.get("formattedValue")
    if formatted is not None:
        return formatted
    return entry.get("value")
