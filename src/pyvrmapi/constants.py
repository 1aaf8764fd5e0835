"""Constants for the Victron VRM API.

Endpoint URLs, header values, time-window tokens and the lookup tables used
when turning raw API responses into status lines.
"""

from __future__ import annotations

# ============================================================================
# ENDPOINTS
# ============================================================================

VERSION = "0.4.0"

DEFAULT_BASE_URL = "https://vrmapi.victronenergy.com/v2"
DEFAULT_DYNAMIC_ESS_URL = "https://vrm-dynamic-ess-api.victronenergy.com"

DEFAULT_USER_AGENT = f"pyvrmapi/{VERSION}"

# The Dynamic ESS optimizer identifies clients by its own agent string.
DYNAMIC_ESS_USER_AGENT = "dynamic-ess/0.1.20"

DEFAULT_TIMEOUT = 30

# Methods accepted for caller-built custom requests routed through a query.
CUSTOM_QUERY_METHODS = frozenset({"GET", "POST", "PATCH"})

# Methods accepted by VRMClient.make_custom_call().
CUSTOM_CALL_METHODS = frozenset({"GET", "POST", "PATCH", "PUT", "DELETE"})

# Minimum seconds between two successful queries from the same client.
DEFAULT_MIN_REQUEST_INTERVAL = 5.0

# ============================================================================
# TIME WINDOW TOKENS
# ============================================================================
# Symbolic tokens accepted for stats start/end. Anything else is parsed as a
# signed offset in seconds from now.

START_NOW = "now"
START_BEGINNING_OF_DAY = "bod"
START_BEGINNING_OF_YESTERDAY = "boy"
START_BEGINNING_OF_TOMORROW = "bot"

END_END_OF_DAY = "eod"
END_END_OF_YESTERDAY = "eoy"
END_END_OF_TOMORROW = "eot"
END_END_OF_YEAR = "eoyr"

# The host form serializes an unset dropdown as this literal.
UNSET_TOKEN = "undefined"

SECONDS_PER_HOUR = 3600

# ============================================================================
# STATS ATTRIBUTES
# ============================================================================

ATTRIBUTE_DYNAMIC_ESS = "dynamic_ess"
ATTRIBUTE_EVCS = "evcs"

DEFAULT_DYNAMIC_ESS_INTERVAL = "hours"

# Query string sent to the Dynamic ESS schedule endpoint, regardless of config.
DYNAMIC_ESS_SCHEDULE_QUERY = "async=0"

# ============================================================================
# DYNAMIC ESS SETTINGS
# ============================================================================

DYNAMIC_ESS_MODE_NAMES: dict[int, str] = {
    0: "Off",
    1: "Auto",
    2: "Buy (deprecated)",
    3: "Sell (deprecated)",
    4: "Local",
}

DYNAMIC_ESS_OPERATING_MODE_NAMES: dict[int, str] = {
    0: "Trade",
    1: "Green",
}

DYNAMIC_ESS_MODE_OFF = 0

UNKNOWN_NAME = "Unknown"

# ============================================================================
# WIDGETS
# ============================================================================

# Keys under records.data that describe the payload rather than a device.
WIDGET_METADATA_KEYS = frozenset({"hasOldData", "secondsAgo"})

# ============================================================================
# PRICE SCHEDULE
# ============================================================================

PRICE_INTERVAL_MINUTES = 15
PRICE_CURRENCY = "EUR"
