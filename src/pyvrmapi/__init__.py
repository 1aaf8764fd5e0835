"""Python client library for the Victron Energy VRM portal API.

Usage:
    Low-level calls:
        from pyvrmapi import VRMClient

        async with VRMClient(token) as client:
            envelope = await client.call_installations_api(123456, "system-overview")

    Configured queries:
        from pyvrmapi import RequestConfig, VRMClient

        config = RequestConfig(
            installations="stats", site_id=123456, attribute_code="bs",
            stats_interval="hours", time_start="bod", time_end="eod",
        )
        async with VRMClient(token, iana_timezone="Europe/Amsterdam") as client:
            result = await client.query(config)
            print(result.status.text)

    Stored form values:
        config = RequestConfig.from_dict(form)  # VRMConfigurationError if invalid

    Request building without I/O:
        from pyvrmapi import build_request, build_stats_parameters

        parameters = build_stats_parameters(config, now)
        request = build_request(config, parameters, site_id="123456")
"""

from __future__ import annotations

from .client import QueryResult, VRMClient, should_throttle
from .constants import VERSION
from .context import ContextStore, MemoryContextStore, resolve_site_id
from .exceptions import (
    ConfigurationError,
    ContextLookupError,
    VRMAPIError,
    VRMConfigurationError,
    VRMConnectionError,
    VRMError,
    VRMTransportError,
)
from .interpret import extract_user_data, interpret_response
from .models import (
    ApiType,
    DynamicEssOptions,
    InstallationsQuery,
    PriceSchedule,
    RequestConfig,
    ResponseEnvelope,
    StatusColor,
    StatusInterpretation,
    UserData,
    UsersQuery,
)
from .parameters import build_stats_parameters
from .price_schedule import transform_price_schedule
from .routing import PreparedRequest, build_request

__version__ = VERSION
__all__ = [
    "VRMClient",
    "QueryResult",
    "should_throttle",
    # Request building
    "build_stats_parameters",
    "build_request",
    "PreparedRequest",
    "resolve_site_id",
    "ContextStore",
    "MemoryContextStore",
    # Interpretation
    "interpret_response",
    "extract_user_data",
    "transform_price_schedule",
    # Models
    "RequestConfig",
    "ResponseEnvelope",
    "StatusInterpretation",
    "UserData",
    "DynamicEssOptions",
    "PriceSchedule",
    # Enums
    "ApiType",
    "UsersQuery",
    "InstallationsQuery",
    "StatusColor",
    # Exceptions
    "VRMError",
    "VRMConfigurationError",
    "ConfigurationError",
    "ContextLookupError",
    "VRMTransportError",
    "VRMConnectionError",
    "VRMAPIError",
]
