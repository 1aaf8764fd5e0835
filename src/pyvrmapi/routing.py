"""Endpoint routing for the VRM API.

A ``RequestConfig`` is first turned into one endpoint variant (users,
installations, widgets, Dynamic ESS optimizer or custom), each carrying only
the fields its family needs. The variant is then routed to a concrete URL,
method, headers and body:

| Variant / subtype | Path | Method |
|---|---|---|
| users / me | /users/me | GET |
| users / installations | /users/{user or me}/installations | GET |
| installations / most subtypes | /installations/{site}/{subtype} | GET |
| installations / stats | /installations/{site}/stats?{parameters} | GET |
| installations / post-alarms | /installations/{site}/alarms | POST |
| installations / post-dynamic-ess-settings | /installations/{site}/dynamic-ess-settings | POST |
| installations / patch-dynamic-ess-settings | /installations/{site}/dynamic-ess-settings | PATCH |
| installations / fetch-dynamic-ess-schedules | /installations/{site}/schedule-dynamic-ess | GET |
| widgets | /installations/{site}/widgets/{type}[?instance=N] | GET |
| dynamic ESS optimizer | {dynamic ESS base URL} | POST |
| custom | caller URL | GET/POST/PATCH |

Schedule fetches always add ``async=0`` to the query string.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode

from .constants import (
    CUSTOM_QUERY_METHODS,
    DEFAULT_BASE_URL,
    DEFAULT_DYNAMIC_ESS_URL,
    DEFAULT_USER_AGENT,
    DYNAMIC_ESS_SCHEDULE_QUERY,
    DYNAMIC_ESS_USER_AGENT,
)
from .context import parse_site_id_reference
from .exceptions import ContextLookupError, VRMConfigurationError
from .models import (
    ApiType,
    DynamicEssOptions,
    InstallationsQuery,
    UsersQuery,
)

if TYPE_CHECKING:
    from .models import RequestConfig
    from .parameters import ParameterMap

_LOGGER = logging.getLogger(__name__)


# ============================================================================
# Endpoint variants
# ============================================================================


@dataclass(frozen=True)
class UsersEndpoint:
    """``/users`` family."""

    query: UsersQuery = UsersQuery.ME
    user_id: str | None = None


@dataclass(frozen=True)
class InstallationsEndpoint:
    """``/installations/{site}`` family."""

    site_id: str
    subtype: InstallationsQuery
    parameters: ParameterMap | None = None
    payload: Any = None


@dataclass(frozen=True)
class WidgetsEndpoint:
    """``/installations/{site}/widgets/{type}``."""

    site_id: str
    widget_type: str
    instance: int | str | None = None


@dataclass(frozen=True)
class DynamicEssEndpoint:
    """Dynamic ESS optimizer, served from its own base URL."""

    options: DynamicEssOptions


@dataclass(frozen=True)
class CustomEndpoint:
    """Caller-built URL, bypassing the routing table."""

    url: str
    method: str
    payload: Any = None


Endpoint = (
    UsersEndpoint | InstallationsEndpoint | WidgetsEndpoint | DynamicEssEndpoint | CustomEndpoint
)


@dataclass(frozen=True)
class InstallationRoute:
    """Where an installations subtype is sent.

    Attributes:
        path: Path segment after ``/installations/{site}/``
        method: HTTP method
        with_parameters: Append the stats parameter map as query string
        fixed_query: Query string sent instead of any parameters
    """

    path: str
    method: str = "GET"
    with_parameters: bool = False
    fixed_query: str | None = None


INSTALLATIONS_ROUTES: dict[InstallationsQuery, InstallationRoute] = {
    InstallationsQuery.BASIC: InstallationRoute("basic"),
    InstallationsQuery.STATS: InstallationRoute("stats", with_parameters=True),
    InstallationsQuery.OVERALL_STATS: InstallationRoute("overallstats"),
    InstallationsQuery.ALARMS: InstallationRoute("alarms"),
    InstallationsQuery.POST_ALARMS: InstallationRoute("alarms", "POST"),
    InstallationsQuery.DIAGNOSTICS: InstallationRoute("diagnostics"),
    InstallationsQuery.SYSTEM_OVERVIEW: InstallationRoute("system-overview"),
    InstallationsQuery.TAGS: InstallationRoute("tags"),
    InstallationsQuery.GPS_DOWNLOAD: InstallationRoute("gps-download"),
    InstallationsQuery.DYNAMIC_ESS_SETTINGS: InstallationRoute("dynamic-ess-settings"),
    InstallationsQuery.POST_DYNAMIC_ESS_SETTINGS: InstallationRoute("dynamic-ess-settings", "POST"),
    InstallationsQuery.PATCH_DYNAMIC_ESS_SETTINGS: InstallationRoute(
        "dynamic-ess-settings", "PATCH"
    ),
    InstallationsQuery.FETCH_DYNAMIC_ESS_SCHEDULES: InstallationRoute(
        "schedule-dynamic-ess", fixed_query=DYNAMIC_ESS_SCHEDULE_QUERY
    ),
}


@dataclass(frozen=True)
class PreparedRequest:
    """Everything the transport needs to send one request."""

    url: str
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


# ============================================================================
# Helpers
# ============================================================================


def build_headers(
    api_token: str,
    user_agent: str = DEFAULT_USER_AGENT,
    extra: dict[str, str] | None = None,
) -> dict[str, str]:
    """Standard VRM API headers, with ``extra`` applied last."""
    headers = {
        "X-Authorization": f"Token {api_token}",
        "accept": "application/json",
        "User-Agent": user_agent,
    }
    if extra:
        headers.update(extra)
    return headers


def encode_query(parameters: ParameterMap | None) -> str:
    """Form-encode a parameter map.

    List values are sent as repeated ``key[]=value`` pairs.
    """
    if not parameters:
        return ""
    pairs: list[tuple[str, str]] = []
    for key, value in parameters.items():
        if isinstance(value, list | tuple):
            list_key = key if key.endswith("[]") else f"{key}[]"
            pairs.extend((list_key, str(item)) for item in value)
        else:
            pairs.append((key, str(value)))
    return urlencode(pairs)


def _with_query(url: str, query: str) -> str:
    return f"{url}?{query}" if query else url


def build_topic(config: RequestConfig) -> str:
    """Topic describing what a configuration fetches (``"installations stats"``)."""
    if config.api_type is ApiType.USERS:
        return f"users {config.users_query.value}"
    if config.api_type is ApiType.INSTALLATIONS:
        return f"installations {config.installations_subtype.value}"
    if config.api_type is ApiType.WIDGETS:
        return f"widgets {config.widget_type}"
    if config.api_type is ApiType.DYNAMIC_ESS:
        return "dynamic-ess"
    return "custom"


def _require_site_id(config: RequestConfig, site_id: str | int | None) -> str:
    value = site_id if site_id not in (None, "") else config.site_id
    if value in (None, ""):
        raise VRMConfigurationError(f"{config.api_type.value} requests need a site id")
    value = str(value)
    reference = parse_site_id_reference(value)
    if reference is not None:
        # References must be resolved by the caller before routing.
        raise ContextLookupError(value, *reference)
    return value


def _custom_url(config: RequestConfig, base_url: str) -> str:
    if config.custom_query:
        root = config.custom_url or base_url
        return f"{root.rstrip('/')}/{config.custom_query.lstrip('/')}"
    if config.custom_url:
        return config.custom_url
    raise VRMConfigurationError("Custom requests need a url or query")


# ============================================================================
# Routing
# ============================================================================


def endpoint_for(
    config: RequestConfig,
    parameters: ParameterMap | None = None,
    *,
    site_id: str | int | None = None,
    base_url: str = DEFAULT_BASE_URL,
) -> Endpoint:
    """Select the endpoint variant described by a configuration.

    Raises:
        VRMConfigurationError: For unknown families, missing site ids or
            unsupported custom methods
        ContextLookupError: If the site id is still a ``{{scope.key}}`` reference
    """
    api_type = config.api_type

    if api_type is ApiType.USERS:
        user_id = None if config.user_id in (None, "") else str(config.user_id)
        return UsersEndpoint(config.users_query, user_id)

    if api_type is ApiType.INSTALLATIONS:
        return InstallationsEndpoint(
            site_id=_require_site_id(config, site_id),
            subtype=config.installations_subtype,
            parameters=parameters,
            payload=config.payload,
        )

    if api_type is ApiType.WIDGETS:
        if not config.widget_type:
            raise VRMConfigurationError("Widget requests need a widget type")
        return WidgetsEndpoint(
            site_id=_require_site_id(config, site_id),
            widget_type=config.widget_type,
            instance=config.widget_instance,
        )

    if api_type is ApiType.DYNAMIC_ESS:
        return DynamicEssEndpoint(config.dynamic_ess_options or DynamicEssOptions())

    if api_type is ApiType.CUSTOM:
        method = (config.method or "").upper()
        if method not in CUSTOM_QUERY_METHODS:
            raise VRMConfigurationError(f"Unsupported method for custom request: {config.method}")
        return CustomEndpoint(_custom_url(config, base_url), method, config.payload)

    raise VRMConfigurationError(f"Unknown API type: {api_type}")


def route(
    endpoint: Endpoint,
    *,
    base_url: str = DEFAULT_BASE_URL,
    dynamic_ess_url: str = DEFAULT_DYNAMIC_ESS_URL,
) -> tuple[str, str, Any]:
    """Resolve an endpoint variant to (url, method, body).

    Raises:
        VRMConfigurationError: If ``endpoint`` is not a known variant
    """
    base_url = base_url.rstrip("/")

    if isinstance(endpoint, UsersEndpoint):
        if endpoint.query is UsersQuery.INSTALLATIONS:
            return f"{base_url}/users/{endpoint.user_id or 'me'}/installations", "GET", None
        return f"{base_url}/users/me", "GET", None

    if isinstance(endpoint, InstallationsEndpoint):
        installation_route = INSTALLATIONS_ROUTES.get(endpoint.subtype)
        if installation_route is None:
            raise VRMConfigurationError(f"Unknown installations endpoint: {endpoint.subtype}")
        site = quote(endpoint.site_id, safe="")
        url = f"{base_url}/installations/{site}/{installation_route.path}"
        if installation_route.fixed_query is not None:
            url = _with_query(url, installation_route.fixed_query)
        elif installation_route.with_parameters:
            url = _with_query(url, encode_query(endpoint.parameters))
        body = endpoint.payload if installation_route.method != "GET" else None
        return url, installation_route.method, body

    if isinstance(endpoint, WidgetsEndpoint):
        site = quote(endpoint.site_id, safe="")
        url = f"{base_url}/installations/{site}/widgets/{quote(endpoint.widget_type, safe='')}"
        if endpoint.instance not in (None, ""):
            url = _with_query(url, urlencode({"instance": endpoint.instance}))
        return url, "GET", None

    if isinstance(endpoint, DynamicEssEndpoint):
        return dynamic_ess_url, "POST", endpoint.options.to_payload()

    if isinstance(endpoint, CustomEndpoint):
        body = endpoint.payload if endpoint.method != "GET" else None
        return endpoint.url, endpoint.method, body

    raise VRMConfigurationError(f"Unknown endpoint: {endpoint!r}")


def build_request(
    config: RequestConfig,
    parameters: ParameterMap | None = None,
    *,
    site_id: str | int | None = None,
    base_url: str = DEFAULT_BASE_URL,
    dynamic_ess_url: str = DEFAULT_DYNAMIC_ESS_URL,
    user_agent: str = DEFAULT_USER_AGENT,
) -> PreparedRequest:
    """Build the HTTP request for a configuration.

    Args:
        config: Request configuration; ``config.api_token`` is required
        parameters: Stats parameter map (used by the stats subtype only)
        site_id: Already-resolved site id, overriding ``config.site_id``
        base_url: VRM API base URL
        dynamic_ess_url: Dynamic ESS optimizer URL
        user_agent: ``User-Agent`` header value

    Returns:
        PreparedRequest with url, upper-case method, headers and body

    Raises:
        VRMConfigurationError: If the configuration cannot be routed or has
            no API token
        ContextLookupError: If the site id is an unresolved reference

    Example:
        >>> request = build_request(
        ...     RequestConfig(installations="fetch-dynamic-ess-schedules",
        ...                   site_id="123456", api_token="secret")
        ... )
        >>> request.url
        'https://vrmapi.victronenergy.com/v2/installations/123456/schedule-dynamic-ess?async=0'
    """
    if not config.api_token:
        raise VRMConfigurationError("No API token configured")

    endpoint = endpoint_for(config, parameters, site_id=site_id, base_url=base_url)
    url, method, body = route(endpoint, base_url=base_url, dynamic_ess_url=dynamic_ess_url)

    extra = (
        {"User-Agent": DYNAMIC_ESS_USER_AGENT} if isinstance(endpoint, DynamicEssEndpoint) else None
    )
    headers = build_headers(config.api_token, user_agent, extra)

    _LOGGER.debug("Built %s %s", method, url)
    return PreparedRequest(url=url, method=method, headers=headers, body=body)
