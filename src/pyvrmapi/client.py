"""Victron VRM API Client.

This module provides an async client for the VRM portal API and the Dynamic
ESS optimizer.

Key Features:
- Async/await support with aiohttp
- Token authentication (``X-Authorization: Token ...``)
- Support for injected aiohttp.ClientSession
- Optional IPv4-only connections
- Normalized response envelopes: transport failures never raise
- High-level ``query`` pipeline with caller-side rate limiting
"""

from __future__ import annotations

import json
import logging
import socket
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import aiohttp
from aiohttp import ClientTimeout

from .constants import (
    ATTRIBUTE_DYNAMIC_ESS,
    CUSTOM_CALL_METHODS,
    CUSTOM_QUERY_METHODS,
    DEFAULT_BASE_URL,
    DEFAULT_DYNAMIC_ESS_URL,
    DEFAULT_MIN_REQUEST_INTERVAL,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    DYNAMIC_ESS_USER_AGENT,
)
from .context import ContextStore, resolve_site_id
from .exceptions import (
    VRMAPIError,
    VRMConfigurationError,
    VRMConnectionError,
    VRMTransportError,
)
from .interpret import interpret_response
from .models import (
    ApiType,
    DynamicEssOptions,
    InstallationsQuery,
    PriceSchedule,
    RequestConfig,
    ResponseEnvelope,
    StatusColor,
    StatusInterpretation,
    UsersQuery,
)
from .parameters import ParameterMap, build_stats_parameters
from .price_schedule import transform_price_schedule
from .routing import (
    DynamicEssEndpoint,
    Endpoint,
    InstallationsEndpoint,
    PreparedRequest,
    UsersEndpoint,
    WidgetsEndpoint,
    build_headers,
    build_request,
    build_topic,
    route,
)

_LOGGER = logging.getLogger(__name__)

_EnumT = TypeVar("_EnumT", bound=StrEnum)

def should_throttle(now: float, last_success_at: float | None, min_interval: float) -> bool:
    """Return True when a query arrives too soon after the last success.

    Args:
        now: Current instant (Unix seconds)
        last_success_at: Instant of the last successful query, or None
        min_interval: Minimum spacing between queries in seconds
    """
    if last_success_at is None:
        return False
    return now - last_success_at < min_interval


def _coerce(enum_cls: type[_EnumT], value: str, what: str) -> _EnumT:
    try:
        return enum_cls(value)
    except ValueError as err:
        raise VRMConfigurationError(f"Unknown {what}: {value}") from err


@dataclass
class QueryResult:
    """Outcome of ``VRMClient.query``.

    Attributes:
        envelope: Response envelope, None when the query was throttled
        status: Status line for the query
        topic: What was fetched, e.g. ``"installations stats"``
        price_schedule: Transformed Dynamic ESS prices, when requested
        throttled: True when nothing was sent because of rate limiting
    """

    envelope: ResponseEnvelope | None
    status: StatusInterpretation
    topic: str
    price_schedule: PriceSchedule | None = None
    throttled: bool = False


class VRMClient:
    """Victron VRM API Client.

    Example:
        ```python
        async with VRMClient(token, iana_timezone="Europe/Amsterdam") as client:
            me = await client.call_users_api()
            result = await client.query(
                RequestConfig(installations="stats", site_id=123456,
                              attribute_code="bs", time_start="bod", time_end="eod")
            )
            print(result.status.text)
        ```
    """

    def __init__(
        self,
        api_token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        dynamic_ess_url: str = DEFAULT_DYNAMIC_ESS_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: int = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
        force_ipv4: bool = False,
        iana_timezone: str | None = None,
        min_request_interval: float = DEFAULT_MIN_REQUEST_INTERVAL,
    ) -> None:
        """Initialize the VRM API client.

        Args:
            api_token: VRM access token
            base_url: Base URL for the VRM API
            dynamic_ess_url: URL of the Dynamic ESS optimizer
            user_agent: ``User-Agent`` header for VRM API requests
            timeout: Request timeout in seconds (default: 30)
            session: Optional aiohttp ClientSession for session injection
            force_ipv4: Only connect over IPv4 (ignored for injected sessions)
            iana_timezone: Optional IANA timezone (e.g., "Europe/Amsterdam")
                for the calendar behind ``bod``/``eod`` style time tokens.
                System local time is used when not provided.
            min_request_interval: Minimum seconds between two ``query`` calls

        Raises:
            VRMConfigurationError: If the token is empty or the timezone unknown
        """
        if not api_token:
            raise VRMConfigurationError("No API token configured")

        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.dynamic_ess_url = dynamic_ess_url
        self.user_agent = user_agent
        self.timeout = ClientTimeout(total=timeout)
        self.force_ipv4 = force_ipv4
        self.iana_timezone = iana_timezone
        self.min_request_interval = min_request_interval

        self._tz: ZoneInfo | None = None
        if iana_timezone:
            try:
                self._tz = ZoneInfo(iana_timezone)
            except (ZoneInfoNotFoundError, ValueError) as err:
                raise VRMConfigurationError(f"Unknown timezone: {iana_timezone}") from err

        # Session management
        self._session: aiohttp.ClientSession | None = session
        self._owns_session: bool = session is None

        # Rate limiting
        self.last_success_at: float | None = None

    async def __aenter__(self) -> VRMClient:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session.

        Returns:
            aiohttp.ClientSession: The session to use for requests.
        """
        if self._session is not None and not self._owns_session:
            return self._session

        if self._session is None or self._session.closed:
            family = socket.AF_INET if self.force_ipv4 else socket.AF_UNSPEC
            connector = aiohttp.TCPConnector(family=family)
            self._session = aiohttp.ClientSession(connector=connector, timeout=self.timeout)
            self._owns_session = True

        return self._session

    async def close(self) -> None:
        """Close the session if we own it.

        Only closes the session if it was created by this client,
        not if it was injected.
        """
        if self._session and not self._session.closed and self._owns_session:
            await self._session.close()

    @property
    def tz(self) -> ZoneInfo | None:
        """Calendar zone for symbolic time tokens (None means system local)."""
        return self._tz

    # Transport

    @staticmethod
    async def _decode(response: aiohttp.ClientResponse) -> Any:
        """Decode a response body as JSON, falling back to text.

        Invalid UTF-8 bytes are replaced rather than raising.
        """
        raw = await response.read()
        if not raw:
            return None
        text = raw.decode("utf-8", errors="replace")
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def send(self, request: PreparedRequest) -> ResponseEnvelope:
        """Send a prepared request.

        Args:
            request: Output of ``build_request`` (or any PreparedRequest)

        Returns:
            ResponseEnvelope; ``success`` is False for HTTP errors,
            network failures and timeouts.
        """
        return await self._request(
            request.method, request.url, headers=request.headers, payload=request.body
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        payload: Any = None,
    ) -> ResponseEnvelope:
        """Make an HTTP request and wrap the outcome in an envelope."""
        session = await self._get_session()
        _LOGGER.debug("%s %s", method, url)

        try:
            async with session.request(method, url, json=payload, headers=headers) as response:
                data = await self._decode(response)
                _LOGGER.debug("Response %s from %s", response.status, url)
                if response.status >= 400:
                    raise VRMAPIError(
                        f"Request failed with status code {response.status}",
                        status=response.status,
                        data=data,
                    )
        except TimeoutError as err:
            return self._failure(
                VRMConnectionError(f"Request timed out after {self.timeout.total}s"),
                url,
                method,
                err,
            )
        except aiohttp.ClientError as err:
            return self._failure(VRMConnectionError(f"Connection error: {err}"), url, method, err)
        except VRMTransportError as err:
            return self._failure(err, url, method, err)

        return ResponseEnvelope(
            success=True,
            status=response.status,
            data=data,
            url=url,
            method=method.lower(),
        )

    @staticmethod
    def _failure(
        error: VRMTransportError, url: str, method: str, cause: BaseException
    ) -> ResponseEnvelope:
        _LOGGER.warning("%s %s failed: %s (%s)", method, url, error, type(cause).__name__)
        return ResponseEnvelope(
            success=False,
            status=error.status,
            data=error.data,
            url=url,
            method=method.lower(),
            error=str(error),
        )

    async def _call(self, endpoint: Endpoint) -> ResponseEnvelope:
        url, method, body = route(
            endpoint, base_url=self.base_url, dynamic_ess_url=self.dynamic_ess_url
        )
        extra = (
            {"User-Agent": DYNAMIC_ESS_USER_AGENT}
            if isinstance(endpoint, DynamicEssEndpoint)
            else None
        )
        headers = build_headers(self.api_token, self.user_agent, extra)
        return await self._request(method, url, headers=headers, payload=body)

    # Low-level API calls

    async def call_users_api(
        self, query: str = UsersQuery.ME, user_id: str | int | None = None
    ) -> ResponseEnvelope:
        """Call ``/users/me`` or ``/users/{user_id}/installations``.

        Raises:
            VRMConfigurationError: If ``query`` is not a users query
        """
        users_query = _coerce(UsersQuery, query, "users query")
        return await self._call(
            UsersEndpoint(users_query, None if user_id in (None, "") else str(user_id))
        )

    async def call_installations_api(
        self,
        site_id: str | int,
        subtype: str,
        payload: Any = None,
        parameters: ParameterMap | None = None,
    ) -> ResponseEnvelope:
        """Call an ``/installations/{site_id}`` endpoint.

        Args:
            site_id: Installation id
            subtype: Installations subtype, e.g. ``"stats"`` or ``"post-alarms"``
            payload: JSON body for POST/PATCH subtypes
            parameters: Query parameters for ``stats``

        Raises:
            VRMConfigurationError: If ``subtype`` is unknown
        """
        installations_query = _coerce(InstallationsQuery, subtype, "installations endpoint")
        return await self._call(
            InstallationsEndpoint(str(site_id), installations_query, parameters, payload)
        )

    async def call_widgets_api(
        self,
        site_id: str | int,
        widget_type: str,
        instance: int | str | None = None,
    ) -> ResponseEnvelope:
        """Call ``/installations/{site_id}/widgets/{widget_type}``."""
        return await self._call(WidgetsEndpoint(str(site_id), widget_type, instance))

    async def call_dynamic_ess_api(
        self, options: DynamicEssOptions | dict[str, Any]
    ) -> ResponseEnvelope:
        """POST system options to the Dynamic ESS optimizer."""
        if not isinstance(options, DynamicEssOptions):
            options = DynamicEssOptions.model_validate(options)
        return await self._call(DynamicEssEndpoint(options))

    async def make_custom_call(
        self,
        url: str,
        method: str = "GET",
        payload: Any = None,
        headers: dict[str, str] | None = None,
    ) -> ResponseEnvelope:
        """Call an arbitrary URL with the VRM authentication headers.

        Args:
            url: Full URL
            method: GET, POST, PATCH, PUT or DELETE (case-insensitive)
            payload: JSON body for methods other than GET
            headers: Headers added to (or replacing) the defaults

        Raises:
            VRMConfigurationError: If the method is not supported
        """
        method = method.upper()
        if method not in CUSTOM_CALL_METHODS:
            raise VRMConfigurationError(f"Unsupported method: {method}")
        return await self._request(
            method,
            url,
            headers=build_headers(self.api_token, self.user_agent, headers),
            payload=payload if method != "GET" else None,
        )

    # High-level query

    def _effective_config(
        self,
        config: RequestConfig,
        payload: Any,
        custom_url: str | None,
        custom_query: str | None,
        custom_method: str | None,
    ) -> RequestConfig:
        update: dict[str, Any] = {}
        if not config.api_token:
            update["api_token"] = self.api_token
        if payload is not None:
            update["payload"] = payload
        if custom_query and (custom_method or "").upper() in CUSTOM_QUERY_METHODS:
            update.update(
                api_type=ApiType.CUSTOM,
                custom_url=custom_url,
                custom_query=custom_query,
                method=custom_method,
            )
        return config.model_copy(update=update) if update else config

    async def query(
        self,
        config: RequestConfig,
        *,
        now: datetime | None = None,
        context: ContextStore | None = None,
        site_id: str | int | None = None,
        payload: Any = None,
        custom_url: str | None = None,
        custom_query: str | None = None,
        custom_method: str | None = None,
    ) -> QueryResult:
        """Run one configured request end to end.

        Args:
            config: Request configuration
            now: Instant used for rate limiting and time tokens (default: now)
            context: Store for ``{{scope.key}}`` site ids and global write-back
            site_id: Site id supplied with the trigger, used instead of a
                literal configured site id
            payload: Body for POST/PATCH requests, replacing ``config.payload``
            custom_url: Base URL for a custom query (default: VRM API base URL)
            custom_query: Path appended to ``custom_url``; together with a
                GET/POST/PATCH ``custom_method`` it turns the query into a
                custom request
            custom_method: HTTP method for the custom request

        Returns:
            QueryResult

        Raises:
            VRMConfigurationError: If the configuration cannot be routed
            ContextLookupError: If a site id reference cannot be resolved
        """
        now = now or datetime.now(UTC)
        now_ts = now.timestamp()

        if should_throttle(now_ts, self.last_success_at, self.min_request_interval):
            _LOGGER.warning(
                "Query throttled, last success %.1fs ago", now_ts - (self.last_success_at or 0)
            )
            return QueryResult(
                envelope=None,
                status=StatusInterpretation(text="Limit queries quickly", color=StatusColor.YELLOW),
                topic=build_topic(config),
                throttled=True,
            )

        config = self._effective_config(config, payload, custom_url, custom_query, custom_method)
        topic = build_topic(config)

        resolved_site_id: str | None = None
        if config.api_type in (ApiType.INSTALLATIONS, ApiType.WIDGETS):
            resolved_site_id = resolve_site_id(config.site_id, context, override=site_id)

        parameters: ParameterMap | None = None
        if (
            config.api_type is ApiType.INSTALLATIONS
            and config.installations_subtype is InstallationsQuery.STATS
        ):
            parameters = build_stats_parameters(config, now, tz=self._tz)

        request = build_request(
            config,
            parameters,
            site_id=resolved_site_id,
            base_url=self.base_url,
            dynamic_ess_url=self.dynamic_ess_url,
            user_agent=self.user_agent,
        )
        envelope = await self.send(request)

        if config.verbose:
            _LOGGER.info(
                "url=%s method=%s status=%s", envelope.url, envelope.method, envelope.status
            )

        if not envelope.success:
            return QueryResult(
                envelope=envelope,
                status=StatusInterpretation(
                    text=envelope.error or "Request failed",
                    color=StatusColor.RED,
                    raw=envelope.data,
                ),
                topic=topic,
            )

        if config.store_in_global_context and context is not None:
            context.set("global", topic.replace(" ", "."), envelope.data)

        price_schedule: PriceSchedule | None = None
        if self._wants_price_schedule(config):
            status, price_schedule = self._price_schedule_status(envelope.data)
        else:
            status = interpret_response(
                config.api_type,
                envelope.data,
                self._subtype(config),
                config.widget_instance,
            )

        self.last_success_at = now_ts
        return QueryResult(
            envelope=envelope,
            status=status,
            topic=topic,
            price_schedule=price_schedule,
        )

    @staticmethod
    def _subtype(config: RequestConfig) -> str | None:
        if config.api_type is ApiType.USERS:
            return config.users_query
        if config.api_type is ApiType.INSTALLATIONS:
            return config.installations_subtype
        if config.api_type is ApiType.WIDGETS:
            return config.widget_type
        return None

    @staticmethod
    def _wants_price_schedule(config: RequestConfig) -> bool:
        return (
            config.transform_price_schedule
            and config.api_type is ApiType.INSTALLATIONS
            and config.installations_subtype is InstallationsQuery.STATS
            and config.attribute_code == ATTRIBUTE_DYNAMIC_ESS
        )

    @staticmethod
    def _price_schedule_status(
        data: Any,
    ) -> tuple[StatusInterpretation, PriceSchedule | None]:
        records = data.get("records") if isinstance(data, dict) else None
        try:
            schedule = transform_price_schedule(records or data)
        except (TypeError, ValueError) as err:
            _LOGGER.warning("Failed to transform price schedule: %s", err)
            return (
                StatusInterpretation(text="transform error", color=StatusColor.YELLOW, raw=data),
                None,
            )
        return (
            StatusInterpretation(
                text=f"{schedule.metadata.count} price intervals",
                color=StatusColor.GREEN,
                raw=data,
            ),
            schedule,
        )
