"""Pydantic models for VRM API requests and responses.

``RequestConfig`` accepts both Python field names and the field names used by
the host configuration form (``idSite``, ``stats_start``, ``attribute`` ...),
so a stored form can be validated directly.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .exceptions import VRMConfigurationError


class ApiType(StrEnum):
    """Endpoint families."""

    USERS = "users"
    INSTALLATIONS = "installations"
    WIDGETS = "widgets"
    DYNAMIC_ESS = "dynamic-ess"
    CUSTOM = "custom"


class UsersQuery(StrEnum):
    """Subtypes of the users family."""

    ME = "me"
    INSTALLATIONS = "installations"


class InstallationsQuery(StrEnum):
    """Subtypes of the installations family.

    Values are the form values; some of them are rewritten into a different
    path and method by the router (see ``routing.INSTALLATIONS_ROUTES``).
    """

    BASIC = "basic"
    STATS = "stats"
    OVERALL_STATS = "overallstats"
    ALARMS = "alarms"
    POST_ALARMS = "post-alarms"
    DIAGNOSTICS = "diagnostics"
    SYSTEM_OVERVIEW = "system-overview"
    TAGS = "tags"
    GPS_DOWNLOAD = "gps-download"
    DYNAMIC_ESS_SETTINGS = "dynamic-ess-settings"
    POST_DYNAMIC_ESS_SETTINGS = "post-dynamic-ess-settings"
    PATCH_DYNAMIC_ESS_SETTINGS = "patch-dynamic-ess-settings"
    FETCH_DYNAMIC_ESS_SCHEDULES = "fetch-dynamic-ess-schedules"


class StatusColor(StrEnum):
    """Colors of a status line."""

    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    BLUE = "blue"
    RED = "red"


class DynamicEssOptions(BaseModel):
    """Inputs for the Dynamic ESS optimizer endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vrm_id: str | int | None = None
    b_max: int | float | str | None = None
    tb_max: int | float | str | None = None
    fb_max: int | float | str | None = None
    tg_max: int | float | str | None = None
    fg_max: int | float | str | None = None
    b_cycle_cost: int | float | str | None = None
    buy_price_formula: str | None = None
    sell_price_formula: str | None = None
    green_mode_on: bool = False
    feed_in_possible: bool = False
    feed_in_control_on: bool = False
    country: str | None = None
    b_goal_hour: int | str | None = None
    b_goal_soc: int | float | str | None = Field(
        default=None, validation_alias=AliasChoices("b_goal_soc", "b_goal_SOC")
    )

    def to_payload(self) -> dict[str, str]:
        """Render the optimizer payload.

        The optimizer expects every field as a string. Unset (or zero)
        values become empty strings and flags become ``"true"``/``"false"``.
        """

        def text(value: Any) -> str:
            return str(value) if value else ""

        def flag(value: bool) -> str:
            return "true" if value else "false"

        return {
            "vrm_id": text(self.vrm_id),
            "b_max": text(self.b_max),
            "tb_max": text(self.tb_max),
            "fb_max": text(self.fb_max),
            "tg_max": text(self.tg_max),
            "fg_max": text(self.fg_max),
            "b_cycle_cost": text(self.b_cycle_cost),
            "buy_price_formula": text(self.buy_price_formula),
            "sell_price_formula": text(self.sell_price_formula),
            "green_mode_on": flag(self.green_mode_on),
            "feed_in_possible": flag(self.feed_in_possible),
            "feed_in_control_on": flag(self.feed_in_control_on),
            "country": (self.country or "").upper(),
            "b_goal_hour": text(self.b_goal_hour),
            "b_goal_SOC": text(self.b_goal_soc),
        }


class RequestConfig(BaseModel):
    """Declarative description of one VRM API request.

    Example:
        >>> config = RequestConfig.from_dict(
        ...     {
        ...         "api_type": "installations",
        ...         "installations": "stats",
        ...         "idSite": "123456",
        ...         "attribute": "Dc/0/Power",
        ...         "stats_interval": "hours",
        ...         "stats_start": "bod",
        ...         "stats_end": "eod",
        ...         "use_utc": True,
        ...     }
        ... )
        >>> config.installations_subtype
        <InstallationsQuery.STATS: 'stats'>
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    api_type: ApiType = ApiType.INSTALLATIONS
    installations_subtype: InstallationsQuery = Field(
        default=InstallationsQuery.BASIC, alias="installations"
    )
    users_query: UsersQuery = Field(
        default=UsersQuery.ME, validation_alias=AliasChoices("users_query", "usersQuery", "users")
    )
    user_id: str | int | None = Field(
        default=None, validation_alias=AliasChoices("user_id", "idUser")
    )
    site_id: str | int | None = Field(
        default=None, validation_alias=AliasChoices("site_id", "idSite")
    )

    # Stats parameters
    attribute_code: str | None = Field(
        default=None, validation_alias=AliasChoices("attribute_code", "attribute")
    )
    stats_interval: str | None = Field(
        default=None, validation_alias=AliasChoices("stats_interval", "interval")
    )
    show_instance: bool = False
    time_start: str | int | None = Field(
        default=None, validation_alias=AliasChoices("time_start", "stats_start")
    )
    time_end: str | int | None = Field(
        default=None, validation_alias=AliasChoices("time_end", "stats_end")
    )
    use_utc: bool = False

    # Widgets
    widget_type: str | None = Field(
        default=None, validation_alias=AliasChoices("widget_type", "widgets")
    )
    widget_instance: int | str | None = Field(
        default=None, validation_alias=AliasChoices("widget_instance", "instance")
    )

    # Custom requests
    custom_url: str | None = Field(
        default=None, validation_alias=AliasChoices("custom_url", "url")
    )
    custom_query: str | None = Field(
        default=None, validation_alias=AliasChoices("custom_query", "query")
    )
    method: str | None = None
    payload: Any = None

    dynamic_ess_options: DynamicEssOptions | None = None

    api_token: str | None = Field(default=None, repr=False)

    transform_price_schedule: bool = False
    store_in_global_context: bool = False
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RequestConfig:
        """Validate a configuration dictionary.

        Args:
            data: Form values or keyword values

        Returns:
            RequestConfig instance

        Raises:
            VRMConfigurationError: If a family, subtype or field is invalid
        """
        try:
            return cls.model_validate(data)
        except ValidationError as err:
            raise VRMConfigurationError(f"Invalid request configuration: {err}") from err


class ResponseEnvelope(BaseModel):
    """Normalized outcome of one HTTP call.

    ``success`` is False whenever the transport failed, whatever the
    endpoint family.
    """

    success: bool
    status: int | None = None
    data: Any = None
    url: str
    method: str
    error: str | None = None


class StatusInterpretation(BaseModel):
    """Short human status derived from a response body.

    Family-specific fields (``user_id``, ``installation_count``,
    ``formatted_value``, ``mode_name``, ``has_data`` ...) are stored as
    extra attributes next to ``text``, ``color`` and ``raw``.
    """

    model_config = ConfigDict(extra="allow")

    text: str
    color: StatusColor
    raw: Any = None


class UserData(BaseModel):
    """User record extracted from a ``users/me`` response."""

    id: int | str | None = None
    email: str | None = None
    name: str | None = None
    country: str | None = None
    access_level: int | None = Field(
        default=None, validation_alias=AliasChoices("access_level", "accessLevel")
    )
    id_access_token: int | str | None = Field(
        default=None, validation_alias=AliasChoices("id_access_token", "idAccessToken")
    )
    raw: Any = None


class PriceInterval(BaseModel):
    """One interval of a Dynamic ESS price schedule."""

    timestamp: int
    datetime: str
    buy_price: float | None = None
    sell_price: float | None = None
    spread: float | None = None


class PriceScheduleMetadata(BaseModel):
    """Summary of a transformed price schedule."""

    interval_minutes: int
    count: int
    start_time: str | None = None
    end_time: str | None = None
    currency: str


class PriceSchedule(BaseModel):
    """Buy/sell prices merged into one timestamp-ordered schedule."""

    payload: list[PriceInterval]
    metadata: PriceScheduleMetadata
