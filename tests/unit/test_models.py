"""Unit tests for Pydantic models."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from pyvrmapi.exceptions import ConfigurationError, VRMConfigurationError
from pyvrmapi.models import (
    ApiType,
    DynamicEssOptions,
    InstallationsQuery,
    RequestConfig,
    ResponseEnvelope,
    StatusColor,
    StatusInterpretation,
    UsersQuery,
)


class TestRequestConfig:
    """Test RequestConfig model."""

    def test_defaults(self) -> None:
        """An empty configuration asks for basic installation info."""
        config = RequestConfig()

        assert config.api_type is ApiType.INSTALLATIONS
        assert config.installations_subtype is InstallationsQuery.BASIC
        assert config.users_query is UsersQuery.ME
        assert config.use_utc is False
        assert config.show_instance is False

    def test_form_field_names(self) -> None:
        """Stored form values validate directly."""
        form: dict[str, Any] = {
            "api_type": "installations",
            "installations": "stats",
            "idSite": "123456",
            "attribute": "Dc/0/Power",
            "stats_interval": "hours",
            "show_instance": True,
            "stats_start": "bod",
            "stats_end": "eod",
            "use_utc": True,
            "store_in_global_context": True,
            "unrelated_form_field": "ignored",
        }

        config = RequestConfig.from_dict(form)

        assert config.installations_subtype is InstallationsQuery.STATS
        assert config.site_id == "123456"
        assert config.attribute_code == "Dc/0/Power"
        assert config.time_start == "bod"
        assert config.time_end == "eod"
        assert config.store_in_global_context is True

    @pytest.mark.parametrize("key", ["usersQuery", "users", "users_query"])
    def test_users_query_aliases(self, key: str) -> None:
        """Old and new users field names are accepted."""
        config = RequestConfig.model_validate({"api_type": "users", key: "installations"})

        assert config.users_query is UsersQuery.INSTALLATIONS

    def test_widget_fields(self) -> None:
        """Widget type and instance use the form names."""
        config = RequestConfig.model_validate(
            {"api_type": "widgets", "widgets": "TempSummaryAndGraph", "instance": 20}
        )

        assert config.widget_type == "TempSummaryAndGraph"
        assert config.widget_instance == 20

    def test_unknown_subtype(self) -> None:
        """Unknown subtypes surface as configuration errors."""
        with pytest.raises(VRMConfigurationError):
            RequestConfig.from_dict({"installations": "everything"})

    def test_unknown_family(self) -> None:
        """Unknown families surface as configuration errors."""
        with pytest.raises(ConfigurationError):
            RequestConfig.from_dict({"api_type": "graphs"})

    def test_direct_validation_error(self) -> None:
        """Direct validation keeps pydantic's error type."""
        with pytest.raises(ValidationError):
            RequestConfig.model_validate({"api_type": "graphs"})

    def test_is_frozen(self) -> None:
        """Configurations are immutable."""
        config = RequestConfig()

        with pytest.raises(ValidationError):
            config.use_utc = True  # type: ignore[misc]

    def test_token_not_in_repr(self) -> None:
        """The API token never appears in repr."""
        config = RequestConfig(api_token="secret-token")

        assert "secret-token" not in repr(config)


class TestDynamicEssOptions:
    """Test DynamicEssOptions payload rendering."""

    def test_payload(self) -> None:
        """Every option is rendered as a string."""
        options = DynamicEssOptions.model_validate(
            {
                "vrm_id": 123456,
                "b_max": 10.24,
                "b_cycle_cost": 0.08,
                "buy_price_formula": "p+0.02",
                "green_mode_on": True,
                "country": "nl",
                "b_goal_hour": 7,
                "b_goal_SOC": 80,
            }
        )

        payload = options.to_payload()

        assert payload == {
            "vrm_id": "123456",
            "b_max": "10.24",
            "tb_max": "",
            "fb_max": "",
            "tg_max": "",
            "fg_max": "",
            "b_cycle_cost": "0.08",
            "buy_price_formula": "p+0.02",
            "sell_price_formula": "",
            "green_mode_on": "true",
            "feed_in_possible": "false",
            "feed_in_control_on": "false",
            "country": "NL",
            "b_goal_hour": "7",
            "b_goal_SOC": "80",
        }

    def test_empty_payload(self) -> None:
        """Unset options become empty strings and false flags."""
        payload = DynamicEssOptions().to_payload()

        assert payload["vrm_id"] == ""
        assert payload["country"] == ""
        assert payload["green_mode_on"] == "false"
        assert all(isinstance(value, str) for value in payload.values())


class TestResponseModels:
    """Test envelope and status models."""

    def test_failure_envelope(self) -> None:
        """Failure envelopes carry status, data and error."""
        envelope = ResponseEnvelope(
            success=False,
            status=404,
            data={"error": "Widget not found"},
            url="https://vrmapi.victronenergy.com/v2/users/me",
            method="get",
            error="Request failed with status code 404",
        )

        assert envelope.model_dump()["status"] == 404

    def test_status_extra_fields(self) -> None:
        """Family-specific fields are kept next to text and color."""
        status = StatusInterpretation(text="Ok", color="green", installation_count=3)

        assert status.color is StatusColor.GREEN
        assert status.installation_count == 3
        assert status.model_dump()["installation_count"] == 3
