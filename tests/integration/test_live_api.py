"""Integration tests for live VRM API access.

These tests only read data. To run them:
1. Create a .env file in the project root with credentials:
   VRM_API_TOKEN=your_access_token
   VRM_TEST_SITE_ID=123456
   VRM_TEST_USER_ID=22

2. Run with pytest marker:
   pytest -m integration tests/integration/
"""

from __future__ import annotations

import pytest

from pyvrmapi import RequestConfig, VRMClient, extract_user_data
from pyvrmapi.models import StatusColor

pytestmark = pytest.mark.integration


class TestUsers:
    """Users endpoints."""

    @pytest.mark.asyncio
    async def test_users_me(self, client: VRMClient) -> None:
        """The token belongs to a user."""
        envelope = await client.call_users_api()

        assert envelope.success is True
        user = extract_user_data(envelope.data)
        assert user is not None
        assert user.id is not None

    @pytest.mark.asyncio
    async def test_user_installations(self, client: VRMClient, user_id: str) -> None:
        """The user has at least one installation."""
        result = await client.query(
            RequestConfig(api_type="users", usersQuery="installations", idUser=user_id)
        )

        assert result.envelope is not None
        assert result.envelope.success is True
        assert result.status.installation_count >= 1


class TestInstallations:
    """Installations endpoints."""

    @pytest.mark.asyncio
    async def test_basic(self, client: VRMClient, site_id: str) -> None:
        """Basic installation info is available."""
        envelope = await client.call_installations_api(site_id, "basic")

        assert envelope.success is True
        assert envelope.data["success"] is True

    @pytest.mark.asyncio
    async def test_stats_today(self, client: VRMClient, site_id: str) -> None:
        """Today's stats produce a status line."""
        result = await client.query(
            RequestConfig(
                installations="stats",
                site_id=site_id,
                stats_interval="hours",
                time_start="bod",
                time_end="eod",
            )
        )

        assert result.envelope is not None
        assert result.envelope.success is True
        assert result.status.color in (StatusColor.GREEN, StatusColor.YELLOW)

    @pytest.mark.asyncio
    async def test_dynamic_ess_settings(self, client: VRMClient, site_id: str) -> None:
        """Dynamic ESS settings are readable (not every site has them)."""
        result = await client.query(
            RequestConfig(installations="dynamic-ess-settings", site_id=site_id)
        )

        assert result.envelope is not None
        assert result.envelope.status in (200, 403, 404)
