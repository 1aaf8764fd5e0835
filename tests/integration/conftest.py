"""Shared fixtures for integration tests."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from dotenv import load_dotenv

from pyvrmapi import VRMClient

# Load .env file before running tests
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

# Load credentials from environment
VRM_API_TOKEN = os.getenv("VRM_API_TOKEN")
VRM_TEST_SITE_ID = os.getenv("VRM_TEST_SITE_ID")
VRM_TEST_USER_ID = os.getenv("VRM_TEST_USER_ID")


@pytest.fixture(scope="function")
async def client() -> AsyncGenerator[VRMClient, None]:
    """Create a client for live API testing.

    The query rate limit is disabled; each test makes one or two calls.
    """
    if not VRM_API_TOKEN:
        pytest.skip("Live API credentials not configured (VRM_API_TOKEN)")

    async with VRMClient(VRM_API_TOKEN, min_request_interval=0) as client:
        yield client


@pytest.fixture
def site_id() -> str:
    """Installation used by the live tests."""
    if not VRM_TEST_SITE_ID:
        pytest.skip("VRM_TEST_SITE_ID not configured")
    return VRM_TEST_SITE_ID


@pytest.fixture
def user_id() -> str:
    """User whose installations are listed by the live tests."""
    if not VRM_TEST_USER_ID:
        pytest.skip("VRM_TEST_USER_ID not configured")
    return VRM_TEST_USER_ID
