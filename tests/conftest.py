"""Pytest configuration and fixtures for pyvrmapi tests."""

from __future__ import annotations

import json
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from aioresponses import aioresponses

# Load sample API responses
SAMPLES_DIR = Path(__file__).parent / "samples"


def load_sample(filename: str) -> dict[str, Any]:
    """Load a sample JSON response file."""
    file_path = SAMPLES_DIR / filename
    with open(file_path, encoding="utf-8") as f:
        result: dict[str, Any] = json.load(f)
        return result


@pytest.fixture
def users_me_response() -> dict[str, Any]:
    """Sample users/me response."""
    return load_sample("users_me.json")


@pytest.fixture
def users_installations_response() -> dict[str, Any]:
    """Sample users/{id}/installations response."""
    return load_sample("users_installations.json")


@pytest.fixture
def stats_response() -> dict[str, Any]:
    """Sample stats response with battery SOC totals."""
    return load_sample("stats_battery_soc.json")


@pytest.fixture
def dynamic_ess_settings_response() -> dict[str, Any]:
    """Sample dynamic-ess-settings response."""
    return load_sample("dynamic_ess_settings.json")


@pytest.fixture
def dynamic_ess_prices_response() -> dict[str, Any]:
    """Sample stats response for type=dynamic_ess (buy/sell price series)."""
    return load_sample("dynamic_ess_prices.json")


@pytest.fixture
def temperature_widget_response() -> dict[str, Any]:
    """Sample TempSummaryAndGraph widget response for instance 20."""
    return load_sample("widget_temperature.json")


@pytest.fixture
def ev_charger_widget_response() -> dict[str, Any]:
    """Sample EvChargerSummary widget response for instance 40."""
    return load_sample("widget_ev_charger.json")


@pytest.fixture
def empty_widget_response() -> dict[str, Any]:
    """Sample widget response without device entries (wrong instance)."""
    return load_sample("widget_empty.json")


@pytest.fixture
def mocked_api() -> Generator[aioresponses, None, None]:
    """Create aioresponses mock for HTTP requests.

    This fixture provides a context manager for mocking aiohttp requests
    using the aioresponses library.
    """
    with aioresponses() as m:
        yield m
