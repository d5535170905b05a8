"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests. It sets
the environment before any import that might build settings, and exposes the
fakes from ``tests.fakes`` as fixtures.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_RATE_LIMIT_REQUESTS", "3")
os.environ.setdefault("APP_RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("SCRAPER_BASE_URL", "http://scraper.test")
os.environ.setdefault("SCRAPER_TIMEOUT_SECONDS", "2")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date, timedelta

import pytest

from easyrest_pricing.adapters.price_source.base import AbstractPriceSource
from easyrest_pricing.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from easyrest_pricing.core.app_factory import create_app
from tests.fakes import FakeClock, FakePriceSource


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_source() -> FakePriceSource:
    return FakePriceSource()


@pytest.fixture
def stay() -> dict:
    """A valid two-night stay starting next week."""
    checkin = date.today() + timedelta(days=7)
    return {
        "checkin": checkin.isoformat(),
        "checkout": (checkin + timedelta(days=2)).isoformat(),
        "adults": 2,
        "children": 0,
        "currency": "eur",
    }


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"X-API-Key": "test-api-key-123"}


@pytest.fixture
def make_app(fake_clock):
    """Build an isolated app around a fake price source and clock."""

    def _make(source: AbstractPriceSource | None = None, limit: int = 3):
        return create_app(
            price_source=source if source is not None else FakePriceSource(),
            rate_limiter=InMemoryRateLimitStore(limit=limit, window_seconds=60, clock=fake_clock),
        )

    return _make
