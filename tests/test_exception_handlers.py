"""Tests for global exception handlers.

Every failure leaves the API as ``{"error": {code, message, request_id}}``
with the status code its error type maps to, and nothing internal leaks.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from easyrest_pricing.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitedError,
    ServiceDrainingError,
    ValidationAppError,
)
from easyrest_pricing.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
)


class _Body(BaseModel):
    nights: int = Field(..., ge=1)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/validation")
    async def raise_validation():
        raise ValidationAppError(
            code="scraper_unknown_provider",
            message="Unknown price source provider",
            details={"field": "SCRAPER_PROVIDER"},
        )

    @app.get("/auth")
    async def raise_auth():
        raise AuthenticationAppError(code="invalid_api_key", message="Invalid or missing API key")

    @app.get("/limited")
    async def raise_limited():
        raise RateLimitedError(reset_at=1_060.4, retry_after_seconds=42, limit=10)

    @app.get("/draining")
    async def raise_draining():
        raise ServiceDrainingError(code="service_draining", message="Shutting down")

    @app.post("/body")
    async def echo(body: _Body):
        return body

    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    def test_validation_error_returns_400_with_details(self, client: TestClient) -> None:
        response = client.get("/validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "scraper_unknown_provider"
        assert error["details"] == {"field": "SCRAPER_PROVIDER"}
        assert "request_id" in error

    def test_authentication_error_returns_403(self, client: TestClient) -> None:
        response = client.get("/auth")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "invalid_api_key"
        assert "details" not in response.json()["error"]

    def test_rate_limited_returns_429_with_headers(self, client: TestClient) -> None:
        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1060"
        error = response.json()["error"]
        assert error["code"] == "rate_limited"
        assert error["details"]["retry_after"] == 42

    @patch("easyrest_pricing.core.exception_handlers.settings")
    def test_rate_limit_headers_can_be_disabled(self, mock_settings, client: TestClient) -> None:
        mock_settings.app.rate_limit_include_headers = False

        response = client.get("/limited")

        assert response.status_code == 429
        assert "Retry-After" not in response.headers

    def test_draining_returns_503_and_closes_connection(self, client: TestClient) -> None:
        response = client.get("/draining")

        assert response.status_code == 503
        assert response.headers["Connection"] == "close"
        assert response.json()["error"]["code"] == "service_draining"


class TestRequestValidationHandler:
    def test_body_errors_become_400_validation_error(self, client: TestClient) -> None:
        response = client.post("/body", json={"nights": 0})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert error["details"]["errors"][0]["loc"] == ["body", "nights"]
        assert error["message"] == error["details"]["errors"][0]["msg"]

    def test_submitted_values_are_not_echoed(self, client: TestClient) -> None:
        response = client.post("/body", json={"nights": "secret-looking-value"})

        assert response.status_code == 400
        assert "secret-looking-value" not in response.text


class TestGeneralExceptionHandler:
    def test_returns_generic_500_without_internals(self) -> None:
        request = AsyncMock()
        request.url.path = "/v1/price"
        request.method = "POST"

        response = asyncio.run(
            general_exception_handler(request, RuntimeError("scraper socket exploded"))
        )

        body = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert body["error"]["code"] == "internal_server_error"
        assert "socket" not in body["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()
        assert "Traceback" not in bytes(response.body).decode()


def test_setup_registers_handlers_and_is_repeatable() -> None:
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
    assert Exception in app.exception_handlers
