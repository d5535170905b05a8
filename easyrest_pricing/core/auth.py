"""API Key authentication logic.

Callers of the price API (the WordPress site, admin tools) authenticate with
an ``X-API-Key`` header. Keys are validated against a comma-separated list
from environment variables (APP_API_KEYS).
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header

from easyrest_pricing.core.config import settings
from easyrest_pricing.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 , key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def hash_api_key(api_key: str) -> str:
    """Short SHA-256 fingerprint of a key, safe to log."""
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str | None) -> None:
    """Validate that provided API key matches configured keys.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided_key: API key to validate (None when the header is missing).

    Raises:
        AuthenticationAppError: If the key is missing or invalid, or if
            authentication is required but no keys are configured.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "auth.failed",
            extra={"reason": "api_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.failed", extra={"reason": "missing_api_key"})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    if provided_key not in valid_keys:
        logger.warning(
            "auth.failed",
            extra={
                "reason": "invalid_api_key",
                "api_key_hash": hash_api_key(provided_key),
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for API key authentication.

    Failures raise AuthenticationAppError, which the global exception handler
    turns into a 403 with the standard error body.

    Usage:
        @router.post("/protected", dependencies=[Depends(verify_api_key)])
    """
    validate_api_key(x_api_key)
    if x_api_key and settings.app.api_key_required:
        logger.debug("auth.success", extra={"api_key_hash": hash_api_key(x_api_key)})
