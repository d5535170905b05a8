"""Rate limiting dependency for FastAPI routes.

This module wires the rate limit store into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the store lives on ``app.state`` behind an abstract interface.
- No ambient globals: the store is owned by the app and swept by the lifecycle.

Rate limiting strategy:
- Per-client window limit, keyed by API key when present.
- Otherwise keyed by client IP (proxy headers honored when trusted).
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, Request

from easyrest_pricing.adapters.rate_limit.base import AbstractRateLimitStore
from easyrest_pricing.core.config import settings
from easyrest_pricing.core.errors import RateLimitedError

logger = logging.getLogger(__name__)

# Checked in order; the first present header wins
_PROXY_IP_HEADERS = (
    "cf-connecting-ip",
    "x-real-ip",
    "client-ip",
    "x-forwarded-for",
)


def get_rate_limiter(request: Request) -> AbstractRateLimitStore:
    """Return the app-owned rate limit store."""
    return request.app.state.rate_limiter


def client_ip(request: Request) -> str:
    """Best-effort client address for the request.

    Proxy headers are only consulted when APP_TRUST_PROXY_HEADERS is set;
    for comma-separated chains the first (originating) address is used.
    """
    if settings.app.trust_proxy_headers:
        for header in _PROXY_IP_HEADERS:
            value = request.headers.get(header)
            if value:
                return value.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    if x_api_key:
        return f"api_key:{x_api_key}"
    return f"ip:{client_ip(request)}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing secrets."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, counts one request against the caller's window. If the
    caller is over budget, raises RateLimitedError, which the exception
    handler turns into HTTP 429 with Retry-After.

    Args:
        request: FastAPI request.
        x_api_key: API key from X-API-Key header.

    Raises:
        RateLimitedError: When the caller exceeded its request budget.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = get_rate_limiter(request)
    key = _build_rate_limit_key(request, x_api_key)
    key_hash = _hash_limiter_key(key)
    key_type = "api_key" if x_api_key else "ip"

    result = limiter.check_and_increment(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": result.limit,
            "retry_after_s": retry_after,
        },
    )

    raise RateLimitedError(
        reset_at=result.reset_at,
        retry_after_seconds=retry_after,
        limit=result.limit,
        remaining=result.remaining,
    )
