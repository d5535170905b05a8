"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    limit: int
    reset_at: float
    retry_after: int
    timeout_seconds: float
    request_id: str
    errors: list[dict[str, Any]]
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


PriceSourceErrorCode = Literal["timeout", "navigation_failed", "parse_failed", "unknown"]

PRICE_SOURCE_ERROR_CODES: tuple[str, ...] = (
    "timeout",
    "navigation_failed",
    "parse_failed",
    "unknown",
)


class PriceSourceError(AppError):
    """Raised by price source adapters when a quote cannot be produced.

    ``code`` is one of PRICE_SOURCE_ERROR_CODES; FetchService turns it into a
    PriceResult error and never lets it escape further.
    """


class RateLimitedError(AppError):
    """Raised when a client exceeded its request budget for the window."""

    def __init__(
        self,
        *,
        reset_at: float,
        retry_after_seconds: int,
        limit: int,
        remaining: int = 0,
        message: str = "Too many requests. Please wait a moment and try again.",
    ) -> None:
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
        self.remaining = remaining
        super().__init__(
            code="rate_limited",
            message=message,
            details={
                "limit": limit,
                "reset_at": reset_at,
                "retry_after": retry_after_seconds,
            },
        )


class ServiceDrainingError(AppError):
    """Raised when a request arrives after graceful shutdown has begun."""


class ShutdownForcedError(AppError):
    """Graceful shutdown missed its deadline; the process is terminated."""
