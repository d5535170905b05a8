from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (components, middleware, handlers, routers) so
tests can build isolated apps with fake price sources and clocks.
"""

from fastapi import FastAPI

from easyrest_pricing.adapters.price_source.base import AbstractPriceSource
from easyrest_pricing.adapters.price_source.factory import create_price_source
from easyrest_pricing.adapters.rate_limit.base import AbstractRateLimitStore
from easyrest_pricing.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from easyrest_pricing.api.routes import cache_router, health_router, price_router
from easyrest_pricing.core.config import settings
from easyrest_pricing.core.exception_handlers import setup_exception_handlers
from easyrest_pricing.core.logging import configure_logging
from easyrest_pricing.core.middleware import request_id_middleware
from easyrest_pricing.core.openapi import apply_openapi_customizations
from easyrest_pricing.services.fetch_service import FetchService
from easyrest_pricing.utils.simple_cache import SimpleTTLCache

API_VERSION = "1.0.0"


def create_app(
    *,
    price_source: AbstractPriceSource | None = None,
    cache: SimpleTTLCache | None = None,
    rate_limiter: AbstractRateLimitStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Components not passed in are built from settings. They are exposed on
    ``app.state`` (``price_source``, ``fetch_service``, ``rate_limiter``) so
    that the ServerLifecycle can sweep and release them; ``app.state.lifecycle``
    is set once a lifecycle takes ownership of the app.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="EasyRest Pricing API",
        description=(
            "Rate-limited price quotes for EasyRest stays. Prices come from the "
            "Booking.com scraper microservice, are cached for a few minutes and "
            "returned as a stable record (success, total_price, currency, source, "
            "tax_inclusive, error_code, error_message). Requires X-API-Key."
        ),
        version=API_VERSION,
    )

    if price_source is None:
        price_source = create_price_source()
    if cache is None:
        cache = SimpleTTLCache(
            ttl_seconds=settings.app.cache_ttl_seconds,
            max_entries=settings.app.cache_max_entries,
        )
    if rate_limiter is None:
        rate_limiter = InMemoryRateLimitStore(
            limit=settings.app.rate_limit_requests,
            window_seconds=settings.app.rate_limit_window_seconds,
            grace_seconds=settings.app.rate_limit_grace_seconds,
        )

    app.state.price_source = price_source
    app.state.fetch_service = FetchService(
        source=price_source,
        cache=cache,
        cache_ttl_seconds=settings.app.cache_ttl_seconds,
        timeout_seconds=settings.scraper.timeout_seconds,
    )
    app.state.rate_limiter = rate_limiter
    app.state.lifecycle = None

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(price_router, prefix="/v1")
    app.include_router(cache_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
