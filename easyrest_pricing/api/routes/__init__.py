from __future__ import annotations

from easyrest_pricing.api.routes.cache import router as cache_router
from easyrest_pricing.api.routes.health import router as health_router
from easyrest_pricing.api.routes.price import router as price_router

__all__ = ["cache_router", "health_router", "price_router"]
