from fastapi import APIRouter, Depends, Request

from easyrest_pricing.core.auth import verify_api_key
from easyrest_pricing.core.config import settings

router = APIRouter(tags=["Cache"], dependencies=[Depends(verify_api_key)])


@router.get("/cache/stats")
def cache_stats(request: Request) -> dict:
    """Cache metrics alongside the configured TTL and rate limit."""
    return {
        **request.app.state.fetch_service.cache_stats(),
        "rate_limit": settings.app.rate_limit_requests,
        "rate_limit_window_seconds": settings.app.rate_limit_window_seconds,
    }


@router.delete("/cache")
def clear_cache(request: Request) -> dict:
    """Drop every cached price."""
    return {"cleared": request.app.state.fetch_service.clear_cache()}
