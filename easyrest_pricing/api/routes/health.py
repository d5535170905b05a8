from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems to determine service health.
    Reports the lifecycle state (running/draining/stopped) and whether the
    price source still holds live resources.

    Returns:
        dict: status, lifecycle state and price_source_active flag.
    """

    lifecycle = request.app.state.lifecycle
    state = lifecycle.state.value if lifecycle is not None else "running"
    return {
        "status": "ok" if state == "running" else "shutting_down",
        "lifecycle": state,
        "price_source_active": request.app.state.price_source.is_active,
    }
