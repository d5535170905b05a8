import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from easyrest_pricing.core.auth import verify_api_key
from easyrest_pricing.core.config import settings
from easyrest_pricing.core.errors import ServiceDrainingError
from easyrest_pricing.core.rate_limit import enforce_rate_limit
from easyrest_pricing.schemas.price import PriceQuery, PriceResponse
from easyrest_pricing.services.fetch_service import FetchService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Price"])


def get_fetch_service(request: Request) -> FetchService:
    return request.app.state.fetch_service


async def ensure_accepting(request: Request) -> None:
    """Refuse new price requests once graceful shutdown has begun."""
    lifecycle = request.app.state.lifecycle
    if lifecycle is not None and not lifecycle.accepting:
        raise ServiceDrainingError(
            code="service_draining",
            message="Service is shutting down. Please retry shortly.",
        )


@router.post(
    "/price",
    response_model=PriceResponse,
    responses={502: {"model": PriceResponse, "description": "Price source failure"}},
    dependencies=[
        Depends(verify_api_key),
        Depends(ensure_accepting),
        Depends(enforce_rate_limit),
    ],
)
async def get_price(
    query: PriceQuery,
    service: FetchService = Depends(get_fetch_service),
) -> PriceResponse | JSONResponse:
    """Quote the total price of a stay.

    Single occupancy is priced as a double room (reported in ``warnings``).
    Successful quotes are cached; the ``source`` field tells whether the price
    is ``live`` or from the ``cache``. Successful quotes also carry the
    direct-booking price after ``APP_DISCOUNT_PERCENT``.

    Returns:
        PriceResponse: 200 with the price, or 502 with ``success=false`` and a
            stable ``error_code`` (timeout, navigation_failed, parse_failed,
            unknown) when the price source failed.
    """
    priced_query, warnings = query.with_room_rules()
    result = await service.fetch(priced_query)
    response = PriceResponse.from_result(
        result,
        nights=priced_query.nights,
        warnings=warnings,
        discount_percent=settings.app.discount_percent,
    )

    if result.is_error():
        logger.info(
            "price.request_failed",
            extra={"error_code": result.error_code, "nights": priced_query.nights},
        )
        return JSONResponse(status_code=502, content=response.model_dump(mode="json"))

    return response
