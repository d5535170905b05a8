"""Scraper microservice price source adapter."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from easyrest_pricing.adapters.price_source.base import AbstractPriceSource, SourcePrice
from easyrest_pricing.core.errors import PriceSourceError
from easyrest_pricing.schemas.price import PriceQuery

logger = logging.getLogger(__name__)

PRICE_ENDPOINT = "/booking/price"
TOKEN_HEADER = "X-EasyRest-Token"

# Scraper response codes -> PriceResult error codes
_REMOTE_CODE_MAP = {
    "PRICE_NOT_FOUND": "parse_failed",
    "SCRAPE_FAILED": "navigation_failed",
    "SCRAPE_ERROR": "navigation_failed",
    "BLOCKED": "navigation_failed",
    "INVALID_URL": "navigation_failed",
    "MISSING_URL": "navigation_failed",
}


class ScraperServiceClient(AbstractPriceSource):
    """Client for the browser-automation scraper microservice.

    The microservice owns the headless browser; this client only speaks its
    HTTP contract (``POST /booking/price``) through a pooled httpx client.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        default_hotel_url: str | None = None,
        timeout_seconds: float = 40.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            base_url: Scraper microservice base URL.
            token: Shared secret sent in the X-EasyRest-Token header.
            default_hotel_url: Hotel URL used when a query has none.
            timeout_seconds: Timeout for requests in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        headers = {TOKEN_HEADER: token} if token else {}
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self.default_hotel_url = default_hotel_url

    @property
    def is_active(self) -> bool:
        return not self.client.is_closed

    def _build_payload(self, query: PriceQuery) -> dict[str, Any]:
        return {
            "url": query.url or self.default_hotel_url,
            "checkin": query.checkin.isoformat(),
            "checkout": query.checkout.isoformat(),
            "adults": query.adults,
            "children": query.children,
            "currency": query.currency,
            "lang": query.lang,
        }

    async def fetch_price(self, query: PriceQuery) -> SourcePrice:
        """Ask the scraper for the stay price.

        Args:
            query: Validated stay parameters.

        Returns:
            SourcePrice parsed from the scraper response.

        Raises:
            PriceSourceError: timeout, navigation_failed, parse_failed or unknown.
        """
        try:
            response = await self.client.post(PRICE_ENDPOINT, json=self._build_payload(query))
        except httpx.TimeoutException as exc:
            raise PriceSourceError(
                code="timeout",
                message="Price source did not answer in time",
            ) from exc
        except httpx.TransportError as exc:
            raise PriceSourceError(
                code="navigation_failed",
                message=f"Price source unreachable: {exc.__class__.__name__}",
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise PriceSourceError(
                code="parse_failed",
                message=f"Price source returned a non-JSON body (HTTP {response.status_code})",
            ) from exc

        if not isinstance(data, dict):
            raise PriceSourceError(
                code="parse_failed",
                message="Price source returned an unexpected payload",
            )

        if response.status_code != 200 or not data.get("success"):
            remote_code = str(data.get("code") or "")
            code = _REMOTE_CODE_MAP.get(remote_code.upper(), "unknown")
            logger.warning(
                "price_source.remote_error",
                extra={
                    "status_code": response.status_code,
                    "remote_code": remote_code,
                    "error_code": code,
                },
            )
            raise PriceSourceError(
                code=code,
                message=str(
                    data.get("message")
                    or data.get("error")
                    or f"Price source error (HTTP {response.status_code})"
                ),
            )

        return SourcePrice(
            price=self._parse_price(data.get("price")),
            currency=str(data.get("currency") or query.currency),
            tax_inclusive=bool(data.get("tax_inclusive", True)),
        )

    @staticmethod
    def _parse_price(raw: Any) -> Decimal:
        if isinstance(raw, bool) or raw is None:
            raise PriceSourceError(code="parse_failed", message="Price missing from response")
        try:
            price = Decimal(str(raw))
        except (InvalidOperation, ValueError) as exc:
            raise PriceSourceError(
                code="parse_failed",
                message="Price is not a number",
            ) from exc
        if not price.is_finite() or price <= 0:
            raise PriceSourceError(code="parse_failed", message="Price is not a positive amount")
        return price

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("price_source.closed")
