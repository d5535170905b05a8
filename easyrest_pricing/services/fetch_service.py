"""Price fetch service orchestrating cache lookups and the external price source.

This service is the boundary between the HTTP layer and the scraper. It:
- Looks prices up in the cache by a hash of the normalized query
- Calls the price source on a miss, bounded by a timeout
- Wraps every outcome into an immutable PriceResult
- Caches successful results only (transient failures are never cached)

No exception raised by the price source escapes ``fetch``.
"""

from __future__ import annotations

import asyncio
import logging

from easyrest_pricing.adapters.price_source.base import AbstractPriceSource
from easyrest_pricing.core.errors import PRICE_SOURCE_ERROR_CODES, PriceSourceError
from easyrest_pricing.domain import price_result
from easyrest_pricing.domain.price_result import PriceResult
from easyrest_pricing.schemas.price import PriceQuery
from easyrest_pricing.utils.simple_cache import SimpleTTLCache, build_cache_key

logger = logging.getLogger(__name__)


class FetchService:
    """Service returning a PriceResult for a stay query.

    Attributes:
        source: Price source adapter (scraper microservice client).
        cache: TTL cache storing PriceResult records by query hash.
        cache_ttl_seconds: TTL applied to successful results.
        timeout_seconds: Upper bound for one price source call.
    """

    def __init__(
        self,
        source: AbstractPriceSource,
        cache: SimpleTTLCache,
        *,
        cache_ttl_seconds: int | None = None,
        timeout_seconds: float = 40.0,
    ) -> None:
        """Initialize fetch service with dependencies.

        Args:
            source: Configured price source instance.
            cache: Cache instance for storing results.
            cache_ttl_seconds: TTL for cached prices (defaults to the cache's own).
            timeout_seconds: Timeout guarding each price source call.
        """
        self.source = source
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.timeout_seconds = timeout_seconds

    def _get_from_cache(self, cache_key: str) -> PriceResult | None:
        """Retrieve a cached price, re-tagged as coming from the cache.

        Args:
            cache_key: Hash key for cache lookup.

        Returns:
            Cached PriceResult with source="cache", or None if not found.
        """
        record = self.cache.get(cache_key)
        if not record:
            return None

        cached = price_result.from_record(record)
        if cached.is_error():
            # Error records are never served from cache
            return None
        return cached.with_source(price_result.SOURCE_CACHE)

    async def _fetch_live(self, query: PriceQuery) -> PriceResult:
        """Call the price source and convert the outcome into a PriceResult."""
        try:
            quote = await asyncio.wait_for(
                self.source.fetch_price(query),
                timeout=self.timeout_seconds,
            )
        except PriceSourceError as exc:
            code = exc.code if exc.code in PRICE_SOURCE_ERROR_CODES else "unknown"
            logger.warning(
                "price.fetch_failed",
                extra={"error_code": code, "error_message": exc.message},
            )
            return price_result.error(code, exc.message)
        except asyncio.TimeoutError:
            logger.warning(
                "price.fetch_timeout",
                extra={"timeout_seconds": self.timeout_seconds},
            )
            return price_result.error(
                "timeout",
                f"Price source timed out after {self.timeout_seconds:g}s",
            )
        except Exception as exc:
            logger.error(
                "price.fetch_unexpected_error",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return price_result.error("unknown", "Price not available for these dates")

        return price_result.success(
            quote.price,
            currency=quote.currency,
            source=price_result.SOURCE_LIVE,
            tax_inclusive=quote.tax_inclusive,
        )

    async def fetch(self, query: PriceQuery) -> PriceResult:
        """Return the price for ``query``, from cache when possible.

        Args:
            query: Validated stay parameters (room rules already applied).

        Returns:
            PriceResult; errors are values, never raised.
        """
        cache_key = build_cache_key(query.cache_params())

        cached = self._get_from_cache(cache_key)
        if cached is not None:
            logger.info("price.cache_hit", extra={"cache_key": cache_key[:16]})
            return cached

        result = await self._fetch_live(query)

        if result.is_success():
            self.cache.set(cache_key, result.to_record(), ttl_seconds=self.cache_ttl_seconds)
            logger.info(
                "price.fetched",
                extra={
                    "cache_key": cache_key[:16],
                    "total_price": str(result.total_price),
                    "currency": result.currency,
                },
            )

        return result

    def clear_cache(self) -> int:
        """Drop every cached price; returns how many entries were removed."""
        cleared = self.cache.clear()
        logger.info("price.cache_cleared", extra={"entries": cleared})
        return cleared

    def cache_stats(self) -> dict[str, int | float | None]:
        return self.cache.stats()
