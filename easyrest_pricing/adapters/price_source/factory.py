"""Factory pattern for creating price source instances."""

from easyrest_pricing.adapters.price_source.base import AbstractPriceSource
from easyrest_pricing.adapters.price_source.scraper_client import ScraperServiceClient
from easyrest_pricing.core.config import settings
from easyrest_pricing.core.errors import ValidationAppError


def create_price_source() -> AbstractPriceSource:
    """Factory function to instantiate the configured price source.

    Reads configuration from easyrest_pricing.core.config.settings.

    Returns:
        AbstractPriceSource: Configured price source instance.

    Raises:
        ValidationAppError: If the provider is unknown or misconfigured.
    """
    provider = settings.scraper.provider.lower()

    if provider == "http":
        if not settings.scraper.base_url:
            raise ValidationAppError(
                code="scraper_missing_base_url",
                message="HTTP price source requires SCRAPER_BASE_URL environment variable",
            )
        return ScraperServiceClient(
            base_url=settings.scraper.base_url,
            token=settings.scraper.token,
            default_hotel_url=settings.scraper.default_hotel_url,
            timeout_seconds=settings.scraper.timeout_seconds,
        )

    raise ValidationAppError(
        code="scraper_unknown_provider",
        message=(
            f"Unknown price source provider: '{provider}'. Supported providers: http"
        ),
    )
