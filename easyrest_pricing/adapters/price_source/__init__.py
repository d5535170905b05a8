"""Price source adapter layer - abstracts over external price providers."""

from easyrest_pricing.adapters.price_source.base import AbstractPriceSource, SourcePrice
from easyrest_pricing.adapters.price_source.factory import create_price_source
from easyrest_pricing.adapters.price_source.scraper_client import ScraperServiceClient

__all__ = [
    "AbstractPriceSource",
    "ScraperServiceClient",
    "SourcePrice",
    "create_price_source",
]
