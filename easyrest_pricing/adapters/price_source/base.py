from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from easyrest_pricing.schemas.price import PriceQuery


@dataclass(frozen=True)
class SourcePrice:
	"""Raw quote returned by a price source."""

	price: Decimal | float
	currency: str
	tax_inclusive: bool = True


class AbstractPriceSource(ABC):
	"""Interface for external systems that quote a stay price."""

	@abstractmethod
	async def fetch_price(self, query: PriceQuery) -> SourcePrice:
		"""Fetch the total price for a stay.

		Args:
			query: Validated stay parameters.

		Returns:
			SourcePrice: Quoted total, its currency and tax flag.

		Raises:
			PriceSourceError: With code timeout, navigation_failed, parse_failed
				or unknown when no price could be produced.
		"""
		...

	async def close(self) -> None:
		"""Release external resources (HTTP pools, browser sessions)."""

	@property
	def is_active(self) -> bool:
		"""Whether the source currently holds live resources."""
		return True
