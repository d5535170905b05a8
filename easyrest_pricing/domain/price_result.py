"""Immutable outcome of a price lookup.

A PriceResult is either a PriceSuccess (a quoted total) or a PriceFailure
(a machine-readable error code plus a human-readable message). Both variants
expose the same seven fields so callers and serializers can treat them
uniformly, but they can only be built through ``success()``, ``error()`` and
``from_record()``.

Records produced by ``to_record()`` are plain JSON-compatible dicts and are
what the cache stores:

    {"success": true, "total_price": 412.5, "currency": "EUR", "source": "live",
     "tax_inclusive": true, "error_code": null, "error_message": null}
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, ClassVar, Mapping

DEFAULT_CURRENCY = "EUR"
DEFAULT_SOURCE = "easyrest"
SOURCE_LIVE = "live"
SOURCE_CACHE = "cache"

UNKNOWN_ERROR_CODE = "unknown"
UNKNOWN_ERROR_MESSAGE = "Unknown error"

_CENTS = Decimal("0.01")
_ZERO = Decimal("0.00")


def _coerce_price(value: Any) -> Decimal:
    """Round a price half-up to 2 decimals, coercing garbage to 0.00."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            return _ZERO
    if not amount.is_finite():
        return _ZERO
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _normalize_currency(value: Any) -> str:
    currency = str(value or "").strip().upper()
    return currency or DEFAULT_CURRENCY


class _RecordMixin:
    __slots__ = ()

    success: bool
    total_price: Decimal
    currency: str
    source: str | None
    tax_inclusive: bool
    error_code: str | None
    error_message: str | None

    def is_success(self) -> bool:
        return self.success

    def is_error(self) -> bool:
        return not self.success

    def to_record(self) -> dict[str, Any]:
        """Export all seven fields as a JSON-compatible dict."""
        return {
            "success": self.success,
            "total_price": float(self.total_price),
            "currency": self.currency,
            "source": self.source,
            "tax_inclusive": self.tax_inclusive,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


@dataclass(frozen=True, slots=True)
class PriceSuccess(_RecordMixin):
    """A successfully quoted price."""

    total_price: Decimal
    currency: str = DEFAULT_CURRENCY
    source: str = DEFAULT_SOURCE
    tax_inclusive: bool = True

    success: ClassVar[bool] = True
    error_code: ClassVar[None] = None
    error_message: ClassVar[None] = None

    def with_source(self, source: str) -> PriceSuccess:
        """Return a copy tagged with a different provenance."""
        return dataclasses.replace(self, source=source)


@dataclass(frozen=True, slots=True)
class PriceFailure(_RecordMixin):
    """A failed lookup; price fields carry fixed neutral values."""

    error_code: str
    error_message: str

    success: ClassVar[bool] = False
    total_price: ClassVar[Decimal] = _ZERO
    currency: ClassVar[str] = DEFAULT_CURRENCY
    source: ClassVar[None] = None
    tax_inclusive: ClassVar[bool] = False


PriceResult = PriceSuccess | PriceFailure


def success(
    price: Any,
    currency: str = DEFAULT_CURRENCY,
    source: str = DEFAULT_SOURCE,
    tax_inclusive: bool = True,
) -> PriceSuccess:
    """Build a successful result.

    ``price`` is rounded half-up to 2 decimals; values that are not numbers
    (None, "", "abc", NaN, inf) become 0.00 instead of raising.
    """
    return PriceSuccess(
        total_price=_coerce_price(price),
        currency=_normalize_currency(currency),
        source=source,
        tax_inclusive=bool(tax_inclusive),
    )


def error(code: str, message: str) -> PriceFailure:
    """Build a failed result."""
    return PriceFailure(error_code=str(code), error_message=str(message))


def from_record(data: Mapping[str, Any]) -> PriceResult:
    """Rebuild a result from a ``to_record()`` dict.

    Missing optional fields are defaulted so that older or partial cache
    entries still load: currency "EUR", source "cache", tax_inclusive True.
    """
    if data.get("success"):
        tax_inclusive = data.get("tax_inclusive")
        return success(
            data.get("total_price", 0),
            currency=data.get("currency") or DEFAULT_CURRENCY,
            source=data.get("source") or SOURCE_CACHE,
            tax_inclusive=True if tax_inclusive is None else tax_inclusive,
        )
    return error(
        data.get("error_code") or UNKNOWN_ERROR_CODE,
        data.get("error_message") or UNKNOWN_ERROR_MESSAGE,
    )
