"""Pydantic schemas for price queries and responses."""

from __future__ import annotations

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

from easyrest_pricing.domain.price_result import PriceResult

MAX_NIGHTS = 30
MAX_GUESTS = 4
MAX_CHILDREN = 3

SINGLE_OCCUPANCY_WARNING = "Single occupancy priced as double room"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CENT = Decimal("0.01")


class PriceQuery(BaseModel):
    """Stay parameters sent to the price source.

    Validation mirrors what the booking engine accepts: real dates, a stay of
    1 to 30 nights starting today or later, and at most 4 guests.
    """

    checkin: date = Field(..., description="Check-in date (YYYY-MM-DD).")
    checkout: date = Field(..., description="Check-out date (YYYY-MM-DD), after check-in.")
    adults: int = Field(2, ge=1, description="Number of adults (at least 1).")
    children: int = Field(0, ge=0, le=MAX_CHILDREN, description="Number of children (0-3).")
    currency: str = Field("EUR", min_length=3, max_length=3, description="ISO 4217 currency code.")
    url: str | None = Field(
        None,
        description="Booking.com hotel URL; the configured default is used when omitted.",
    )
    lang: str = Field("fr", max_length=8, description="Language of the scraped page.")

    @field_validator("checkin", "checkout", mode="before")
    @classmethod
    def _require_iso_format(cls, value: Any) -> Any:
        if isinstance(value, str) and not _ISO_DATE.match(value):
            raise ValueError("Invalid date format. Use YYYY-MM-DD.")
        return value

    @field_validator("currency")
    @classmethod
    def _uppercase_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("url")
    @classmethod
    def _require_booking_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("Invalid URL format")
        if not parsed.hostname.endswith("booking.com"):
            raise ValueError("URL must be a booking.com URL")
        return value

    @model_validator(mode="after")
    def _check_stay(self) -> "PriceQuery":
        if self.checkout <= self.checkin:
            raise ValueError("Check-out date must be after check-in date.")
        if self.checkin < date.today():
            raise ValueError("Check-in date cannot be in the past.")
        if self.nights > MAX_NIGHTS:
            raise ValueError(f"Maximum stay is {MAX_NIGHTS} nights.")
        if self.adults + self.children > MAX_GUESTS:
            raise ValueError(f"Maximum {MAX_GUESTS} guests allowed.")
        return self

    @property
    def nights(self) -> int:
        return (self.checkout - self.checkin).days

    def with_room_rules(self) -> tuple["PriceQuery", list[str]]:
        """Apply occupancy rules before pricing.

        A single guest is priced as a double room.

        Returns:
            Tuple of (query to price, warnings to surface to the client).
        """
        if self.adults + self.children == 1:
            return self.model_copy(update={"adults": 2, "children": 0}), [SINGLE_OCCUPANCY_WARNING]
        return self, []

    def cache_params(self) -> dict[str, Any]:
        """Normalized, JSON-compatible parameters used for cache keys."""
        return self.model_dump(mode="json")


class PriceResponse(BaseModel):
    """Wire shape of a price lookup: the PriceResult record plus stay context."""

    success: bool = Field(..., description="True when a price was obtained.")
    total_price: float = Field(..., description="Total stay price, 2 decimals (0 on error).")
    currency: str = Field(..., description="Currency code of total_price.")
    source: str | None = Field(
        None,
        description="Provenance of the price: 'live' or 'cache' (null on error).",
    )
    tax_inclusive: bool = Field(..., description="Whether taxes are included in total_price.")
    error_code: str | None = Field(
        None,
        description="timeout | navigation_failed | parse_failed | unknown (null on success).",
    )
    error_message: str | None = Field(None, description="Human-readable error (null on success).")
    nights: int = Field(..., description="Number of nights priced.")
    warnings: list[str] = Field(
        default_factory=list,
        description="Notes about how the query was priced (e.g., single occupancy).",
    )

    booking_price: float | None = Field(
        None, description="Booking.com price for the stay (null on error)."
    )
    direct_price: float | None = Field(
        None, description="Price when booking direct, after the discount (null on error)."
    )
    discount: float | None = Field(None, description="Direct-booking discount in percent.")
    price_per_night: float | None = Field(
        None, description="direct_price divided by the number of nights."
    )
    savings: float | None = Field(
        None, description="booking_price minus direct_price (null on error)."
    )

    @classmethod
    def from_result(
        cls,
        result: PriceResult,
        *,
        nights: int,
        warnings: list[str] | None = None,
        discount_percent: float | None = None,
    ) -> "PriceResponse":
        """Build the wire response, adding direct-booking figures to a success.

        Amounts are derived from the unrounded direct price and each one is
        rounded half-up to cents.
        """
        data = {**result.to_record(), "nights": nights, "warnings": warnings or []}
        if discount_percent is not None and not result.is_error():
            data.update(direct_booking_figures(result.total_price, discount_percent, nights))
        return cls.model_validate(data)


def _cents(amount: Decimal) -> float:
    return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))


def direct_booking_figures(
    booking_price: Decimal, discount_percent: float, nights: int
) -> dict[str, float]:
    """Discounted price, savings and per-night price for a quoted stay."""
    percent = Decimal(str(discount_percent))
    direct = booking_price * (100 - percent) / 100
    return {
        "booking_price": _cents(booking_price),
        "direct_price": _cents(direct),
        "discount": float(percent),
        "price_per_night": _cents(direct / max(1, nights)),
        "savings": _cents(booking_price - direct),
    }
