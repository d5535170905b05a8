"""Unit tests for the PriceResult value type."""

import dataclasses
from decimal import Decimal

import pytest

from easyrest_pricing.domain import price_result
from easyrest_pricing.domain.price_result import PriceFailure, PriceSuccess


class TestSuccessBuilder:
    """Tests for price_result.success()."""

    def test_rounds_half_up_to_two_decimals(self) -> None:
        assert price_result.success(12.345).total_price == Decimal("12.35")

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (2.675, "2.68"),
            ("0.005", "0.01"),
            (10, "10.00"),
            ("99.994", "99.99"),
            (Decimal("1.125"), "1.13"),
        ],
    )
    def test_rounding_cases(self, raw, expected) -> None:
        assert price_result.success(raw).total_price == Decimal(expected)

    @pytest.mark.parametrize("raw", [None, "", "abc", float("nan"), float("inf"), object()])
    def test_invalid_price_coerces_to_zero(self, raw) -> None:
        result = price_result.success(raw)

        assert result.is_success()
        assert result.total_price == Decimal("0.00")

    def test_uppercases_currency_and_applies_defaults(self) -> None:
        result = price_result.success(100, currency="chf")

        assert result.currency == "CHF"
        assert result.source == "easyrest"
        assert result.tax_inclusive is True
        assert result.error_code is None
        assert result.error_message is None

    def test_blank_currency_falls_back_to_eur(self) -> None:
        assert price_result.success(1, currency=" ").currency == "EUR"


class TestErrorBuilder:
    """Tests for price_result.error()."""

    def test_error_has_fixed_neutral_fields(self) -> None:
        result = price_result.error("timeout", "x")

        assert result.total_price == 0
        assert result.currency == "EUR"
        assert result.source is None
        assert result.tax_inclusive is False
        assert result.error_code == "timeout"
        assert result.error_message == "x"

    def test_success_and_error_are_negations(self) -> None:
        ok = price_result.success(1)
        failed = price_result.error("parse_failed", "nope")

        assert ok.is_success() is True and ok.is_error() is False
        assert failed.is_success() is False and failed.is_error() is True


class TestImmutability:
    def test_fields_cannot_be_reassigned(self) -> None:
        result = price_result.success(5)

        with pytest.raises(dataclasses.FrozenInstanceError):
            result.total_price = Decimal("1")  # type: ignore[misc]

    def test_with_source_returns_new_instance(self) -> None:
        live = price_result.success(5, source="live")
        cached = live.with_source("cache")

        assert cached is not live
        assert live.source == "live"
        assert cached.source == "cache"
        assert cached.total_price == live.total_price

    def test_variants(self) -> None:
        assert isinstance(price_result.success(1), PriceSuccess)
        assert isinstance(price_result.error("unknown", "x"), PriceFailure)


class TestRecords:
    """to_record / from_record contract used by the cache."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"price": 412.5, "currency": "EUR", "source": "live", "tax_inclusive": True},
            {"price": "0.01", "currency": "usd", "source": "cache", "tax_inclusive": False},
            {"price": 12.345, "currency": "GBP", "source": "easyrest", "tax_inclusive": True},
        ],
    )
    def test_success_round_trip(self, kwargs) -> None:
        original = price_result.success(**kwargs)

        assert price_result.from_record(original.to_record()) == original

    def test_error_round_trip(self) -> None:
        original = price_result.error("navigation_failed", "Blocked by captcha")

        assert price_result.from_record(original.to_record()) == original

    def test_record_shape(self) -> None:
        record = price_result.success(99.9, source="live").to_record()

        assert record == {
            "success": True,
            "total_price": 99.9,
            "currency": "EUR",
            "source": "live",
            "tax_inclusive": True,
            "error_code": None,
            "error_message": None,
        }

    def test_legacy_success_record_gets_defaults(self) -> None:
        result = price_result.from_record({"success": True, "total_price": 80})

        assert result.is_success()
        assert result.total_price == Decimal("80.00")
        assert result.currency == "EUR"
        assert result.source == "cache"
        assert result.tax_inclusive is True

    def test_failed_record_without_fields_gets_unknown(self) -> None:
        result = price_result.from_record({"success": False})

        assert result.is_error()
        assert result.error_code == "unknown"
        assert result.error_message == "Unknown error"

    def test_empty_record_is_an_error(self) -> None:
        assert price_result.from_record({}).is_error()
