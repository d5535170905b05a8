"""Validation rules and room rules of PriceQuery."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from easyrest_pricing.domain import price_result
from easyrest_pricing.schemas.price import (
    SINGLE_OCCUPANCY_WARNING,
    PriceQuery,
    PriceResponse,
    direct_booking_figures,
)


def _message(exc_info) -> str:
    return exc_info.value.errors()[0]["msg"]


def test_valid_stay(stay) -> None:
    query = PriceQuery(**stay)

    assert query.nights == 2
    assert query.currency == "EUR"
    assert query.lang == "fr"
    assert query.url is None


@pytest.mark.parametrize("bad", ["2030/05/01", "01-05-2030", "2030-5-1", "tomorrow"])
def test_dates_must_be_iso(stay, bad) -> None:
    with pytest.raises(ValidationError) as exc_info:
        PriceQuery(**{**stay, "checkin": bad})

    assert "YYYY-MM-DD" in _message(exc_info)


def test_impossible_date_is_rejected(stay) -> None:
    with pytest.raises(ValidationError):
        PriceQuery(**{**stay, "checkout": "2030-02-30"})


def test_checkout_must_follow_checkin(stay) -> None:
    with pytest.raises(ValidationError) as exc_info:
        PriceQuery(**{**stay, "checkout": stay["checkin"]})

    assert "Check-out date must be after check-in date" in _message(exc_info)


def test_checkin_cannot_be_in_the_past(stay) -> None:
    yesterday = date.today() - timedelta(days=1)

    with pytest.raises(ValidationError) as exc_info:
        PriceQuery(**{**stay, "checkin": yesterday.isoformat()})

    assert "cannot be in the past" in _message(exc_info)


def test_checkin_today_is_allowed(stay) -> None:
    today = date.today()
    query = PriceQuery(
        **{**stay, "checkin": today.isoformat(), "checkout": (today + timedelta(days=1)).isoformat()}
    )

    assert query.nights == 1


@pytest.mark.parametrize(("nights", "ok"), [(30, True), (31, False)])
def test_maximum_stay(stay, nights, ok) -> None:
    checkin = date.fromisoformat(stay["checkin"])
    data = {**stay, "checkout": (checkin + timedelta(days=nights)).isoformat()}

    if ok:
        assert PriceQuery(**data).nights == nights
    else:
        with pytest.raises(ValidationError) as exc_info:
            PriceQuery(**data)
        assert "30 nights" in _message(exc_info)


@pytest.mark.parametrize(
    ("adults", "children", "ok"),
    [(4, 0, True), (1, 3, True), (2, 3, False), (5, 0, False)],
)
def test_guest_limits(stay, adults, children, ok) -> None:
    data = {**stay, "adults": adults, "children": children}

    if ok:
        PriceQuery(**data)
    else:
        with pytest.raises(ValidationError) as exc_info:
            PriceQuery(**data)
        assert "Maximum 4 guests" in _message(exc_info)


@pytest.mark.parametrize("field,value", [("adults", 0), ("children", -1), ("children", 4)])
def test_guest_bounds(stay, field, value) -> None:
    with pytest.raises(ValidationError):
        PriceQuery(**{**stay, field: value})


@pytest.mark.parametrize("currency", ["EU", "EURO"])
def test_currency_must_have_three_letters(stay, currency) -> None:
    with pytest.raises(ValidationError):
        PriceQuery(**{**stay, "currency": currency})


class TestHotelUrl:
    def test_booking_url_is_accepted(self, stay) -> None:
        url = "https://www.booking.com/hotel/fr/easyrest.fr.html"

        assert PriceQuery(**{**stay, "url": url}).url == url

    @pytest.mark.parametrize(
        ("url", "message"),
        [
            ("not a url", "Invalid URL format"),
            ("ftp://www.booking.com/x", "Invalid URL format"),
            ("https://www.expedia.com/hotel", "booking.com"),
        ],
    )
    def test_other_urls_are_rejected(self, stay, url, message) -> None:
        with pytest.raises(ValidationError) as exc_info:
            PriceQuery(**{**stay, "url": url})

        assert message in _message(exc_info)


class TestRoomRules:
    def test_single_adult_priced_as_double(self, stay) -> None:
        query = PriceQuery(**{**stay, "adults": 1})

        priced, warnings = query.with_room_rules()

        assert priced.adults == 2
        assert priced.children == 0
        assert warnings == [SINGLE_OCCUPANCY_WARNING]
        assert query.adults == 1

    def test_couples_unchanged(self, stay) -> None:
        query = PriceQuery(**stay)

        priced, warnings = query.with_room_rules()

        assert priced is query
        assert warnings == []


def test_cache_params_are_json_compatible(stay) -> None:
    params = PriceQuery(**stay).cache_params()

    assert params["checkin"] == stay["checkin"]
    assert params["currency"] == "EUR"


def test_response_from_error_result() -> None:
    response = PriceResponse.from_result(
        price_result.error("timeout", "slow"), nights=2, warnings=None
    )

    assert response.success is False
    assert response.total_price == 0
    assert response.error_code == "timeout"
    assert response.warnings == []
    assert response.direct_price is None


def test_error_result_ignores_discount() -> None:
    response = PriceResponse.from_result(
        price_result.error("parse_failed", "no price"), nights=3, discount_percent=15
    )

    assert response.booking_price is None
    assert response.savings is None


def test_response_adds_direct_booking_figures() -> None:
    response = PriceResponse.from_result(
        price_result.success("300.00"), nights=3, discount_percent=15
    )

    assert response.total_price == 300.0
    assert response.booking_price == 300.0
    assert response.direct_price == 255.0
    assert response.price_per_night == 85.0
    assert response.savings == 45.0
    assert response.discount == 15.0


@pytest.mark.parametrize(
    ("price", "percent", "nights", "direct", "per_night", "savings"),
    [
        ("412.50", 15, 2, 350.63, 175.31, 61.88),
        ("99.99", 0, 1, 99.99, 99.99, 0.0),
        ("100.00", 12.5, 3, 87.5, 29.17, 12.5),
    ],
)
def test_direct_booking_figures_round_half_up(price, percent, nights, direct, per_night, savings) -> None:
    figures = direct_booking_figures(Decimal(price), percent, nights)

    assert figures["direct_price"] == direct
    assert figures["price_per_night"] == per_night
    assert figures["savings"] == savings
