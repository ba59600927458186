"""Unit tests for cart shipping rate evaluation and zone matching.

Rates and zones are transient model instances; no database involved.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from services.storefront_service.models import (
    ShippingMethod,
    ShippingRate,
    ShippingRateType,
    ShippingZone,
)
from services.storefront_service.schemas import ShippingAddress
from services.storefront_service.services.shipping_calculator import (
    calculate_cart_total_with_shipping,
    calculate_shipping_cost,
    calculate_shipping_for_rates,
    cart_subtotal,
    cart_weight,
    find_cheapest_shipping_rate,
    zone_matches_address,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _line(price="10.00", quantity=1, weight="1.00"):
    return SimpleNamespace(
        unit_price=Decimal(price),
        quantity=quantity,
        weight=Decimal(weight) if weight is not None else None,
    )


def _rate(rate_type=ShippingRateType.FLAT_RATE, price="5.00", **bounds):
    return ShippingRate(
        name=f"{rate_type.value} rate",
        type=rate_type,
        price=Decimal(price),
        **{key: Decimal(value) for key, value in bounds.items()},
    )


def _zone(countries=(), states=(), postal_codes=()):
    return ShippingZone(
        name="Zone",
        countries=list(countries),
        states=list(states),
        postal_codes=list(postal_codes),
    )


# ---------------------------------------------------------------------------
# Cart aggregates
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_cart_subtotal_and_weight():
    lines = [_line("10.00", 2, "1.50"), _line("4.99", 1, "0.25")]

    assert cart_subtotal(lines) == Decimal("24.99")
    assert cart_weight(lines) == Decimal("3.25")


@pytest.mark.unit
def test_cart_weight_treats_missing_weight_as_zero():
    lines = [_line(weight=None), _line(quantity=3, weight="2")]

    assert cart_weight(lines) == Decimal("6")


@pytest.mark.unit
def test_total_with_shipping():
    assert calculate_cart_total_with_shipping(Decimal("24.99"), Decimal("5")) == (
        Decimal("29.99")
    )
    assert calculate_cart_total_with_shipping(Decimal("10"), None) == Decimal("10.00")


# ---------------------------------------------------------------------------
# calculate_shipping_cost
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_free_rate_costs_nothing():
    result = calculate_shipping_cost(_rate(ShippingRateType.FREE, "9.99"), [_line()])

    assert result.is_eligible
    assert result.cost == Decimal("0")


@pytest.mark.unit
def test_flat_rate_charges_price():
    result = calculate_shipping_cost(_rate(price="7.5"), [_line()])

    assert result.is_eligible
    assert result.cost == Decimal("7.50")


@pytest.mark.unit
def test_weight_based_bounds_are_inclusive():
    rate = _rate(
        ShippingRateType.WEIGHT_BASED, "12.00", min_weight="1", max_weight="5"
    )

    assert calculate_shipping_cost(rate, [_line(weight="1")]).is_eligible
    assert calculate_shipping_cost(rate, [_line(quantity=5, weight="1")]).is_eligible

    too_heavy = calculate_shipping_cost(rate, [_line(quantity=6, weight="1")])
    assert not too_heavy.is_eligible
    assert too_heavy.cost == Decimal("0")
    assert "weight" in too_heavy.reason


@pytest.mark.unit
def test_weight_based_without_max_is_unbounded():
    rate = _rate(ShippingRateType.WEIGHT_BASED, "20.00", min_weight="10")

    result = calculate_shipping_cost(rate, [_line(quantity=100, weight="5")])

    assert result.is_eligible
    assert result.cost == Decimal("20.00")


@pytest.mark.unit
def test_price_based_uses_subtotal():
    rate = _rate(
        ShippingRateType.PRICE_BASED, "3.00", min_price="0", max_price="50"
    )

    assert calculate_shipping_cost(rate, [_line("50.00")]).is_eligible
    result = calculate_shipping_cost(rate, [_line("50.01")])
    assert not result.is_eligible
    assert "subtotal" in result.reason


@pytest.mark.unit
def test_unknown_type_is_ineligible():
    rate = SimpleNamespace(type="carrier_pigeon", price=Decimal("1"))

    result = calculate_shipping_cost(rate, [_line()])

    assert not result.is_eligible
    assert "Unknown" in result.reason


# ---------------------------------------------------------------------------
# Rate lists
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_rates_sorted_by_cost_and_ineligible_dropped():
    express = _rate(price="15.00")
    standard = _rate(price="5.00")
    heavy_only = _rate(
        ShippingRateType.WEIGHT_BASED, "2.00", min_weight="50", max_weight="100"
    )
    free_over_100 = _rate(ShippingRateType.PRICE_BASED, "0", min_price="100")

    results = calculate_shipping_for_rates(
        [express, heavy_only, standard, free_over_100], [_line("20.00")]
    )

    assert [r.rate for r in results] == [standard, express]


@pytest.mark.unit
def test_find_cheapest_shipping_rate():
    cheap = _rate(ShippingRateType.FREE)
    rates = [_rate(price="9.00"), cheap]

    assert find_cheapest_shipping_rate(rates, [_line()]).rate is cheap
    assert find_cheapest_shipping_rate([], [_line()]) is None


# ---------------------------------------------------------------------------
# Zone matching
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_zone_without_constraints_matches_everything():
    zone = _zone()

    assert zone_matches_address(zone, ShippingAddress(country="CO"))
    assert zone_matches_address(zone, None)


@pytest.mark.unit
def test_no_address_matches_every_zone():
    zone = _zone(countries=["US"])

    assert zone_matches_address(zone, None)
    assert zone_matches_address(zone, ShippingAddress())


@pytest.mark.unit
def test_country_match_is_case_insensitive():
    zone = _zone(countries=["US", "CA"])

    assert zone_matches_address(zone, ShippingAddress(country="us"))
    assert not zone_matches_address(zone, ShippingAddress(country="MX"))


@pytest.mark.unit
def test_state_constraint():
    zone = _zone(countries=["US"], states=["CA", "NV"])

    assert zone_matches_address(zone, ShippingAddress(country="US", state="nv"))
    assert not zone_matches_address(zone, ShippingAddress(country="US", state="TX"))


@pytest.mark.unit
def test_missing_address_field_does_not_constrain():
    zone = _zone(countries=["US"], states=["CA"])

    assert zone_matches_address(zone, ShippingAddress(country="US"))


@pytest.mark.unit
def test_postal_code_exact_and_wildcard():
    zone = _zone(postal_codes=["10001", "941*"])

    assert zone_matches_address(zone, ShippingAddress(postal_code="10001"))
    assert zone_matches_address(zone, ShippingAddress(postal_code="94107"))
    assert not zone_matches_address(zone, ShippingAddress(postal_code="10002"))
    assert not zone_matches_address(zone, ShippingAddress(postal_code="95014"))


# ---------------------------------------------------------------------------
# Carrier methods
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_method_tracking_url():
    method = ShippingMethod(
        name="Express",
        carrier="Servientrega",
        tracking_url_template="https://track.example.com/?n={tracking_number}",
    )

    assert method.tracking_url("TN-9") == "https://track.example.com/?n=TN-9"
    assert ShippingMethod(name="Pickup", carrier="Self").tracking_url("TN-9") is None
