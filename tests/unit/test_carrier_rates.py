"""Unit tests for national carrier quotes."""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from services.storefront_service.services.carrier_rates import (
    calculate_carrier_rates,
    calculate_carrier_shipping,
    get_cheapest_carrier_rate,
    get_city_zone,
    get_express_rates,
    get_rates_by_company,
    shipping_weight,
    tracking_url,
    weight_tier_price,
)


def _line(price="100000", quantity=1, weight="2"):
    return SimpleNamespace(
        unit_price=Decimal(price),
        quantity=quantity,
        weight=Decimal(weight) if weight is not None else None,
    )


def _by_id(rates):
    return {rate.id: rate for rate in rates}


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_city_zones():
    assert get_city_zone("BOG") == "ZONE_1"
    assert get_city_zone("ctg") == "ZONE_2"
    assert get_city_zone("VVC") == "ZONE_3"
    assert get_city_zone("XYZ") == "ZONE_3"
    assert get_city_zone(None) == "ZONE_3"


@pytest.mark.unit
@pytest.mark.parametrize(
    "weight,price",
    [("0.5", "8000"), ("1", "8000"), ("2.5", "12000"), ("20", "35000"), ("75", "80000")],
)
def test_weight_tiers(weight, price):
    assert weight_tier_price(Decimal(weight)) == Decimal(price)


@pytest.mark.unit
def test_calculate_carrier_shipping_applies_zone_express_and_cod():
    # 12000 * 1.2 (ZONE_2) * 1.5 (express) + max(2% of 100000, 3000)
    price = calculate_carrier_shipping(
        Decimal("2"), Decimal("100000"), "ZONE_2", "COOR_EXPRESS", True
    )

    assert price == Decimal("24600")


@pytest.mark.unit
def test_shipping_weight_defaults_missing_weights():
    lines = [_line(quantity=2, weight=None), _line(weight="3")]

    assert shipping_weight(lines) == Decimal("4.0")


@pytest.mark.unit
def test_shipping_weight_keeps_explicit_zero():
    lines = [_line(quantity=3, weight="0"), _line(weight="1.5")]

    assert shipping_weight(lines) == Decimal("1.5")


@pytest.mark.unit
def test_tracking_url_uses_company_template():
    assert tracking_url("ENVIA", "ABC123") == "https://envia.co/tracking?guia=ABC123"
    assert tracking_url("NOPE", "ABC123").endswith("/ABC123")


# ---------------------------------------------------------------------------
# calculate_carrier_rates
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_quotes_to_major_city():
    rates = calculate_carrier_rates([_line()], origin="BOG", destination="MDE")
    by_id = _by_id(rates)

    assert len(rates) == 14
    assert by_id["ENVIA_ENVIA_STANDARD"].price == Decimal("12000")
    assert by_id["COORDINADORA_COOR_EXPRESS"].price == Decimal("18000")
    # Price-based: max(5% of 100000, 10000)
    assert by_id["SERVIENTREGA_SER_COD"].price == Decimal("10000")
    # Same-day flat rate, doubled
    assert by_id["SERVIENTREGA_SER_EXPRESS"].price == Decimal("50000")
    assert by_id["SERVIENTREGA_SER_EXPRESS"].estimated_delivery == "Same day"
    assert [r.price for r in rates] == sorted(r.price for r in rates)


@pytest.mark.unit
def test_same_day_only_in_major_cities():
    rates = calculate_carrier_rates([_line()], destination="CTG")
    by_id = _by_id(rates)

    assert "SERVIENTREGA_SER_EXPRESS" not in by_id
    assert by_id["ENVIA_ENVIA_STANDARD"].price == Decimal("14400")


@pytest.mark.unit
def test_services_over_max_weight_are_skipped():
    rates = calculate_carrier_rates([_line(weight="9")])
    by_id = _by_id(rates)

    assert "ENVIA_ENVIA_STANDARD" not in by_id
    assert "ENVIA_ENVIA_EXPRESS" in by_id


@pytest.mark.unit
def test_cash_on_delivery_keeps_cod_services_only():
    rates = calculate_carrier_rates(
        [_line()], destination="MDE", cash_on_delivery=True
    )

    assert {r.service_code for r in rates} == {"ENVIA_COD", "SER_COD", "INTER_COD"}
    # 10000 + 2% of the declared value
    assert all(r.price == Decimal("12000") for r in rates)
    assert all(r.cash_on_delivery for r in rates)


@pytest.mark.unit
def test_declared_value_defaults_to_line_total():
    cheap = calculate_carrier_rates([_line(price="400000")], destination="MDE")

    # 5% of 400000 beats the 10000 minimum
    assert _by_id(cheap)["ENVIA_ENVIA_COD"].price == Decimal("20000")


@pytest.mark.unit
def test_quote_formatting_and_restrictions():
    rates = calculate_carrier_rates([_line(weight="7")], destination="MDE")
    envia = _by_id(rates)["ENVIA_ENVIA_STANDARD"]

    assert envia.formatted_price == "$ 22.000"
    assert "Maximum weight: 8 kg" in envia.restrictions
    assert "Maximum dimensions: 45cm x 45cm x 45cm" in envia.restrictions
    assert envia.tracking_url.startswith("https://envia.co/tracking")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_rate_helpers():
    rates = calculate_carrier_rates([_line()], destination="MDE")

    assert get_cheapest_carrier_rate(rates).price == Decimal("10000")
    assert get_cheapest_carrier_rate([]) is None
    assert {r.company for r in get_rates_by_company(rates, "ENVIA")} == {"ENVIA"}

    express = get_express_rates(rates)
    codes = {r.service_code for r in express}
    assert {"INTER_EXPRESS", "SER_NEXT", "SER_EXPRESS"} <= codes
    assert "ENVIA_STANDARD" not in codes
