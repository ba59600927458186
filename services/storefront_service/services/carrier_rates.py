"""Colombian national carrier quotes (Envia, Servientrega, Coordinadora, Interrapidisimo).

Prices are in COP and rounded to whole pesos. A quote is built from:

1. A weight tier base price (or a declared-value percentage for
   ``price_based`` services, or a fixed amount for ``flat_rate`` ones).
2. The destination zone multiplier (unknown cities fall into ZONE_3).
3. Express surcharge for services whose code contains EXPRESS or SUPER.
4. Cash-on-delivery ("recaudo") fee when requested.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.currency import ZERO, format_cop, round_whole, to_decimal
from libs.common.logging import get_logger
from services.storefront_service.models import ShippingRateType

logger = get_logger(__name__)

DEFAULT_ORIGIN_CITY = "BOG"
DEFAULT_DESTINATION_CITY = "MDE"
DEFAULT_ITEM_WEIGHT_KG = Decimal("0.5")
TRACKING_PLACEHOLDER = "{tracking_number}"


@dataclass(frozen=True)
class City:
    code: str
    name: str
    department: str


@dataclass(frozen=True)
class CarrierZone:
    code: str
    name: str
    multiplier: Decimal
    cities: tuple[str, ...]


@dataclass(frozen=True)
class CarrierService:
    code: str
    name: str
    description: str
    type: ShippingRateType
    estimated_days: int
    max_weight: Optional[Decimal] = None
    max_dimensions: Optional[str] = None
    cash_on_delivery: bool = False
    same_day: bool = False

    @property
    def is_express(self) -> bool:
        return "EXPRESS" in self.code or "SUPER" in self.code


@dataclass(frozen=True)
class CarrierCompany:
    code: str
    name: str
    website: str
    tracking_url_template: str
    services: tuple[CarrierService, ...]


@dataclass
class CarrierRate:
    """One priced carrier service for a cart."""

    id: str
    company: str
    company_name: str
    service_code: str
    service_name: str
    description: str
    price: Decimal
    formatted_price: str
    estimated_days: int
    cash_on_delivery: bool
    tracking_url: Optional[str] = None
    restrictions: list[str] = field(default_factory=list)

    @property
    def estimated_delivery(self) -> str:
        if self.estimated_days <= 0:
            return "Same day"
        if self.estimated_days == 1:
            return "1 business day"
        return f"{self.estimated_days} business days"


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

CITIES: dict[str, City] = {
    city.code: city
    for city in (
        City("BOG", "Bogotá D.C.", "Cundinamarca"),
        City("MDE", "Medellín", "Antioquia"),
        City("CLO", "Cali", "Valle del Cauca"),
        City("BAQ", "Barranquilla", "Atlántico"),
        City("CTG", "Cartagena", "Bolívar"),
        City("CUC", "Cúcuta", "Norte de Santander"),
        City("PEI", "Pereira", "Risaralda"),
        City("IBE", "Ibagué", "Tolima"),
        City("BGA", "Bucaramanga", "Santander"),
        City("SMR", "Santa Marta", "Magdalena"),
        City("VVC", "Villavicencio", "Meta"),
        City("MZL", "Manizales", "Caldas"),
        City("PAL", "Palmira", "Valle del Cauca"),
        City("SOL", "Soledad", "Atlántico"),
        City("VAL", "Valledupar", "Cesar"),
    )
}

ZONES: dict[str, CarrierZone] = {
    "ZONE_1": CarrierZone(
        "ZONE_1", "Major cities", Decimal("1.0"), ("BOG", "MDE", "CLO", "BAQ")
    ),
    "ZONE_2": CarrierZone(
        "ZONE_2",
        "Intermediate cities",
        Decimal("1.2"),
        ("CTG", "CUC", "PEI", "BGA", "SMR", "IBE"),
    ),
    "ZONE_3": CarrierZone(
        "ZONE_3", "Other cities", Decimal("1.5"), ("VVC", "MZL", "PAL", "SOL", "VAL")
    ),
}
FALLBACK_ZONE = "ZONE_3"

# (max weight in kg, base price in COP); the last tier is open-ended
WEIGHT_TIERS: tuple[tuple[Optional[Decimal], Decimal], ...] = (
    (Decimal("1"), Decimal("8000")),
    (Decimal("3"), Decimal("12000")),
    (Decimal("5"), Decimal("16000")),
    (Decimal("10"), Decimal("22000")),
    (Decimal("20"), Decimal("35000")),
    (Decimal("50"), Decimal("50000")),
    (None, Decimal("80000")),
)
EXPRESS_MULTIPLIER = Decimal("1.5")
COD_PERCENTAGE = Decimal("0.02")
MIN_COD_FEE = Decimal("3000")

PRICE_BASED_PERCENTAGE = Decimal("0.05")
PRICE_BASED_MINIMUM = Decimal("10000")
FLAT_RATE_EXPRESS = Decimal("25000")
FLAT_RATE_STANDARD = Decimal("15000")
SAME_DAY_MULTIPLIER = Decimal("2")

WEIGHT = ShippingRateType.WEIGHT_BASED
PRICE = ShippingRateType.PRICE_BASED
FLAT = ShippingRateType.FLAT_RATE

COMPANIES: dict[str, CarrierCompany] = {
    "ENVIA": CarrierCompany(
        code="ENVIA",
        name="Envia",
        website="https://envia.co",
        tracking_url_template="https://envia.co/tracking?guia={tracking_number}",
        services=(
            CarrierService(
                "ENVIA_STANDARD",
                "Envío Terrestre",
                "Ground parcels 1-8 kg",
                WEIGHT,
                3,
                max_weight=Decimal("8"),
                max_dimensions="45cm x 45cm x 45cm",
            ),
            CarrierService(
                "ENVIA_EXPRESS",
                "Envío Aéreo",
                "Air parcels 9-80 kg",
                WEIGHT,
                1,
                max_weight=Decimal("80"),
                max_dimensions="1m x 1m x 1m",
            ),
            CarrierService(
                "ENVIA_HEAVY",
                "Mercancía Terrestre",
                "Ground freight 9-200 kg",
                WEIGHT,
                4,
                max_weight=Decimal("200"),
                max_dimensions="4m x 2m x 2m",
            ),
            CarrierService(
                "ENVIA_COD",
                "Recaudo",
                "Cash on delivery shipping",
                PRICE,
                3,
                cash_on_delivery=True,
            ),
        ),
    ),
    "SERVIENTREGA": CarrierCompany(
        code="SERVIENTREGA",
        name="Servientrega",
        website="https://servientrega.com",
        tracking_url_template=(
            "https://servientrega.com/rastro?tracking={tracking_number}"
        ),
        services=(
            CarrierService(
                "SER_STANDARD",
                "Envío Nacional",
                "Standard national service",
                WEIGHT,
                2,
                max_weight=Decimal("50"),
            ),
            CarrierService(
                "SER_EXPRESS",
                "Hoy Mismo",
                "Same-day delivery (major cities)",
                FLAT,
                0,
                same_day=True,
            ),
            CarrierService(
                "SER_NEXT", "Próximo Día", "Next-day delivery", WEIGHT, 1
            ),
            CarrierService(
                "SER_COD",
                "Contra Entrega",
                "Cash on delivery service",
                PRICE,
                3,
                cash_on_delivery=True,
            ),
        ),
    ),
    "COORDINADORA": CarrierCompany(
        code="COORDINADORA",
        name="Coordinadora",
        website="https://coordinadora.com",
        tracking_url_template=(
            "https://coordinadora.com/seguimiento/?guia={tracking_number}"
        ),
        services=(
            CarrierService(
                "COOR_STANDARD",
                "Estándar",
                "Standard national shipping",
                WEIGHT,
                3,
                max_weight=Decimal("70"),
            ),
            CarrierService("COOR_EXPRESS", "Express", "Express service", WEIGHT, 1),
            CarrierService(
                "COOR_SPECIAL",
                "Especial",
                "Special and bulky parcels",
                PRICE,
                4,
            ),
        ),
    ),
    "INTERRAPIDISIMO": CarrierCompany(
        code="INTERRAPIDISIMO",
        name="Interrapidisimo",
        website="https://interrapidisimo.com",
        tracking_url_template=(
            "https://interrapidisimo.com/tracking?numero={tracking_number}"
        ),
        services=(
            CarrierService(
                "INTER_STANDARD",
                "Envío Nacional",
                "Standard national service",
                WEIGHT,
                2,
                max_weight=Decimal("50"),
            ),
            CarrierService(
                "INTER_EXPRESS",
                "Súper Inter",
                "National express service",
                WEIGHT,
                1,
            ),
            CarrierService(
                "INTER_COD",
                "Contra Entrega",
                "Cash on delivery service",
                PRICE,
                3,
                cash_on_delivery=True,
            ),
        ),
    ),
}


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def get_city_zone(city_code: Optional[str]) -> str:
    code = (city_code or "").upper()
    for zone in ZONES.values():
        if code in zone.cities:
            return zone.code
    return FALLBACK_ZONE


def zone_multiplier(zone_code: str) -> Decimal:
    zone = ZONES.get(zone_code)
    return zone.multiplier if zone else Decimal("1.0")


def weight_tier_price(weight) -> Decimal:
    weight = to_decimal(weight)
    for max_weight, price in WEIGHT_TIERS:
        if max_weight is None or weight <= max_weight:
            return price
    raise ValueError("Weight exceeds maximum limits")


def cod_fee(declared_value) -> Decimal:
    return max(to_decimal(declared_value) * COD_PERCENTAGE, MIN_COD_FEE)


def calculate_carrier_shipping(
    weight,
    declared_value,
    destination_zone: str,
    service_code: str,
    cash_on_delivery: bool = False,
) -> Decimal:
    """Weight-tier price for a service, in whole pesos."""
    price = weight_tier_price(weight) * zone_multiplier(destination_zone)

    if "EXPRESS" in service_code or "SUPER" in service_code:
        price *= EXPRESS_MULTIPLIER

    if cash_on_delivery:
        price += cod_fee(declared_value)

    return round_whole(price)


def _service_price(
    service: CarrierService,
    weight: Decimal,
    declared_value: Decimal,
    destination_zone: str,
    cash_on_delivery: bool,
) -> Decimal:
    if service.type == ShippingRateType.WEIGHT_BASED:
        return calculate_carrier_shipping(
            weight, declared_value, destination_zone, service.code, cash_on_delivery
        )

    multiplier = zone_multiplier(destination_zone)
    if service.type == ShippingRateType.PRICE_BASED:
        price = max(declared_value * PRICE_BASED_PERCENTAGE, PRICE_BASED_MINIMUM)
        price *= multiplier
        if cash_on_delivery:
            price += declared_value * COD_PERCENTAGE
        return price

    base = FLAT_RATE_EXPRESS if "EXPRESS" in service.code else FLAT_RATE_STANDARD
    return base * multiplier


def tracking_url(company_code: str, tracking_number: str) -> str:
    company = COMPANIES.get(company_code)
    if company is None:
        return f"https://example.com/track/{tracking_number}"
    return company.tracking_url_template.replace(TRACKING_PLACEHOLDER, tracking_number)


def service_restrictions(service: CarrierService, cart_weight: Decimal) -> list[str]:
    restrictions = []
    if service.max_weight and cart_weight > service.max_weight * Decimal("0.8"):
        restrictions.append(f"Maximum weight: {service.max_weight} kg")
    if service.max_dimensions:
        restrictions.append(f"Maximum dimensions: {service.max_dimensions}")
    if service.same_day:
        restrictions.append("Only available in major cities")
        restrictions.append("Order before 2:00 PM")
    if service.cash_on_delivery:
        restrictions.append("Includes cash on delivery collection")
    return restrictions


def shipping_weight(items) -> Decimal:
    """Total weight; lines without a weight count as 0.5 kg per unit."""
    total = ZERO
    for item in items:
        if item.weight is None:
            weight = DEFAULT_ITEM_WEIGHT_KG
        else:
            weight = to_decimal(item.weight)
        total += weight * item.quantity
    return total


def calculate_carrier_rates(
    items: Sequence,
    origin: str = DEFAULT_ORIGIN_CITY,
    destination: str = DEFAULT_DESTINATION_CITY,
    declared_value=None,
    cash_on_delivery: bool = False,
) -> list[CarrierRate]:
    """Quote every carrier service that can take the cart, cheapest first."""
    weight = shipping_weight(items)
    subtotal = sum((to_decimal(i.unit_price) * i.quantity for i in items), ZERO)
    value = to_decimal(declared_value) if declared_value is not None else subtotal
    destination_zone = get_city_zone(destination)

    rates: list[CarrierRate] = []
    for company in COMPANIES.values():
        for service in company.services:
            if service.max_weight and weight > service.max_weight:
                continue
            if cash_on_delivery and not service.cash_on_delivery:
                continue
            if service.same_day and destination_zone != "ZONE_1":
                continue

            price = _service_price(
                service, weight, value, destination_zone, cash_on_delivery
            )
            if service.same_day:
                price *= SAME_DAY_MULTIPLIER
            price = round_whole(price)

            rates.append(
                CarrierRate(
                    id=f"{company.code}_{service.code}",
                    company=company.code,
                    company_name=company.name,
                    service_code=service.code,
                    service_name=service.name,
                    description=service.description,
                    price=price,
                    formatted_price=format_cop(price),
                    estimated_days=service.estimated_days,
                    cash_on_delivery=service.cash_on_delivery,
                    tracking_url=tracking_url(company.code, TRACKING_PLACEHOLDER),
                    restrictions=service_restrictions(service, weight),
                )
            )

    logger.debug(
        "Quoted %d carrier services %s -> %s (%s kg)",
        len(rates),
        origin,
        destination,
        weight,
    )
    return sorted(rates, key=lambda r: r.price)


def get_cheapest_carrier_rate(rates: Sequence[CarrierRate]) -> Optional[CarrierRate]:
    return min(rates, key=lambda r: r.price) if rates else None


def get_rates_by_company(
    rates: Sequence[CarrierRate], company_code: str
) -> list[CarrierRate]:
    return [rate for rate in rates if rate.id.startswith(company_code)]


def get_express_rates(rates: Sequence[CarrierRate]) -> list[CarrierRate]:
    return [
        rate
        for rate in rates
        if "EXPRESS" in rate.service_code
        or "SUPER" in rate.service_code
        or rate.estimated_days <= 1
    ]
