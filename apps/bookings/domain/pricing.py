"""
Pricing Engine

Turns a service definition, the chosen dates, the party and the selected
add-ons into a quote:

    nights      = max(1, ceil(stay / 1 day))  for per-night services, else 1
    multiplier  = adults + children * child_weight
    subtotal    = base_price * nights * multiplier + sum(add_on prices)
    tax         = subtotal * tax_rate
    total       = subtotal + tax

Everything here is pure. Amounts stay exact Decimals; rounding to whole
currency units happens only when a quote is displayed or charged.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from apps.bookings.domain.entities import AddOn, Party, PricingUnit, ServiceDefinition
from apps.bookings.exceptions import ServiceMisconfigured, WizardStateError
from shared.domain.base import ValueObject
from shared.domain.value_objects import DateRange, Money

DEFAULT_CHILD_WEIGHT = Decimal('0.5')


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class PricingPolicy(ValueObject):
    """Business policy applied on top of catalog prices."""
    tax_rate: Decimal
    child_weight: Decimal = DEFAULT_CHILD_WEIGHT

    def __post_init__(self):
        object.__setattr__(self, 'tax_rate', _as_decimal(self.tax_rate))
        object.__setattr__(self, 'child_weight', _as_decimal(self.child_weight))
        if self.tax_rate < 0:
            raise ValueError("Tax rate cannot be negative")
        if self.child_weight < 0:
            raise ValueError("Child weight cannot be negative")


@dataclass(frozen=True)
class PriceQuote(ValueObject):
    subtotal: Money
    tax: Money
    total: Money
    nights: int
    party_multiplier: Decimal
    add_ons_amount: Money

    @property
    def currency(self) -> str:
        return self.total.currency


def count_nights(unit: PricingUnit, dates: DateRange) -> int:
    """A same-day stay still counts as one night."""
    if not unit.is_lodging:
        return 1
    return max(1, dates.span_days)


def party_multiplier(party: Party, child_weight=DEFAULT_CHILD_WEIGHT) -> Decimal:
    return Decimal(party.adults) + Decimal(party.children) * _as_decimal(child_weight)


def compute_total(
    base_price: Money | None,
    unit: PricingUnit,
    dates: DateRange,
    party: Party,
    add_ons: Iterable[AddOn],
    tax_rate,
    child_weight=DEFAULT_CHILD_WEIGHT,
    service_reference: str = '',
) -> PriceQuote:
    if base_price is None:
        raise ServiceMisconfigured(service_reference or '<unknown>')

    nights = count_nights(unit, dates)
    multiplier = party_multiplier(party, child_weight)

    add_ons_amount = Money.zero(base_price.currency)
    for add_on in add_ons:
        add_ons_amount = add_ons_amount + add_on.price

    subtotal = base_price * nights * multiplier + add_ons_amount
    tax = subtotal * _as_decimal(tax_rate)

    return PriceQuote(
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        nights=nights,
        party_multiplier=multiplier,
        add_ons_amount=add_ons_amount,
    )


def quote_for(service: ServiceDefinition, dates: DateRange, party: Party,
              add_on_ids: Iterable[str], policy: PricingPolicy) -> PriceQuote:
    """Price a selection against the catalog entry it was made from."""
    add_ons = []
    for add_on_id in sorted(set(add_on_ids)):
        add_on = service.find_add_on(add_on_id)
        if add_on is None:
            raise WizardStateError(f"Add-on {add_on_id} is not offered by {service.reference}")
        add_ons.append(add_on)

    return compute_total(
        service.base_price,
        service.unit,
        dates,
        party,
        add_ons,
        policy.tax_rate,
        policy.child_weight,
        service_reference=service.reference,
    )
