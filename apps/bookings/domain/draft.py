"""
Draft booking

The mutable record the wizard fills in, and the frozen snapshot taken
from it at the moment of commit.
"""

from dataclasses import dataclass, field
from typing import Set, Tuple

from apps.bookings.domain.entities import (
    ContactInfo,
    Party,
    PayerDetails,
    PaymentMethod,
    ServiceDefinition,
)
from apps.bookings.domain.pricing import PriceQuote
from shared.domain.base import ValueObject
from shared.domain.value_objects import DateRange


@dataclass
class DraftBooking:
    service: ServiceDefinition
    dates: DateRange | None = None
    party: Party = field(default_factory=Party)
    add_on_ids: Set[str] = field(default_factory=set)
    contact: ContactInfo | None = None
    payment_method: PaymentMethod | None = None
    payer: PayerDetails = field(default_factory=PayerDetails)
    terms_accepted: bool = False
    quote: PriceQuote | None = None

    def snapshot(self, customer_token: str = '') -> 'DraftSnapshot':
        if self.dates is None or self.contact is None or self.payment_method is None or self.quote is None:
            raise ValueError("Draft is incomplete")
        return DraftSnapshot(
            service_reference=self.service.reference,
            max_capacity=self.service.max_capacity,
            dates=self.dates,
            party=self.party,
            add_on_ids=tuple(sorted(self.add_on_ids)),
            contact=self.contact,
            payment_method=self.payment_method,
            quote=self.quote,
            customer_token=customer_token,
        )


@dataclass(frozen=True)
class DraftSnapshot(ValueObject):
    """Immutable copy of a completed draft, handed to the booking store."""
    service_reference: str
    max_capacity: int | None
    dates: DateRange
    party: Party
    add_on_ids: Tuple[str, ...]
    contact: ContactInfo
    payment_method: PaymentMethod
    quote: PriceQuote
    customer_token: str = ''
