"""
In-memory collaborators for tests and local experiments.

They follow the same contracts as the HTTP clients and the Django
store, plus a few knobs to script failures and delays.
"""

import asyncio
import copy
import uuid
from datetime import date
from typing import Dict, List

from apps.bookings.application.ports import (
    AvailabilityAnswer,
    AvailabilityOracle,
    BookingStore,
    ServiceCatalog,
    StatusUpdate,
)
from apps.bookings.domain.draft import DraftSnapshot
from apps.bookings.domain.entities import (
    ACTIVE_STATUSES,
    BookingRecord,
    BookingStatus,
    ContactInfo,
    Party,
    PaymentMethod,
    PricingUnit,
    ServiceDefinition,
)
from apps.bookings.domain.events import BookingCreated
from apps.bookings.domain.pricing import PricingPolicy, quote_for
from apps.bookings.exceptions import (
    AvailabilityLost,
    BookingNotFound,
    BookingValidationRejected,
    ServiceNotFound,
)
from apps.bookings.models import generate_booking_number
from shared.domain.value_objects import DateRange, Money
from shared.infrastructure.http import RemoteServiceUnavailable


class StaticServiceCatalog(ServiceCatalog):

    def __init__(self, *services):
        self.services = {service.reference: service for service in services}

    async def get_service(self, service_reference: str):
        try:
            return self.services[service_reference]
        except KeyError:
            raise ServiceNotFound(service_reference)


class ScriptedAvailabilityOracle(AvailabilityOracle):
    """
    Answers from a queue of scripted responses, then from `default`.

    A queued item may be an AvailabilityAnswer, an exception instance to
    raise, or the string 'hang' to never answer (for timeout tests).
    """

    def __init__(self, *script, default: AvailabilityAnswer | None = None, delay: float = 0):
        self.script = list(script)
        self.default = default or AvailabilityAnswer(available=True)
        self.delay = delay
        self.calls: List[tuple] = []

    async def check_availability(self, service_reference: str, dates: DateRange, party: Party):
        self.calls.append((service_reference, dates, party))
        item = self.script.pop(0) if self.script else self.default
        if self.delay:
            await asyncio.sleep(self.delay)
        if item == 'hang':
            await asyncio.Event().wait()
        if isinstance(item, Exception):
            raise item
        return item


class InMemoryBookingStore(BookingStore):
    """
    Dict-backed booking store.

    `fail_next` makes the next N create calls raise RemoteServiceUnavailable.
    With `fail_after_write` the booking is stored first, which is how a
    lost response from a remote store looks to the caller.
    """

    def __init__(self, *, fail_next: int = 0, fail_after_write: bool = False,
                 reject_with: Dict[str, str] | None = None, delay: float = 0):
        self.bookings: Dict[uuid.UUID, BookingRecord] = {}
        self.by_key: Dict[str, uuid.UUID] = {}
        self.events = []
        self.fail_next = fail_next
        self.fail_after_write = fail_after_write
        self.reject_with = reject_with
        self.delay = delay
        self.create_calls = 0

    async def create_booking(self, snapshot: DraftSnapshot, idempotency_key: str) -> BookingRecord:
        self.create_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.fail_next and not self.fail_after_write:
            self.fail_next -= 1
            raise RemoteServiceUnavailable('booking-store', 'connection reset')

        if self.reject_with is not None:
            raise BookingValidationRejected(self.reject_with)

        if idempotency_key in self.by_key:
            booking = self.bookings[self.by_key[idempotency_key]]
        else:
            booking = self._insert(snapshot, idempotency_key)

        if self.fail_next:
            self.fail_next -= 1
            raise RemoteServiceUnavailable('booking-store', 'response lost')
        return copy.deepcopy(booking)

    def _insert(self, snapshot: DraftSnapshot, idempotency_key: str) -> BookingRecord:
        if snapshot.max_capacity is not None:
            taken = sum(
                booking.party.head_count
                for booking in self.bookings.values()
                if booking.service_reference == snapshot.service_reference
                and booking.status in ACTIVE_STATUSES
                and booking.dates.overlaps_with(snapshot.dates)
            )
            if taken + snapshot.party.head_count > snapshot.max_capacity:
                raise AvailabilityLost(f"Only {max(0, snapshot.max_capacity - taken)} places left")

        quote = snapshot.quote
        booking = BookingRecord(
            booking_number=generate_booking_number(),
            idempotency_key=idempotency_key,
            service_reference=snapshot.service_reference,
            dates=snapshot.dates,
            party=snapshot.party,
            add_on_ids=snapshot.add_on_ids,
            contact=snapshot.contact,
            payment_method=snapshot.payment_method,
            subtotal=quote.subtotal,
            tax=quote.tax,
            total=quote.total,
            nights=quote.nights,
            customer_token=snapshot.customer_token,
        )
        booking.record_event(BookingCreated(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            service_reference=booking.service_reference,
            total=booking.total.amount,
            currency=booking.total.currency,
        ))
        self.events.extend(booking.pull_events())
        self.bookings[booking.id] = booking
        self.by_key[idempotency_key] = booking.id
        return booking

    async def get_booking(self, booking_id) -> BookingRecord:
        try:
            return copy.deepcopy(self.bookings[booking_id])
        except KeyError:
            raise BookingNotFound(booking_id)

    async def update_status(self, booking_id, target: BookingStatus, *,
                            reason: str = '', actor: str = 'system',
                            strict: bool = False) -> StatusUpdate:
        try:
            booking = self.bookings[booking_id]
        except KeyError:
            raise BookingNotFound(booking_id)

        if booking.status.is_terminal and target != booking.status and not strict:
            return StatusUpdate(copy.deepcopy(booking), applied=False)

        applied = booking.transition_to(target, reason=reason, actor=actor)
        self.events.extend(booking.pull_events())
        return StatusUpdate(copy.deepcopy(booking), applied=applied)


def lodging_service(reference: str = 'hotel-cartagena', base_price=150000, max_capacity: int | None = 4,
                    add_ons=(), currency: str = 'COP') -> ServiceDefinition:
    return ServiceDefinition(
        reference=reference,
        name='Hotel Cartagena',
        base_price=Money(base_price, currency) if base_price is not None else None,
        unit=PricingUnit.PER_NIGHT,
        max_capacity=max_capacity,
        add_ons=tuple(add_ons),
    )


def tour_service(reference: str = 'tour-tayrona', base_price=80000, max_capacity: int | None = 10,
                 add_ons=(), currency: str = 'COP') -> ServiceDefinition:
    return ServiceDefinition(
        reference=reference,
        name='Tayrona day tour',
        base_price=Money(base_price, currency) if base_price is not None else None,
        unit=PricingUnit.PER_PERSON,
        max_capacity=max_capacity,
        add_ons=tuple(add_ons),
    )


def sample_contact(**overrides) -> ContactInfo:
    values = {
        'full_name': 'Ana María Restrepo',
        'email': 'ana@example.com',
        'phone': '+573001234567',
        'document_id': '1020304050',
    }
    values.update(overrides)
    return ContactInfo(**values)


def sample_snapshot(service: ServiceDefinition | None = None, dates: DateRange | None = None,
                    party: Party | None = None, payment_method: PaymentMethod = PaymentMethod.CARD,
                    customer_token: str = 'customer-1', tax_rate='0.19') -> DraftSnapshot:
    service = service or lodging_service()
    dates = dates or DateRange(date(2024, 2, 10), date(2024, 2, 12))
    party = party or Party(adults=2)
    return DraftSnapshot(
        service_reference=service.reference,
        max_capacity=service.max_capacity,
        dates=dates,
        party=party,
        add_on_ids=(),
        contact=sample_contact(),
        payment_method=payment_method,
        quote=quote_for(service, dates, party, (), PricingPolicy(tax_rate=tax_rate)),
        customer_token=customer_token,
    )
