"""
Booking Domain Entities

Core business entities for the booking domain:
- ServiceDefinition / AddOn: what is being booked, as the catalog describes it
- Party, ContactInfo, PayerDetails: customer input captured by the wizard
- BookingRecord: the committed booking aggregate and its status FSM
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Tuple
from uuid import UUID

from shared.domain.base import Aggregate, ValueObject
from shared.domain.value_objects import DateRange, Money


class PricingUnit(Enum):
    """
    How the catalog prices a service

    Lodging is charged per night; tours and activities per person for
    the whole trip.
    """
    PER_NIGHT = 'per-night'
    PER_PERSON = 'per-person'

    @property
    def is_lodging(self) -> bool:
        return self is PricingUnit.PER_NIGHT


class PaymentMethod(Enum):
    GATEWAY_REDIRECT = 'gateway-redirect'  # hosted checkout, returns via URL
    CARD = 'card'
    BANK_DEBIT = 'bank-debit'
    WALLET = 'wallet'

    @property
    def is_direct(self) -> bool:
        return self is not PaymentMethod.GATEWAY_REDIRECT


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> AWAITING_PAYMENT (hosted checkout session created)
    - PENDING / AWAITING_PAYMENT -> PAID (gateway approved)
    - PENDING / AWAITING_PAYMENT -> REJECTED (gateway rejected)
    - PENDING / AWAITING_PAYMENT -> CANCELLED (customer cancelled)

    PAID, REJECTED and CANCELLED are final.
    """
    PENDING = 'pending'
    AWAITING_PAYMENT = 'awaiting-payment'
    PAID = 'paid'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.PAID, BookingStatus.REJECTED, BookingStatus.CANCELLED)


ALLOWED_TRANSITIONS: Dict[BookingStatus, Tuple[BookingStatus, ...]] = {
    BookingStatus.PENDING: (
        BookingStatus.AWAITING_PAYMENT,
        BookingStatus.PAID,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    ),
    BookingStatus.AWAITING_PAYMENT: (
        BookingStatus.PAID,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    ),
    BookingStatus.PAID: (),
    BookingStatus.REJECTED: (),
    BookingStatus.CANCELLED: (),
}

ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.AWAITING_PAYMENT, BookingStatus.PAID)


@dataclass(frozen=True)
class AddOn(ValueObject):
    """Optional priced extra; not scaled by party size."""
    id: str
    name: str
    price: Money


@dataclass(frozen=True)
class ServiceDefinition(ValueObject):
    """Catalog entry for a bookable service or package."""
    reference: str
    name: str
    base_price: Money | None
    unit: PricingUnit
    max_capacity: int | None = None
    add_ons: Tuple[AddOn, ...] = ()

    def find_add_on(self, add_on_id: str) -> AddOn | None:
        for add_on in self.add_ons:
            if add_on.id == add_on_id:
                return add_on
        return None

    @property
    def requires_check_out(self) -> bool:
        return self.unit.is_lodging


@dataclass(frozen=True)
class Party(ValueObject):
    adults: int = 1
    children: int = 0

    def __post_init__(self):
        if self.adults < 0 or self.children < 0:
            raise ValueError("Party counts cannot be negative")

    @property
    def head_count(self) -> int:
        return self.adults + self.children


@dataclass(frozen=True)
class ContactInfo(ValueObject):
    full_name: str
    email: str
    phone: str
    document_id: str
    special_requests: str = ''

    REQUIRED_FIELDS = ('full_name', 'email', 'phone', 'document_id')

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED_FIELDS if not str(getattr(self, name) or '').strip()]

    def __repr__(self):
        # Phone and document number stay out of logs and tracebacks.
        return f"ContactInfo(full_name={self.full_name!r}, email={self.email!r})"


@dataclass(frozen=True)
class PayerDetails(ValueObject):
    """
    What the gateway needs to charge a direct payment

    - card: tokenized card, holder name, holder document number
    - bank-debit: bank code
    - wallet: document number linked to the wallet
    """
    card_token: str = ''
    holder_name: str = ''
    document_number: str = ''
    bank_code: str = ''
    email: str = ''

    REQUIRED_BY_METHOD = {
        PaymentMethod.GATEWAY_REDIRECT: (),
        PaymentMethod.CARD: ('card_token', 'holder_name', 'document_number'),
        PaymentMethod.BANK_DEBIT: ('bank_code',),
        PaymentMethod.WALLET: ('document_number',),
    }

    def missing_for(self, method: PaymentMethod) -> List[str]:
        return [
            name for name in self.REQUIRED_BY_METHOD[method]
            if not getattr(self, name).strip()
        ]

    def __repr__(self):
        return f"PayerDetails(holder_name={self.holder_name!r}, bank_code={self.bank_code!r})"


@dataclass(frozen=True)
class StatusChange(ValueObject):
    from_status: BookingStatus | None
    to_status: BookingStatus
    reason: str = ''
    actor: str = 'system'
    changed_at: datetime = field(default_factory=datetime.now)


@dataclass(kw_only=True, eq=False)
class BookingRecord(Aggregate):
    """
    Booking Aggregate Root

    Created once when a draft is committed. After that only `status`
    changes, and only through `transition_to`.

    Key invariants:
    - New bookings start in PENDING
    - Terminal statuses (PAID, REJECTED, CANCELLED) are never left
    - Every applied change is appended to `status_history`
    """

    booking_number: str  # e.g. BK20240210153012A1B2C3
    idempotency_key: str

    service_reference: str
    dates: DateRange
    party: Party
    add_on_ids: Tuple[str, ...]
    contact: ContactInfo
    payment_method: PaymentMethod

    subtotal: Money
    tax: Money
    total: Money
    nights: int = 1

    customer_token: str = ''
    status: BookingStatus = BookingStatus.PENDING
    status_history: List[StatusChange] = field(default_factory=list)

    def transition_to(self, target: BookingStatus, *, reason: str = '', actor: str = 'system') -> bool:
        """
        Move to `target`.

        Returns False when the booking already has that status, so a
        repeated callback is a no-op. Raises InvalidStatusTransition for
        any move out of a terminal status or not listed in the FSM.
        """
        from apps.bookings.exceptions import InvalidStatusTransition

        if target == self.status:
            return False
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(self.status, target)

        from apps.bookings.domain.events import status_event_for

        previous = self.status
        self.status = target
        self.status_history.append(
            StatusChange(from_status=previous, to_status=target, reason=reason, actor=actor)
        )
        self.touch()
        self.record_event(status_event_for(self, previous, reason))
        return True

    @property
    def is_settled(self) -> bool:
        return self.status.is_terminal

    def blocks_dates(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __str__(self):
        return f"Booking {self.booking_number} ({self.status.value})"

    def __repr__(self):
        return (
            f"BookingRecord(id={self.id}, booking_number={self.booking_number}, "
            f"status={self.status.value}, dates={self.dates})"
        )
