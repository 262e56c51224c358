"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class BookingCreated(DomainEvent):
    """
    Event: a draft was committed (-> PENDING)
    """
    booking_id: UUID
    booking_number: str
    service_reference: str
    total: Decimal
    currency: str


@dataclass(kw_only=True)
class BookingStatusChanged(DomainEvent):
    booking_id: UUID
    booking_number: str
    old_status: str
    new_status: str
    reason: str = ''


@dataclass(kw_only=True)
class BookingAwaitingPayment(BookingStatusChanged):
    """Event: hosted checkout session created (PENDING -> AWAITING_PAYMENT)"""


@dataclass(kw_only=True)
class BookingPaid(BookingStatusChanged):
    """
    Event: gateway approved the payment (-> PAID)

    Triggers:
    - Send booking confirmation to the customer
    """


@dataclass(kw_only=True)
class BookingRejected(BookingStatusChanged):
    """Event: gateway rejected the payment (-> REJECTED)"""


@dataclass(kw_only=True)
class BookingCancelled(BookingStatusChanged):
    """Event: customer cancelled before paying (-> CANCELLED)"""


def status_event_for(booking, old_status, reason: str = '') -> BookingStatusChanged:
    from apps.bookings.domain.entities import BookingStatus

    event_class = {
        BookingStatus.AWAITING_PAYMENT: BookingAwaitingPayment,
        BookingStatus.PAID: BookingPaid,
        BookingStatus.REJECTED: BookingRejected,
        BookingStatus.CANCELLED: BookingCancelled,
    }.get(booking.status, BookingStatusChanged)

    return event_class(
        aggregate_id=booking.id,
        booking_id=booking.id,
        booking_number=booking.booking_number,
        old_status=old_status.value,
        new_status=booking.status.value,
        reason=reason,
    )
