"""
Domain event handlers for the booking engine.

Subscribed to the message bus from BookingsConfig.ready(); they run
after the transaction that produced the event has committed.
"""

import structlog

from shared.application.message_bus import message_bus

from .domain.events import (
    BookingAwaitingPayment,
    BookingCancelled,
    BookingCreated,
    BookingPaid,
    BookingRejected,
    BookingStatusChanged,
)

audit_logger = structlog.get_logger("apps.bookings.audit")

AUDITED_EVENTS = (
    BookingCreated,
    BookingStatusChanged,
    BookingAwaitingPayment,
    BookingPaid,
    BookingRejected,
    BookingCancelled,
)


def audit_booking_event(event) -> None:
    data = event.to_dict()
    audit_logger.info(
        "booking.event",
        event_type=data["event_type"],
        event_id=data["event_id"],
        occurred_at=data["occurred_at"],
        **data["payload"],
    )


def send_confirmation_on_paid(event: BookingPaid) -> None:
    from .tasks import send_booking_confirmation

    send_booking_confirmation.delay(str(event.booking_id))


def register_handlers() -> None:
    # The bus dispatches on the exact event class, so each subclass is listed.
    for event_type in AUDITED_EVENTS:
        message_bus.subscribe(event_type, audit_booking_event)
    message_bus.subscribe(BookingPaid, send_confirmation_on_paid)
