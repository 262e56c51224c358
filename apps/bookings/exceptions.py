"""Exceptions raised by the booking engine."""

from __future__ import annotations


class BookingError(Exception):
    """Base class for booking engine errors."""


class ServiceMisconfigured(BookingError):
    """The catalog entry cannot be priced (e.g. it has no base price)."""

    def __init__(self, service_reference: str, detail: str = "missing base price"):
        self.service_reference = service_reference
        super().__init__(f"Service {service_reference} is misconfigured: {detail}")


class ServiceNotFound(BookingError):
    def __init__(self, service_reference: str):
        self.service_reference = service_reference
        super().__init__(f"Service {service_reference} does not exist")


class WizardStateError(BookingError):
    """The wizard was driven in a way its current state does not allow."""


class BookingValidationRejected(BookingError):
    """The booking collaborator refused the draft as invalid."""

    def __init__(self, errors: dict):
        self.errors = errors
        super().__init__(f"Booking rejected: {errors}")


class AvailabilityLost(BookingError):
    """Availability changed between the gate check and the commit."""

    def __init__(self, reason: str, alternative_dates=()):
        self.reason = reason
        self.alternative_dates = tuple(alternative_dates)
        super().__init__(reason)


class BookingNotFound(BookingError):
    def __init__(self, booking_id):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class InvalidStatusTransition(BookingError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move booking from {getattr(current, 'value', current)} "
            f"to {getattr(target, 'value', target)}"
        )
