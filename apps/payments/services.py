"""Wiring of the payment components to the configured collaborators."""

from django.utils.module_loading import import_string

from apps.bookings.application.ports import BookingStore
from apps.bookings.conf import engine_settings
from apps.payments.gateway import get_payment_gateway
from apps.payments.handoff import PaymentHandoff
from apps.payments.ledger import BookingStatusWriter
from apps.payments.reconciliation import PaymentReconciler
from apps.payments.repositories import DjangoPaymentAttemptStore

_writers = {}


def get_booking_store() -> BookingStore:
    return import_string(engine_settings().booking_store_backend)()


def get_status_writer(store: BookingStore | None = None) -> BookingStatusWriter:
    """
    Writers are shared per store class so the per-booking locks cover
    every caller in this process.
    """
    store = store or get_booking_store()
    key = type(store)
    if key not in _writers:
        _writers[key] = BookingStatusWriter(store)
    return _writers[key]


def build_payment_handoff(store: BookingStore | None = None) -> PaymentHandoff:
    conf = engine_settings()
    return PaymentHandoff(
        get_payment_gateway(),
        DjangoPaymentAttemptStore(),
        get_status_writer(store),
        fees=conf.processing_fees,
        timeout=conf.payment_timeout,
    )


def build_reconciler(store: BookingStore | None = None) -> PaymentReconciler:
    conf = engine_settings()
    return PaymentReconciler(
        get_payment_gateway(),
        DjangoPaymentAttemptStore(),
        get_status_writer(store),
        status_query_timeout=conf.status_query_timeout,
    )
