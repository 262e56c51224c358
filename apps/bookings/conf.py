"""
Engine settings

`settings.BOOKING_ENGINE` is a plain dict so environments can override
single keys; `engine_settings()` merges it over the defaults below.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict

from django.conf import settings

from apps.bookings.domain.entities import PaymentMethod
from apps.bookings.domain.pricing import PricingPolicy
from shared.domain.value_objects import Money

DEFAULTS = {
    'CURRENCY': 'COP',
    'CHILD_WEIGHT': '0.5',
    'TAX_RATE': '0.19',
    'INCLUDE_ADD_ONS_STEP': True,
    'AVAILABILITY_TIMEOUT': 10.0,
    'COMMIT_TIMEOUT': 15.0,
    'PAYMENT_TIMEOUT': 30.0,
    'STATUS_QUERY_TIMEOUT': 10.0,
    'COMMIT_RETRY_ATTEMPTS': 3,
    'RETRY_BACKOFF_SECONDS': 0.5,
    'PROCESSING_FEES': {
        'gateway-redirect': 0,
        'card': 0,
        'bank-debit': 3500,
        'wallet': 1000,
    },
    'CATALOG_BACKEND': 'apps.bookings.clients.HttpServiceCatalog',
    'AVAILABILITY_BACKEND': 'apps.bookings.clients.HttpAvailabilityOracle',
    'BOOKING_STORE_BACKEND': 'apps.bookings.repositories.DjangoBookingStore',
    'RECHECK_AFTER_MINUTES': 10,
}


@dataclass(frozen=True)
class EngineSettings:
    currency: str
    policy: PricingPolicy
    include_add_ons_step: bool
    availability_timeout: float
    commit_timeout: float
    payment_timeout: float
    status_query_timeout: float
    commit_retry_attempts: int
    retry_backoff_seconds: float
    catalog_backend: str
    availability_backend: str
    booking_store_backend: str
    recheck_after_minutes: int
    processing_fees: Dict[PaymentMethod, Money] = field(default_factory=dict)


def engine_settings() -> EngineSettings:
    raw = {**DEFAULTS, **getattr(settings, 'BOOKING_ENGINE', {})}
    currency = raw['CURRENCY']
    fees = {**DEFAULTS['PROCESSING_FEES'], **raw['PROCESSING_FEES']}

    return EngineSettings(
        currency=currency,
        policy=PricingPolicy(
            tax_rate=Decimal(str(raw['TAX_RATE'])),
            child_weight=Decimal(str(raw['CHILD_WEIGHT'])),
        ),
        include_add_ons_step=bool(raw['INCLUDE_ADD_ONS_STEP']),
        availability_timeout=float(raw['AVAILABILITY_TIMEOUT']),
        commit_timeout=float(raw['COMMIT_TIMEOUT']),
        payment_timeout=float(raw['PAYMENT_TIMEOUT']),
        status_query_timeout=float(raw['STATUS_QUERY_TIMEOUT']),
        commit_retry_attempts=int(raw['COMMIT_RETRY_ATTEMPTS']),
        retry_backoff_seconds=float(raw['RETRY_BACKOFF_SECONDS']),
        catalog_backend=raw['CATALOG_BACKEND'],
        availability_backend=raw['AVAILABILITY_BACKEND'],
        booking_store_backend=raw['BOOKING_STORE_BACKEND'],
        recheck_after_minutes=int(raw['RECHECK_AFTER_MINUTES']),
        processing_fees={
            PaymentMethod(method): Money(amount, currency)
            for method, amount in fees.items()
        },
    )
