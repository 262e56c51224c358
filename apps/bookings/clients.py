"""
HTTP collaborators: service catalog and availability.

Both speak the marketplace REST API (camelCase JSON).
"""

import logging
from datetime import date
from typing import Dict

from django.conf import settings

from apps.bookings.application.ports import AvailabilityAnswer, AvailabilityOracle, ServiceCatalog
from apps.bookings.domain.entities import AddOn, Party, PricingUnit, ServiceDefinition
from apps.bookings.exceptions import ServiceMisconfigured, ServiceNotFound
from shared.domain.value_objects import DateRange, Money
from shared.infrastructure.http import RemoteServiceClient, RemoteServiceRejected, RemoteServiceUnavailable

logger = logging.getLogger(__name__)


def _parse_date(value) -> date | None:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def parse_service(payload: Dict, currency: str) -> ServiceDefinition:
    reference = str(payload.get('id') or payload.get('reference') or '')
    currency = payload.get('currency', currency)
    base_price = payload.get('basePrice')

    try:
        unit = PricingUnit(payload.get('unit', PricingUnit.PER_PERSON.value))
    except ValueError:
        raise ServiceMisconfigured(reference, f"unknown pricing unit {payload.get('unit')!r}")

    add_ons = tuple(
        AddOn(
            id=str(item['id']),
            name=item.get('name', ''),
            price=Money(item.get('price', 0), currency),
        )
        for item in payload.get('addOns') or ()
    )
    capacity = payload.get('maxCapacity')

    return ServiceDefinition(
        reference=reference,
        name=payload.get('name', ''),
        base_price=Money(base_price, currency) if base_price is not None else None,
        unit=unit,
        max_capacity=int(capacity) if capacity is not None else None,
        add_ons=add_ons,
    )


class HttpServiceCatalog(RemoteServiceClient, ServiceCatalog):
    service_name = 'catalog'

    def __init__(self, base_url: str | None = None, **kwargs):
        super().__init__(base_url or getattr(settings, 'CATALOG_API_URL', ''), **kwargs)

    async def get_service(self, service_reference: str) -> ServiceDefinition:
        try:
            payload = await self.get(f'services/{service_reference}/')
        except RemoteServiceRejected as e:
            if e.status_code == 404:
                raise ServiceNotFound(service_reference) from e
            raise

        from apps.bookings.conf import engine_settings

        service = parse_service({'id': service_reference, **payload}, engine_settings().currency)
        logger.debug(f"Loaded service {service.reference} ({service.unit.value})")
        return service


class HttpAvailabilityOracle(RemoteServiceClient, AvailabilityOracle):
    service_name = 'availability'

    def __init__(self, base_url: str | None = None, **kwargs):
        super().__init__(base_url or getattr(settings, 'AVAILABILITY_API_URL', ''), **kwargs)

    async def check_availability(self, service_reference: str, dates: DateRange,
                                 party: Party) -> AvailabilityAnswer:
        payload = await self.post('availability/check/', data={
            'serviceId': service_reference,
            'checkIn': dates.check_in.isoformat(),
            'checkOut': dates.check_out.isoformat() if dates.check_out else None,
            'adults': party.adults,
            'children': party.children,
        })

        if 'available' not in payload:
            raise RemoteServiceUnavailable(self.service_name, "response has no 'available' flag")

        alternatives = []
        for item in payload.get('alternativeDates') or ():
            check_in = _parse_date(item.get('checkIn') if isinstance(item, dict) else item)
            if check_in is None:
                continue
            check_out = _parse_date(item.get('checkOut')) if isinstance(item, dict) else None
            alternatives.append(DateRange(check_in, check_out))

        return AvailabilityAnswer(
            available=bool(payload.get('available')),
            reason=payload.get('reason') or '',
            alternative_dates=tuple(alternatives),
        )
