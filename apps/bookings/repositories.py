"""Django ORM implementation of the booking store."""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from asgiref.sync import sync_to_async
from django.core.exceptions import ValidationError  # type: ignore
from django.db import DatabaseError, IntegrityError, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from apps.bookings.application.ports import BookingStore, StatusUpdate
from apps.bookings.domain.draft import DraftSnapshot
from apps.bookings.domain.entities import (
    BookingRecord,
    BookingStatus,
    ContactInfo,
    Party,
    PaymentMethod,
    StatusChange,
)
from apps.bookings.domain.events import BookingCreated
from apps.bookings.exceptions import (
    AvailabilityLost,
    BookingNotFound,
    BookingValidationRejected,
    InvalidStatusTransition,
)
from apps.bookings.models import Booking, BookingStatusChange
from shared.application.uow import DjangoUnitOfWork
from shared.domain.value_objects import DateRange, Money
from shared.infrastructure.http import RemoteServiceUnavailable

logger = logging.getLogger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def to_domain(booking: Booking) -> BookingRecord:
    currency = booking.currency
    history = [
        StatusChange(
            from_status=BookingStatus(change.from_status) if change.from_status else None,
            to_status=BookingStatus(change.to_status),
            reason=change.reason,
            actor=change.actor,
            changed_at=change.created_at,
        )
        for change in booking.status_changes.all()
    ]
    return BookingRecord(
        id=booking.id,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        booking_number=booking.booking_number,
        idempotency_key=booking.idempotency_key,
        service_reference=booking.service_reference,
        dates=DateRange(booking.check_in, booking.check_out),
        party=Party(adults=booking.adults, children=booking.children),
        add_on_ids=tuple(booking.add_on_ids or ()),
        contact=ContactInfo(
            full_name=booking.full_name,
            email=booking.email,
            phone=booking.phone,
            document_id=booking.document_id,
            special_requests=booking.special_requests,
        ),
        payment_method=PaymentMethod(booking.payment_method),
        subtotal=Money(booking.subtotal, currency),
        tax=Money(booking.tax, currency),
        total=Money(booking.total, currency),
        nights=booking.nights,
        customer_token=booking.customer_token,
        status=BookingStatus(booking.status),
        status_history=history,
    )


def _money_field(money: Money) -> Decimal:
    # Stored with two decimals; the exact quote is rounded only here.
    return money.amount.quantize(Decimal("0.01"))


class DjangoBookingStore(BookingStore):
    """
    Bookings persisted with the Django ORM.

    Room for a new booking is checked under row locks on the overlapping
    active bookings of the same service; services without a capacity
    are limited by the availability collaborator only.
    """

    async def create_booking(self, snapshot: DraftSnapshot, idempotency_key: str) -> BookingRecord:
        return await sync_to_async(self._create_booking)(snapshot, idempotency_key)

    async def get_booking(self, booking_id: UUID) -> BookingRecord:
        return await sync_to_async(self._get_booking)(booking_id)

    async def update_status(self, booking_id: UUID, target: BookingStatus, *,
                            reason: str = '', actor: str = 'system',
                            strict: bool = False) -> StatusUpdate:
        return await sync_to_async(self._update_status)(booking_id, target, reason, actor, strict)

    # ----- sync implementations -----

    def _get_booking(self, booking_id: UUID) -> BookingRecord:
        try:
            booking = Booking.objects.prefetch_related("status_changes").get(pk=booking_id)
        except (Booking.DoesNotExist, ValidationError, ValueError):
            raise BookingNotFound(booking_id)
        return to_domain(booking)

    def _create_booking(self, snapshot: DraftSnapshot, idempotency_key: str) -> BookingRecord:
        existing = Booking.objects.filter(idempotency_key=idempotency_key).first()
        if existing is not None:
            logger.info(f"Commit {idempotency_key} already stored as {existing.booking_number}")
            return to_domain(existing)

        try:
            with DjangoUnitOfWork() as uow:
                self._ensure_room(snapshot)
                booking = self._build(snapshot, idempotency_key)
                try:
                    booking.full_clean(exclude=["idempotency_key", "booking_number"])
                except ValidationError as e:
                    raise BookingValidationRejected(e.message_dict)
                booking.save(force_insert=True)
                BookingStatusChange.objects.create(
                    booking=booking,
                    from_status="",
                    to_status=Booking.Status.PENDING,
                    reason="booking committed",
                    actor="commit",
                )

                record = to_domain(booking)
                record.record_event(BookingCreated(
                    booking_id=record.id,
                    booking_number=record.booking_number,
                    service_reference=record.service_reference,
                    total=record.total.amount,
                    currency=record.total.currency,
                ))
                uow.collect_events(record)
        except IntegrityError:
            # A concurrent commit with the same key won the insert.
            existing = Booking.objects.filter(idempotency_key=idempotency_key).first()
            if existing is None:
                raise
            logger.info(f"Commit {idempotency_key} raced; returning {existing.booking_number}")
            return to_domain(existing)
        except DatabaseError as e:
            logger.error(f"Database error while committing {idempotency_key}: {e}")
            raise RemoteServiceUnavailable("booking-store", str(e)) from e

        logger.info(f"Stored booking {record.booking_number} for {snapshot.service_reference}")
        return record

    def _ensure_room(self, snapshot: DraftSnapshot) -> None:
        if snapshot.max_capacity is None:
            return

        dates = snapshot.dates
        candidates = _lock_queryset_if_possible(
            Booking.objects.filter(
                service_reference=snapshot.service_reference,
                status__in=Booking.ACTIVE_STATUSES,
                check_in__lt=dates.occupied_until,
                check_in__gte=dates.check_in - timedelta(days=366),
            )
        )
        taken = sum(
            booking.head_count
            for booking in candidates
            if booking.occupied_until > dates.check_in
        )
        if taken + snapshot.party.head_count > snapshot.max_capacity:
            remaining = max(0, snapshot.max_capacity - taken)
            raise AvailabilityLost(
                f"Only {remaining} places left for {dates}; the party needs {snapshot.party.head_count}."
            )

    @staticmethod
    def _build(snapshot: DraftSnapshot, idempotency_key: str) -> Booking:
        quote = snapshot.quote
        return Booking(
            idempotency_key=idempotency_key,
            customer_token=snapshot.customer_token,
            service_reference=snapshot.service_reference,
            check_in=snapshot.dates.check_in,
            check_out=snapshot.dates.check_out,
            adults=snapshot.party.adults,
            children=snapshot.party.children,
            add_on_ids=list(snapshot.add_on_ids),
            full_name=snapshot.contact.full_name,
            email=snapshot.contact.email,
            phone=snapshot.contact.phone,
            document_id=snapshot.contact.document_id,
            special_requests=snapshot.contact.special_requests,
            payment_method=snapshot.payment_method.value,
            currency=quote.currency,
            nights=quote.nights,
            subtotal=_money_field(quote.subtotal),
            tax=_money_field(quote.tax),
            total=_money_field(quote.total),
        )

    def _update_status(self, booking_id: UUID, target: BookingStatus, reason: str,
                       actor: str, strict: bool) -> StatusUpdate:
        with DjangoUnitOfWork() as uow:
            try:
                booking = _lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).get()
            except (Booking.DoesNotExist, ValidationError, ValueError):
                raise BookingNotFound(booking_id)

            record = to_domain(booking)
            if record.status.is_terminal and target != record.status and not strict:
                return StatusUpdate(record, applied=False)

            try:
                applied = record.transition_to(target, reason=reason, actor=actor)
            except InvalidStatusTransition:
                logger.warning(f"Refused {record.status.value} -> {target.value} for {record.booking_number}")
                raise

            if applied:
                previous = booking.status
                booking.status = target.value
                booking.save(update_fields=["status", "updated_at"])
                BookingStatusChange.objects.create(
                    booking=booking,
                    from_status=previous,
                    to_status=target.value,
                    reason=reason[:255],
                    actor=actor[:64],
                )
                uow.collect_events(record)

        return StatusUpdate(record, applied=applied)
