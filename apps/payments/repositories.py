"""Django ORM implementation of the payment attempt store."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import List
from uuid import UUID, uuid4

from asgiref.sync import sync_to_async
from django.utils import timezone  # type: ignore

from apps.bookings.domain.entities import PaymentMethod
from apps.payments.domain import AttemptStatus, PaymentAttempt
from apps.payments.models import PaymentAttempt as PaymentAttemptModel
from apps.payments.ports import PaymentAttemptStore
from shared.domain.value_objects import Money


def to_domain(row: PaymentAttemptModel) -> PaymentAttempt:
    return PaymentAttempt(
        id=row.id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        booking_id=row.booking_id,
        method=PaymentMethod(row.method),
        amount=Money(row.amount, row.currency),
        fee=Money(row.fee, row.currency),
        status=AttemptStatus(row.status),
        idempotency_key=row.idempotency_key,
        gateway_transaction_id=row.gateway_transaction_id,
        checkout_session_id=row.checkout_session_id,
        redirect_url=row.redirect_url,
        gateway_status=row.gateway_status,
        error_message=row.error_message,
    )


def _cents(money: Money) -> Decimal:
    return money.amount.quantize(Decimal("0.01"))


class DjangoPaymentAttemptStore(PaymentAttemptStore):

    async def create(self, booking_id: UUID, method: PaymentMethod,
                     amount: Money, fee: Money, idempotency_key: str = '') -> PaymentAttempt:
        return await sync_to_async(self._create)(booking_id, method, amount, fee, idempotency_key)

    async def save(self, attempt: PaymentAttempt) -> PaymentAttempt:
        return await sync_to_async(self._save)(attempt)

    async def get_by_transaction_id(self, transaction_id: str) -> PaymentAttempt | None:
        return await sync_to_async(self._first)(gateway_transaction_id=transaction_id)

    async def latest_for_booking(self, booking_id: UUID,
                                 status: AttemptStatus | None = None) -> PaymentAttempt | None:
        filters = {'booking_id': booking_id}
        if status is not None:
            filters['status'] = status.value
        return await sync_to_async(self._first)(**filters)

    async def list_for_booking(self, booking_id: UUID) -> List[PaymentAttempt]:
        return await sync_to_async(self._list)(booking_id)

    async def awaiting_with_transaction(self, older_than_minutes: int = 0) -> List[PaymentAttempt]:
        return await sync_to_async(self._awaiting)(older_than_minutes)

    # ----- sync implementations -----

    def _create(self, booking_id, method, amount, fee, idempotency_key) -> PaymentAttempt:
        row = PaymentAttemptModel.objects.create(
            booking_id=booking_id,
            method=method.value,
            idempotency_key=idempotency_key or uuid4().hex,
            amount=_cents(amount),
            fee=_cents(fee),
            currency=amount.currency,
        )
        return to_domain(row)

    def _save(self, attempt: PaymentAttempt) -> PaymentAttempt:
        PaymentAttemptModel.objects.filter(pk=attempt.id).update(
            status=attempt.status.value,
            gateway_transaction_id=attempt.gateway_transaction_id,
            checkout_session_id=attempt.checkout_session_id,
            redirect_url=attempt.redirect_url,
            gateway_status=attempt.gateway_status,
            error_message=attempt.error_message[:255],
            updated_at=timezone.now(),
        )
        return attempt

    def _first(self, **filters) -> PaymentAttempt | None:
        row = PaymentAttemptModel.objects.filter(**filters).order_by("-created_at").first()
        return to_domain(row) if row else None

    def _list(self, booking_id) -> List[PaymentAttempt]:
        return [to_domain(row) for row in PaymentAttemptModel.objects.filter(booking_id=booking_id)]

    def _awaiting(self, older_than_minutes: int) -> List[PaymentAttempt]:
        cutoff = timezone.now() - timedelta(minutes=older_than_minutes)
        rows = PaymentAttemptModel.objects.filter(
            status=PaymentAttemptModel.Status.AWAITING,
            gateway_transaction_id__isnull=False,
            updated_at__lte=cutoff,
        ).exclude(gateway_transaction_id="")
        return [to_domain(row) for row in rows]
