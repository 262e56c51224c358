"""In-memory payment collaborators for tests."""

import asyncio
import copy
from typing import Dict, List
from uuid import UUID, uuid4

from apps.bookings.domain.entities import PaymentMethod
from apps.payments.domain import AttemptStatus, PaymentAttempt
from apps.payments.gateway import SandboxPaymentGateway
from apps.payments.ports import PaymentAttemptStore
from shared.domain.value_objects import Money


class InMemoryPaymentAttemptStore(PaymentAttemptStore):

    def __init__(self):
        self.attempts: Dict[UUID, PaymentAttempt] = {}
        self._order: List[UUID] = []

    async def create(self, booking_id: UUID, method: PaymentMethod,
                     amount: Money, fee: Money, idempotency_key: str = '') -> PaymentAttempt:
        attempt = PaymentAttempt(
            booking_id=booking_id,
            method=method,
            amount=amount,
            fee=fee,
            idempotency_key=idempotency_key or uuid4().hex,
        )
        self.attempts[attempt.id] = attempt
        self._order.append(attempt.id)
        return copy.deepcopy(attempt)

    async def save(self, attempt: PaymentAttempt) -> PaymentAttempt:
        self.attempts[attempt.id] = copy.deepcopy(attempt)
        return attempt

    async def get_by_transaction_id(self, transaction_id: str) -> PaymentAttempt | None:
        for attempt_id in reversed(self._order):
            attempt = self.attempts[attempt_id]
            if attempt.gateway_transaction_id == transaction_id:
                return copy.deepcopy(attempt)
        return None

    async def latest_for_booking(self, booking_id: UUID,
                                 status: AttemptStatus | None = None) -> PaymentAttempt | None:
        for attempt_id in reversed(self._order):
            attempt = self.attempts[attempt_id]
            if attempt.booking_id == booking_id and (status is None or attempt.status is status):
                return copy.deepcopy(attempt)
        return None

    async def list_for_booking(self, booking_id: UUID) -> List[PaymentAttempt]:
        return [
            copy.deepcopy(self.attempts[attempt_id])
            for attempt_id in self._order
            if self.attempts[attempt_id].booking_id == booking_id
        ]

    async def awaiting_with_transaction(self, older_than_minutes: int = 0) -> List[PaymentAttempt]:
        return [
            copy.deepcopy(attempt)
            for attempt in self.attempts.values()
            if attempt.status is AttemptStatus.AWAITING and attempt.gateway_transaction_id
        ]


class ScriptedPaymentGateway(SandboxPaymentGateway):
    """
    Sandbox gateway whose calls can be made to fail.

    `fail_with` is raised by the next call of the named operation;
    `hang` makes the named operations never answer.
    """

    def __init__(self, config: dict | None = None):
        super().__init__(config)
        self.fail_with: Dict[str, Exception] = {}
        self.hang = set()
        self.calls: List[str] = []
        self.idempotency_keys: List[str] = []

    async def _script(self, operation: str):
        self.calls.append(operation)
        if operation in self.hang:
            await asyncio.Event().wait()
        error = self.fail_with.pop(operation, None)
        if error is not None:
            raise error

    async def create_checkout_session(self, booking_id, amount, **kwargs):
        await self._script('create_checkout_session')
        return await super().create_checkout_session(booking_id, amount, **kwargs)

    async def process_payment(self, booking_id, amount, method, payer, **kwargs):
        self.idempotency_keys.append(kwargs.get('idempotency_key', ''))
        await self._script('process_payment')
        return await super().process_payment(booking_id, amount, method, payer, **kwargs)

    async def get_payment_status(self, transaction_id):
        await self._script('get_payment_status')
        return await super().get_payment_status(transaction_id)
