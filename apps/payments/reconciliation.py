"""
Payment Reconciliation

Applies the gateway's return signal (browser return URL, server
notification or a periodic re-check) to the booking it belongs to,
exactly once:

1. Parse the correlation fields. No status code, or neither a
   transaction id nor an external reference, is a malformed return.
2. Map the gateway's status vocabulary onto paid / awaiting-payment /
   rejected. Unknown statuses are malformed, never guessed.
3. Re-query the gateway by transaction id. If it disagrees or cannot be
   reached the reported status is still used, flagged as unconfirmed.
4. Apply the status under the per-booking lock. A repeated callback
   finds the status already set and changes nothing.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping
from uuid import UUID

from apps.bookings.domain.entities import BookingStatus
from apps.bookings.exceptions import BookingNotFound
from apps.payments.domain import AttemptStatus, PaymentAttempt
from apps.payments.exceptions import GatewayRequestRejected, GatewayUnavailable, MalformedReturn
from apps.payments.ledger import BookingStatusWriter
from apps.payments.ports import PaymentAttemptStore, PaymentGateway

logger = logging.getLogger(__name__)

STATUS_UNKNOWN_MESSAGE = (
    "We could not confirm the payment status. Please check your booking status again in a few minutes."
)

# Generic names first, then the hosted-checkout provider's own names.
TRANSACTION_ID_PARAMS = ('transactionId', 'collection_id', 'payment_id')
STATUS_CODE_PARAMS = ('statusCode', 'collection_status', 'status')
EXTERNAL_REFERENCE_PARAMS = ('externalReference', 'external_reference')
PAYMENT_TYPE_PARAMS = ('paymentType', 'payment_type')

EMPTY_VALUES = ('', 'null', 'none', 'undefined')


class ReconciliationOutcome(Enum):
    PAID = 'paid'
    AWAITING_PAYMENT = 'awaiting-payment'
    REJECTED = 'rejected'
    MALFORMED = 'malformed-return'


STATUS_MAPPING = {
    'approved': ReconciliationOutcome.PAID,
    'pending': ReconciliationOutcome.AWAITING_PAYMENT,
    'in_process': ReconciliationOutcome.AWAITING_PAYMENT,
    'rejected': ReconciliationOutcome.REJECTED,
    'cancelled': ReconciliationOutcome.REJECTED,
}

OUTCOME_TO_BOOKING_STATUS = {
    ReconciliationOutcome.PAID: BookingStatus.PAID,
    ReconciliationOutcome.AWAITING_PAYMENT: BookingStatus.AWAITING_PAYMENT,
    ReconciliationOutcome.REJECTED: BookingStatus.REJECTED,
}

OUTCOME_TO_ATTEMPT_STATUS = {
    ReconciliationOutcome.PAID: AttemptStatus.APPROVED,
    ReconciliationOutcome.AWAITING_PAYMENT: AttemptStatus.AWAITING,
    ReconciliationOutcome.REJECTED: AttemptStatus.DECLINED,
}

OUTCOME_MESSAGES = {
    ReconciliationOutcome.PAID: "Payment approved. Your booking is confirmed.",
    ReconciliationOutcome.AWAITING_PAYMENT: "Payment is being processed. Check back later for the final status.",
    ReconciliationOutcome.REJECTED: "Payment was rejected. No charge was made.",
    ReconciliationOutcome.MALFORMED: STATUS_UNKNOWN_MESSAGE,
}


@dataclass(frozen=True)
class ReturnParams:
    transaction_id: str | None
    status_code: str
    external_reference: str | None = None
    payment_type: str = ''
    merchant_order_id: str = ''
    preference_id: str = ''


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    booking_id: UUID | None
    confirmed: bool
    applied: bool
    message: str
    booking_status: BookingStatus | None = None

    @property
    def is_malformed(self) -> bool:
        return self.outcome is ReconciliationOutcome.MALFORMED


def _first(params: Mapping, names) -> str | None:
    for name in names:
        value = params.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value.lower() not in EMPTY_VALUES:
            return value
    return None


def parse_return_params(params: Mapping) -> ReturnParams:
    """Raises MalformedReturn when the return cannot be correlated."""
    transaction_id = _first(params, TRANSACTION_ID_PARAMS)
    status_code = _first(params, STATUS_CODE_PARAMS)
    external_reference = _first(params, EXTERNAL_REFERENCE_PARAMS)

    if not status_code:
        raise MalformedReturn("missing status code")
    if not transaction_id and not external_reference:
        raise MalformedReturn("missing transaction id and external reference")

    return ReturnParams(
        transaction_id=transaction_id,
        status_code=status_code,
        external_reference=external_reference,
        payment_type=_first(params, PAYMENT_TYPE_PARAMS) or '',
        merchant_order_id=_first(params, ('merchant_order_id',)) or '',
        preference_id=_first(params, ('preference_id',)) or '',
    )


def map_gateway_status(status_code: str) -> ReconciliationOutcome:
    return STATUS_MAPPING.get((status_code or '').strip().lower(), ReconciliationOutcome.MALFORMED)


class PaymentReconciler:

    def __init__(self, gateway: PaymentGateway, attempts: PaymentAttemptStore,
                 writer: BookingStatusWriter, status_query_timeout: float = 10.0):
        self.gateway = gateway
        self.attempts = attempts
        self.writer = writer
        self.status_query_timeout = status_query_timeout

    async def reconcile(self, params, *, source: str = 'return') -> ReconciliationResult:
        if isinstance(params, ReturnParams):
            parsed = params
        else:
            try:
                parsed = parse_return_params(params)
            except MalformedReturn as e:
                logger.error(f"Malformed payment {source}: {e} (keys={sorted(params)})")
                return self._malformed(None)

        outcome = map_gateway_status(parsed.status_code)
        if outcome is ReconciliationOutcome.MALFORMED:
            logger.error(f"Unknown gateway status {parsed.status_code!r} in payment {source}")
            return self._malformed(self._parse_booking_id(parsed.external_reference))

        attempt = None
        if parsed.transaction_id:
            attempt = await self.attempts.get_by_transaction_id(parsed.transaction_id)

        booking_id = attempt.booking_id if attempt else self._parse_booking_id(parsed.external_reference)
        if booking_id is None:
            logger.error(
                f"Payment {source} for transaction {parsed.transaction_id} "
                f"cannot be correlated (reference={parsed.external_reference!r})"
            )
            return self._malformed(None)

        if attempt and parsed.external_reference and parsed.external_reference != str(attempt.booking_id):
            logger.error(
                f"Payment {source} reference {parsed.external_reference} does not match "
                f"transaction {parsed.transaction_id} of booking {attempt.booking_id}"
            )
            return self._malformed(attempt.booking_id)

        confirmed = await self._confirm(parsed, outcome)

        try:
            async with self.writer.serialized(booking_id):
                if attempt is None:
                    attempt = await self._find_open_attempt(booking_id)
                if attempt is not None:
                    if attempt.settle(
                        OUTCOME_TO_ATTEMPT_STATUS[outcome],
                        transaction_id=parsed.transaction_id,
                        gateway_status=parsed.status_code.lower(),
                    ):
                        await self.attempts.save(attempt)

                update = await self.writer.apply(
                    booking_id,
                    OUTCOME_TO_BOOKING_STATUS[outcome],
                    reason=self._reason(parsed, confirmed),
                    actor=f"reconciliation:{source}",
                )
        except BookingNotFound:
            logger.error(f"Payment {source} references unknown booking {booking_id}")
            return self._malformed(None)

        booking = update.booking
        if not update.applied:
            logger.info(
                f"Payment {source} for booking {booking.booking_number} ({parsed.status_code}) "
                f"was a no-op; booking is {booking.status.value}"
            )

        return ReconciliationResult(
            outcome=outcome,
            booking_id=booking.id,
            confirmed=confirmed,
            applied=update.applied,
            message=OUTCOME_MESSAGES[outcome],
            booking_status=booking.status,
        )

    async def recheck(self, booking_id: UUID, *, source: str = 'status-check') -> ReconciliationResult:
        """
        Ask the gateway about the booking's latest attempt and apply the
        answer. Used by the manual status-check endpoint and the periodic
        re-check task.
        """
        attempt = await self.attempts.latest_for_booking(booking_id)
        if attempt is None or not attempt.gateway_transaction_id:
            booking = await self.writer.store.get_booking(booking_id)
            return ReconciliationResult(
                outcome=self._outcome_for_status(booking.status),
                booking_id=booking.id,
                confirmed=False,
                applied=False,
                message=self._message_for_status(booking.status),
                booking_status=booking.status,
            )

        status = await self._query_status(attempt.gateway_transaction_id)
        if status is None:
            booking = await self.writer.store.get_booking(booking_id)
            return ReconciliationResult(
                outcome=ReconciliationOutcome.MALFORMED,
                booking_id=booking.id,
                confirmed=False,
                applied=False,
                message=STATUS_UNKNOWN_MESSAGE,
                booking_status=booking.status,
            )

        return await self.reconcile(
            ReturnParams(
                transaction_id=attempt.gateway_transaction_id,
                status_code=status.status,
                external_reference=str(attempt.booking_id),
            ),
            source=source,
        )

    async def _confirm(self, parsed: ReturnParams, outcome: ReconciliationOutcome) -> bool:
        if not parsed.transaction_id:
            logger.warning(f"No transaction id to confirm {parsed.status_code} for {parsed.external_reference}")
            return False

        status = await self._query_status(parsed.transaction_id)
        if status is None:
            logger.warning(f"Using unconfirmed status {parsed.status_code} for transaction {parsed.transaction_id}")
            return False

        queried = map_gateway_status(status.status)
        if queried is not outcome:
            logger.warning(
                f"Gateway reports {status.status!r} for transaction {parsed.transaction_id}, "
                f"return said {parsed.status_code!r}; using the reported status unconfirmed"
            )
            return False
        return True

    async def _query_status(self, transaction_id: str):
        try:
            return await asyncio.wait_for(
                self.gateway.get_payment_status(transaction_id),
                timeout=self.status_query_timeout,
            )
        except (asyncio.TimeoutError, GatewayUnavailable, GatewayRequestRejected) as e:
            logger.warning(f"Status query for transaction {transaction_id} failed: {e!r}")
            return None

    async def _find_open_attempt(self, booking_id: UUID) -> PaymentAttempt | None:
        # Hosted checkout only learns the transaction id on return.
        return await self.attempts.latest_for_booking(booking_id, status=AttemptStatus.AWAITING)

    @staticmethod
    def _parse_booking_id(reference: str | None) -> UUID | None:
        if not reference:
            return None
        try:
            return UUID(reference)
        except ValueError:
            return None

    @staticmethod
    def _reason(parsed: ReturnParams, confirmed: bool) -> str:
        reason = f"gateway status {parsed.status_code}"
        if parsed.transaction_id:
            reason += f" (transaction {parsed.transaction_id})"
        if not confirmed:
            reason += " [unconfirmed]"
        return reason

    @staticmethod
    def _outcome_for_status(status: BookingStatus) -> ReconciliationOutcome:
        return {
            BookingStatus.PAID: ReconciliationOutcome.PAID,
            BookingStatus.REJECTED: ReconciliationOutcome.REJECTED,
            BookingStatus.CANCELLED: ReconciliationOutcome.REJECTED,
        }.get(status, ReconciliationOutcome.AWAITING_PAYMENT)

    @staticmethod
    def _message_for_status(status: BookingStatus) -> str:
        if status is BookingStatus.CANCELLED:
            return "This booking was cancelled."
        if status is BookingStatus.PENDING:
            return "No payment has been started for this booking yet."
        return OUTCOME_MESSAGES[PaymentReconciler._outcome_for_status(status)]

    @staticmethod
    def _malformed(booking_id: UUID | None) -> ReconciliationResult:
        return ReconciliationResult(
            outcome=ReconciliationOutcome.MALFORMED,
            booking_id=booking_id,
            confirmed=False,
            applied=False,
            message=STATUS_UNKNOWN_MESSAGE,
        )
