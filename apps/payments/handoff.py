"""
Payment Handoff

Starts payment for a committed booking:

- direct methods (card, bank debit, wallet) are charged synchronously;
  approval marks the booking paid, a hard decline marks it rejected and
  a soft decline leaves it pending so another method can be tried
- a direct payment the gateway is still processing moves the booking
  to awaiting-payment; reconciliation settles it later
- the hosted checkout method creates a gateway session, moves the
  booking to awaiting-payment and hands back the redirect URL

Every call records a PaymentAttempt. The amount charged is the booking
total plus the processing fee of the chosen method.
A retry after a gateway timeout reuses the failed attempt's idempotency
key when method and amount are unchanged, so the gateway can drop a
charge it already took.
"""

import asyncio
import logging
from dataclasses import dataclass

from apps.bookings.domain.entities import BookingRecord, BookingStatus, PayerDetails, PaymentMethod
from apps.payments.domain import AttemptStatus, PaymentAttempt
from apps.payments.exceptions import GatewayRequestRejected, GatewayUnavailable
from apps.payments.ledger import BookingStatusWriter
from apps.payments.ports import PaymentAttemptStore, PaymentGateway
from shared.domain.value_objects import Money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Paid:
    booking: BookingRecord
    attempt: PaymentAttempt


@dataclass(frozen=True)
class Declined:
    booking: BookingRecord
    attempt: PaymentAttempt
    message: str
    hard: bool = False


@dataclass(frozen=True)
class RedirectRequired:
    booking: BookingRecord
    attempt: PaymentAttempt
    redirect_url: str


@dataclass(frozen=True)
class PaymentUnavailable:
    detail: str
    attempt: PaymentAttempt | None = None
    retryable: bool = True


@dataclass(frozen=True)
class PaymentPending:
    """The gateway accepted the charge but has not settled it."""
    booking: BookingRecord
    attempt: PaymentAttempt


@dataclass(frozen=True)
class AlreadySettled:
    booking: BookingRecord


PaymentOutcome = Paid | Declined | RedirectRequired | PaymentPending | PaymentUnavailable | AlreadySettled


class PaymentHandoff:

    def __init__(self, gateway: PaymentGateway, attempts: PaymentAttemptStore,
                 writer: BookingStatusWriter, fees=None, timeout: float = 30.0):
        self.gateway = gateway
        self.attempts = attempts
        self.writer = writer
        self.fees = fees or {}
        self.timeout = timeout

    def _fee_for(self, booking: BookingRecord, method: PaymentMethod):
        fee = self.fees.get(method)
        if fee is None:
            return Money.zero(booking.total.currency)
        return fee

    async def start(self, booking: BookingRecord, method: PaymentMethod,
                    payer: PayerDetails | None = None) -> PaymentOutcome:
        payer = payer or PayerDetails()

        async with self.writer.serialized(booking.id):
            current = await self.writer.store.get_booking(booking.id)
            if current.status.is_terminal:
                logger.info(f"Payment not started: booking {current.booking_number} is {current.status.value}")
                return AlreadySettled(current)

            in_process = await self.attempts.latest_for_booking(current.id, status=AttemptStatus.AWAITING)
            if in_process is not None and in_process.gateway_transaction_id:
                logger.info(
                    f"Payment not started: attempt {in_process.id} for booking {current.booking_number} "
                    f"is still {in_process.gateway_status or 'in process'}"
                )
                return PaymentPending(current, in_process)

            fee = self._fee_for(current, method)
            amount = current.total + fee
            attempt = await self.attempts.create(
                current.id, method, amount, fee,
                idempotency_key=await self._retry_key(current, method, amount),
            )
            logger.info(
                f"Payment attempt {attempt.id} for booking {current.booking_number}: "
                f"method={method.value} amount={attempt.amount} fee={fee}"
            )

            if method is PaymentMethod.GATEWAY_REDIRECT:
                return await self._start_checkout(current, attempt)
            return await self._process_direct(current, attempt, payer)

    async def _retry_key(self, booking: BookingRecord, method: PaymentMethod, amount: Money) -> str:
        previous = await self.attempts.latest_for_booking(booking.id)
        if (previous is not None and previous.status is AttemptStatus.ERROR
                and previous.method is method and previous.amount.rounded() == amount.rounded()):
            logger.info(f"Retrying payment for booking {booking.booking_number} under key {previous.idempotency_key}")
            return previous.idempotency_key
        return ''

    async def _start_checkout(self, booking: BookingRecord, attempt: PaymentAttempt) -> PaymentOutcome:
        try:
            session = await asyncio.wait_for(
                self.gateway.create_checkout_session(
                    booking.id,
                    attempt.amount,
                    description=f"Booking {booking.booking_number}",
                    payer_email=booking.contact.email,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, GatewayUnavailable) as e:
            return await self._fail(attempt, f"Checkout session could not be created: {e!r}", retryable=True)
        except GatewayRequestRejected as e:
            return await self._fail(attempt, f"Gateway refused checkout session: {e}", retryable=False)

        attempt.await_checkout(session.session_id, session.redirect_url)
        await self.attempts.save(attempt)

        update = await self.writer.apply(
            booking.id,
            BookingStatus.AWAITING_PAYMENT,
            reason=f"checkout session {session.session_id}",
            actor='handoff',
        )
        logger.info(f"Booking {booking.booking_number} redirected to hosted checkout {session.session_id}")
        return RedirectRequired(update.booking, attempt, session.redirect_url)

    async def _process_direct(self, booking: BookingRecord, attempt: PaymentAttempt,
                              payer: PayerDetails) -> PaymentOutcome:
        try:
            result = await asyncio.wait_for(
                self.gateway.process_payment(
                    booking.id,
                    attempt.amount,
                    attempt.method,
                    payer,
                    idempotency_key=attempt.idempotency_key,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, GatewayUnavailable) as e:
            # The charge may or may not have gone through; the booking is untouched.
            return await self._fail(attempt, f"Gateway did not answer: {e!r}", retryable=True)
        except GatewayRequestRejected as e:
            attempt.settle(AttemptStatus.DECLINED, error_message=str(e))
            await self.attempts.save(attempt)
            logger.warning(f"Payment attempt {attempt.id} refused by gateway: {e}")
            return Declined(booking, attempt, str(e), hard=False)

        if result.success:
            attempt.settle(
                AttemptStatus.APPROVED,
                transaction_id=result.transaction_id,
                gateway_status=result.status or 'approved',
            )
            await self.attempts.save(attempt)
            update = await self.writer.apply(
                booking.id,
                BookingStatus.PAID,
                reason=f"{attempt.method.value} payment {result.transaction_id}",
                actor='handoff',
            )
            logger.info(f"Payment attempt {attempt.id} approved ({result.transaction_id})")
            return Paid(update.booking, attempt)

        if result.pending:
            attempt.settle(
                AttemptStatus.AWAITING,
                transaction_id=result.transaction_id,
                gateway_status=result.status,
            )
            await self.attempts.save(attempt)
            update = await self.writer.apply(
                booking.id,
                BookingStatus.AWAITING_PAYMENT,
                reason=f"{attempt.method.value} payment {result.transaction_id} {result.status}",
                actor='handoff',
            )
            logger.info(f"Payment attempt {attempt.id} is {result.status} ({result.transaction_id})")
            return PaymentPending(update.booking, attempt)

        attempt.settle(
            AttemptStatus.DECLINED,
            transaction_id=result.transaction_id,
            gateway_status=result.status or 'rejected',
            error_message=result.error_message,
        )
        await self.attempts.save(attempt)
        logger.warning(
            f"Payment attempt {attempt.id} declined (hard={result.hard_decline}): {result.error_message}"
        )

        if result.hard_decline:
            update = await self.writer.apply(
                booking.id,
                BookingStatus.REJECTED,
                reason=f"hard decline: {result.error_message}",
                actor='handoff',
            )
            booking = update.booking
        return Declined(booking, attempt, result.error_message, hard=result.hard_decline)

    async def _fail(self, attempt: PaymentAttempt, detail: str, retryable: bool) -> PaymentUnavailable:
        attempt.settle(AttemptStatus.ERROR, error_message=detail)
        await self.attempts.save(attempt)
        logger.warning(f"Payment attempt {attempt.id} failed: {detail}")
        return PaymentUnavailable(detail, attempt, retryable=retryable)
