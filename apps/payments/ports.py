"""
Payment collaborator ports

`PaymentGateway` is the external provider; `PaymentAttemptStore` keeps
the attempt ledger. Gateway implementations raise GatewayUnavailable for
transport failures and GatewayRequestRejected for refused requests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List
from uuid import UUID

from apps.bookings.domain.entities import PayerDetails, PaymentMethod
from apps.payments.domain import AttemptStatus, PaymentAttempt
from shared.domain.value_objects import Money


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    redirect_url: str


@dataclass(frozen=True)
class ProcessResult:
    success: bool
    transaction_id: str | None = None
    error_message: str = ''
    status: str = ''
    hard_decline: bool = False
    # Accepted by the gateway but not final yet (pending, in_process).
    pending: bool = False


@dataclass(frozen=True)
class GatewayPaymentStatus:
    transaction_id: str
    status: str
    external_reference: str = ''


class PaymentGateway(ABC):

    @abstractmethod
    async def create_checkout_session(self, booking_id: UUID, amount: Money, *,
                                      description: str = '', payer_email: str = '') -> CheckoutSession:
        pass

    @abstractmethod
    async def process_payment(self, booking_id: UUID, amount: Money, method: PaymentMethod,
                              payer: PayerDetails, *, idempotency_key: str = '') -> ProcessResult:
        pass

    @abstractmethod
    async def get_payment_status(self, transaction_id: str) -> GatewayPaymentStatus:
        pass


class PaymentAttemptStore(ABC):

    @abstractmethod
    async def create(self, booking_id: UUID, method: PaymentMethod,
                     amount: Money, fee: Money, idempotency_key: str = '') -> PaymentAttempt:
        """A blank `idempotency_key` gets a fresh one."""

    @abstractmethod
    async def save(self, attempt: PaymentAttempt) -> PaymentAttempt:
        pass

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> PaymentAttempt | None:
        pass

    @abstractmethod
    async def latest_for_booking(self, booking_id: UUID,
                                 status: AttemptStatus | None = None) -> PaymentAttempt | None:
        pass

    @abstractmethod
    async def list_for_booking(self, booking_id: UUID) -> List[PaymentAttempt]:
        pass

    @abstractmethod
    async def awaiting_with_transaction(self, older_than_minutes: int = 0) -> List[PaymentAttempt]:
        """Awaiting attempts that carry a gateway transaction id."""
