"""
Payment Domain

A PaymentAttempt is one interaction with the gateway for a booking.
A booking may collect several (a declined card followed by a wallet
payment, an abandoned hosted checkout followed by a retry).
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from apps.bookings.domain.entities import PaymentMethod
from shared.domain.base import Entity
from shared.domain.value_objects import Money


class AttemptStatus(Enum):
    """
    - INITIATED -> APPROVED / DECLINED / ERROR (direct processing)
    - INITIATED -> AWAITING -> APPROVED / DECLINED (hosted checkout, or a
      direct payment the gateway is still processing)
    """
    INITIATED = 'initiated'
    AWAITING = 'awaiting'
    APPROVED = 'approved'
    DECLINED = 'declined'
    ERROR = 'error'

    @property
    def is_final(self) -> bool:
        return self in (AttemptStatus.APPROVED, AttemptStatus.DECLINED, AttemptStatus.ERROR)


@dataclass(kw_only=True, eq=False)
class PaymentAttempt(Entity):
    booking_id: UUID
    method: PaymentMethod
    amount: Money
    fee: Money
    status: AttemptStatus = AttemptStatus.INITIATED
    idempotency_key: str = ''
    gateway_transaction_id: str | None = None
    checkout_session_id: str = ''
    redirect_url: str = ''
    gateway_status: str = ''
    error_message: str = ''

    def await_checkout(self, session_id: str, redirect_url: str):
        self.checkout_session_id = session_id
        self.redirect_url = redirect_url
        self.status = AttemptStatus.AWAITING
        self.touch()

    def settle(self, status: AttemptStatus, *, transaction_id: str | None = None,
               gateway_status: str = '', error_message: str = '') -> bool:
        """Record the gateway's verdict. Returns False if nothing changed."""
        changed = False
        if transaction_id and transaction_id != self.gateway_transaction_id:
            self.gateway_transaction_id = transaction_id
            changed = True
        if gateway_status and gateway_status != self.gateway_status:
            self.gateway_status = gateway_status
            changed = True
        if status != self.status and not self.status.is_final:
            self.status = status
            changed = True
        if error_message and error_message != self.error_message:
            self.error_message = error_message
            changed = True
        if changed:
            self.touch()
        return changed
