"""
Payment gateway integrations

- HostedCheckoutGateway: the hosted-checkout provider's REST API
  (checkout preferences, direct payments, payment lookup)
- SandboxPaymentGateway: deterministic in-process stand-in used in
  development and tests when no provider credentials are configured

The backend is chosen by `settings.PAYMENT_GATEWAY['BACKEND']`.
"""

import hashlib
import hmac
import logging
import uuid
from functools import lru_cache
from uuid import UUID

from django.conf import settings
from django.utils.module_loading import import_string

from apps.bookings.domain.entities import PayerDetails, PaymentMethod
from apps.payments.exceptions import GatewayRequestRejected, GatewayUnavailable
from apps.payments.ports import CheckoutSession, GatewayPaymentStatus, PaymentGateway, ProcessResult
from shared.domain.value_objects import Money
from shared.infrastructure.http import RemoteServiceClient, RemoteServiceRejected, RemoteServiceUnavailable

logger = logging.getLogger(__name__)

# Declines after which the same booking must not be charged again.
HARD_DECLINE_DETAILS = {
    'cc_rejected_blacklist',
    'cc_rejected_card_disabled',
    'cc_rejected_high_risk',
    'cc_rejected_max_attempts',
    'cc_rejected_fraud',
}

# Accepted but not settled; the final status arrives by notification or re-check.
PENDING_STATUSES = {'pending', 'in_process'}

METHOD_TYPE_IDS = {
    PaymentMethod.CARD: 'credit_card',
    PaymentMethod.BANK_DEBIT: 'bank_transfer',
    PaymentMethod.WALLET: 'digital_wallet',
}


def generate_signature(data: dict, secret: str) -> str:
    """sha256 over the sorted `key=value` pairs followed by the secret."""
    sign_string = "&".join(f"{k}={v}" for k, v in sorted(data.items()))
    sign_string += f"&{secret}"
    return hashlib.sha256(sign_string.encode()).hexdigest()


def verify_webhook_signature(body: bytes, signature_header: str, secret: str) -> bool:
    """
    Check an `X-Gateway-Signature: sha256=<hex>` header against the raw
    request body.
    """
    if not secret or not signature_header:
        return False
    algorithm, _, received = signature_header.partition('=')
    if algorithm != 'sha256' or not received:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, received)


def _gateway_config() -> dict:
    return getattr(settings, 'PAYMENT_GATEWAY', {})


class HostedCheckoutGateway(RemoteServiceClient, PaymentGateway):
    service_name = 'payment-gateway'

    def __init__(self, config: dict | None = None, session=None):
        config = config if config is not None else _gateway_config()
        super().__init__(
            config.get('API_URL', ''),
            auth_token=config.get('ACCESS_TOKEN', ''),
            timeout=config.get('TIMEOUT', 30),
            session=session,
        )
        self.secret = config.get('WEBHOOK_SECRET', '')
        self.return_url = config.get('RETURN_URL', '')
        self.notification_url = config.get('NOTIFICATION_URL', '')

    async def _call(self, method: str, path: str, data: dict | None = None, headers: dict | None = None) -> dict:
        try:
            if method == 'GET':
                return await self.get(path, headers=headers)
            return await self.post(path, data=data, headers=headers)
        except RemoteServiceUnavailable as e:
            raise GatewayUnavailable(str(e)) from e
        except RemoteServiceRejected as e:
            message = e.body.get('message', str(e)) if isinstance(e.body, dict) else str(e)
            raise GatewayRequestRejected(message, e.status_code, e.body) from e

    async def create_checkout_session(self, booking_id: UUID, amount: Money, *,
                                      description: str = '', payer_email: str = '') -> CheckoutSession:
        logger.info(f"Creating checkout session for booking {booking_id}, amount {amount}")
        payload = {
            'items': [{
                'id': str(booking_id),
                'title': description or f"Booking {booking_id}",
                'quantity': 1,
                'currency_id': amount.currency,
                'unit_price': int(amount.rounded()),
            }],
            'external_reference': str(booking_id),
            'back_urls': {
                'success': self.return_url,
                'pending': self.return_url,
                'failure': self.return_url,
            },
            'auto_return': 'approved',
            'notification_url': self.notification_url,
        }
        if payer_email:
            payload['payer'] = {'email': payer_email}

        result = await self._call('POST', 'checkout/preferences', data=payload)
        session_id = result.get('id')
        redirect_url = result.get('init_point')
        if not session_id or not redirect_url:
            raise GatewayUnavailable("Checkout preference response is missing id or init_point")
        return CheckoutSession(session_id=str(session_id), redirect_url=redirect_url)

    async def process_payment(self, booking_id: UUID, amount: Money, method: PaymentMethod,
                              payer: PayerDetails, *, idempotency_key: str = '') -> ProcessResult:
        payload = {
            'transaction_amount': int(amount.rounded()),
            'currency_id': amount.currency,
            'external_reference': str(booking_id),
            'payment_type_id': METHOD_TYPE_IDS[method],
            'payer': {
                'email': payer.email,
                'identification': {'number': payer.document_number},
            },
        }
        if method is PaymentMethod.CARD:
            payload['token'] = payer.card_token
            payload['payer']['first_name'] = payer.holder_name
        elif method is PaymentMethod.BANK_DEBIT:
            payload['financial_institution'] = payer.bank_code
        payload['signature'] = generate_signature(
            {'external_reference': payload['external_reference'], 'transaction_amount': payload['transaction_amount']},
            self.secret,
        )

        headers = {'X-Idempotency-Key': idempotency_key} if idempotency_key else None
        result = await self._call('POST', 'v1/payments', data=payload, headers=headers)

        status = str(result.get('status', '')).lower()
        detail = str(result.get('status_detail', ''))
        transaction_id = str(result['id']) if result.get('id') is not None else None
        logger.info(f"Gateway payment {transaction_id} for booking {booking_id}: {status} ({detail})")

        if status == 'approved':
            return ProcessResult(success=True, transaction_id=transaction_id, status=status)
        if status in PENDING_STATUSES:
            return ProcessResult(success=False, transaction_id=transaction_id, status=status, pending=True)
        return ProcessResult(
            success=False,
            transaction_id=transaction_id,
            status=status,
            error_message=detail or status or 'declined',
            hard_decline=detail in HARD_DECLINE_DETAILS,
        )

    async def get_payment_status(self, transaction_id: str) -> GatewayPaymentStatus:
        result = await self._call('GET', f'v1/payments/{transaction_id}')
        return GatewayPaymentStatus(
            transaction_id=str(result.get('id', transaction_id)),
            status=str(result.get('status', '')),
            external_reference=str(result.get('external_reference') or ''),
        )


class SandboxPaymentGateway(PaymentGateway):
    """
    Deterministic gateway for development and tests.

    Direct payments are approved unless the card token, bank code or
    document number starts with `decline` (soft decline), `fraud`
    (hard decline) or `pending` (left in process until `set_status()`).
    Hosted checkouts stay pending until `complete_checkout()` is called,
    which returns the query parameters the provider would append to the
    return URL.
    """

    checkout_url = 'https://sandbox.checkout.local/checkout'

    def __init__(self, config: dict | None = None):
        config = config or {}
        self.return_url = config.get('RETURN_URL', '')
        self._sessions = {}
        self._payments = {}

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:16]}"

    async def create_checkout_session(self, booking_id: UUID, amount: Money, *,
                                      description: str = '', payer_email: str = '') -> CheckoutSession:
        session_id = self._new_id('sbx_pref')
        self._sessions[session_id] = {'booking_id': str(booking_id), 'amount': amount}
        logger.warning(f"Sandbox checkout session {session_id} for booking {booking_id} ({amount})")
        return CheckoutSession(session_id=session_id, redirect_url=f"{self.checkout_url}?pref_id={session_id}")

    def complete_checkout(self, session_id: str, status: str = 'approved') -> dict:
        session = self._sessions[session_id]
        transaction_id = self._new_id('sbx_pay')
        self._payments[transaction_id] = {'status': status, 'external_reference': session['booking_id']}
        return {
            'collection_id': transaction_id,
            'collection_status': status,
            'external_reference': session['booking_id'],
            'payment_type': 'credit_card',
            'preference_id': session_id,
        }

    def set_status(self, transaction_id: str, status: str):
        self._payments[transaction_id]['status'] = status

    async def process_payment(self, booking_id: UUID, amount: Money, method: PaymentMethod,
                              payer: PayerDetails, *, idempotency_key: str = '') -> ProcessResult:
        marker = (payer.card_token or payer.bank_code or payer.document_number).lower()
        transaction_id = self._new_id('sbx_pay')

        if marker.startswith('fraud'):
            status, detail = 'rejected', 'cc_rejected_high_risk'
        elif marker.startswith('decline'):
            status, detail = 'rejected', 'cc_rejected_insufficient_amount'
        elif marker.startswith('pending'):
            status, detail = 'in_process', 'pending_contingency'
        else:
            status, detail = 'approved', 'accredited'

        self._payments[transaction_id] = {'status': status, 'external_reference': str(booking_id)}
        logger.warning(f"Sandbox {method.value} payment {transaction_id} for booking {booking_id}: {status}")

        if status == 'approved':
            return ProcessResult(success=True, transaction_id=transaction_id, status=status)
        if status in PENDING_STATUSES:
            return ProcessResult(success=False, transaction_id=transaction_id, status=status, pending=True)
        return ProcessResult(
            success=False,
            transaction_id=transaction_id,
            status=status,
            error_message=detail,
            hard_decline=detail in HARD_DECLINE_DETAILS,
        )

    async def get_payment_status(self, transaction_id: str) -> GatewayPaymentStatus:
        payment = self._payments.get(transaction_id)
        if payment is None:
            raise GatewayRequestRejected(f"Unknown transaction {transaction_id}", 404)
        return GatewayPaymentStatus(
            transaction_id=transaction_id,
            status=payment['status'],
            external_reference=payment['external_reference'],
        )


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    config = _gateway_config()
    backend = config.get('BACKEND', 'apps.payments.gateway.SandboxPaymentGateway')
    logger.info(f"Using payment gateway backend {backend}")
    return import_string(backend)(config)
