import hmac
import json
import logging
from uuid import UUID

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.bookings.exceptions import BookingNotFound
from apps.bookings.views import CUSTOMER_TOKEN_HEADER
from apps.payments.gateway import verify_webhook_signature
from apps.payments.reconciliation import ReconciliationResult
from apps.payments.services import build_reconciler

logger = logging.getLogger(__name__)


def _result_response(result: ReconciliationResult) -> JsonResponse:
    body = {
        'status': result.outcome.value,
        'message': result.message,
        'booking_id': str(result.booking_id) if result.booking_id else None,
        'booking_status': result.booking_status.value if result.booking_status else None,
        'confirmed': result.confirmed,
        'applied': result.applied,
    }
    return JsonResponse(body, status=400 if result.is_malformed else 200)


@require_GET
async def payment_return(request):
    """
    Return URL of the hosted checkout.

    The gateway appends its status parameters to the query string; the
    same URL may be hit several times (refresh, back button).
    """
    logger.info(f"Payment return received with keys {sorted(request.GET.keys())}")
    result = await build_reconciler().reconcile(request.GET.dict(), source='return')
    return _result_response(result)


@csrf_exempt
@require_POST
async def payment_webhook(request):
    """
    Server-to-server notification from the gateway

    Body is JSON with the same fields as the return URL, signed with
    HMAC-SHA256 in the X-Gateway-Signature header.
    """
    secret = settings.PAYMENT_GATEWAY.get('WEBHOOK_SECRET', '')
    signature = request.headers.get('X-Gateway-Signature', '')
    if not verify_webhook_signature(request.body, signature, secret):
        logger.error("Payment webhook with invalid signature")
        return JsonResponse({'status': 'error', 'message': 'Invalid signature'}, status=403)

    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        logger.error("Payment webhook: invalid JSON")
        return JsonResponse({'status': 'error', 'message': 'Invalid JSON'}, status=400)

    if not isinstance(data, dict):
        return JsonResponse({'status': 'error', 'message': 'Invalid payload'}, status=400)

    # Nested provider payloads carry the payment under "data".
    if isinstance(data.get('data'), dict):
        data = {**data['data'], **{k: v for k, v in data.items() if k != 'data'}}

    result = await build_reconciler().reconcile(data, source='webhook')
    return _result_response(result)


async def _is_booking_customer(request, booking) -> bool:
    user = await request.auser()
    if getattr(user, 'is_staff', False):
        return True
    token = request.headers.get(CUSTOMER_TOKEN_HEADER, '')
    return bool(token) and hmac.compare_digest(token, booking.customer_token or '')


@require_GET
async def booking_payment_status(request, booking_id: UUID):
    """
    Manual status check: re-query the gateway for the latest attempt.

    Only the customer holding the booking's token (or staff) may ask;
    anyone else gets the same 404 as for an unknown booking.
    """
    not_found = JsonResponse({'status': 'error', 'message': 'Booking not found'}, status=404)
    reconciler = build_reconciler()
    try:
        booking = await reconciler.writer.store.get_booking(booking_id)
    except BookingNotFound:
        return not_found
    if not await _is_booking_customer(request, booking):
        logger.warning(f"Status check for booking {booking_id} without a matching customer token")
        return not_found

    try:
        result = await reconciler.recheck(booking_id, source='status-check')
    except BookingNotFound:
        return not_found
    return _result_response(result)
