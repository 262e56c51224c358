"""Celery tasks for the payment domain."""

from __future__ import annotations

import logging

from asgiref.sync import async_to_sync
from celery import shared_task  # type: ignore

from apps.bookings.conf import engine_settings
from apps.bookings.exceptions import BookingNotFound

logger = logging.getLogger(__name__)


async def _recheck_awaiting(older_than_minutes: int) -> dict[str, int]:
    from .services import build_reconciler

    reconciler = build_reconciler()
    attempts = await reconciler.attempts.awaiting_with_transaction(older_than_minutes)
    checked = applied = 0
    booking_ids = {attempt.booking_id for attempt in attempts}

    for booking_id in booking_ids:
        try:
            result = await reconciler.recheck(booking_id, source="periodic-recheck")
        except BookingNotFound:
            logger.error(f"Awaiting payment attempt references unknown booking {booking_id}")
            continue
        checked += 1
        if result.applied:
            applied += 1
            logger.info(
                f"Booking {booking_id} reconciled by periodic re-check: {result.outcome.value}"
            )

    return {"checked": checked, "applied": applied}


# ============================================================================
# PERIODIC TASKS (Celery Beat)
# ============================================================================

@shared_task(name="payments.recheck_awaiting_payments")
def recheck_awaiting_payments(older_than_minutes: int | None = None) -> dict[str, int]:
    """
    Re-query the gateway for hosted checkouts that returned a transaction
    id but never reached a final status.

    Returns:
        dict: {"checked": bookings queried, "applied": status changes}
    """
    if older_than_minutes is None:
        older_than_minutes = engine_settings().recheck_after_minutes

    stats = async_to_sync(_recheck_awaiting)(older_than_minutes)
    if stats["checked"]:
        logger.info(f"Re-checked {stats['checked']} awaiting payments, {stats['applied']} updated")
    return stats
