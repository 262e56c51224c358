"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore

from .models import Booking

logger = logging.getLogger(__name__)


# ============================================================================
# NOTIFICATION TASKS
# ============================================================================

@shared_task(name="bookings.send_booking_confirmation")
def send_booking_confirmation(booking_id: str) -> bool:
    """Подтверждение оплаченного бронирования клиенту."""
    try:
        booking = Booking.objects.get(pk=booking_id)
    except Booking.DoesNotExist:
        logger.error(f"Booking {booking_id} not found for confirmation notification")
        return False

    if booking.status != Booking.Status.PAID:
        logger.warning(f"Booking {booking.booking_number} is {booking.status}; confirmation not sent")
        return False

    dates = booking.check_in.strftime("%d.%m.%Y")
    if booking.check_out:
        dates += f" - {booking.check_out.strftime('%d.%m.%Y')}"

    send_mail(
        subject=f"Booking {booking.booking_number} confirmed",
        message=(
            f"Hello {booking.full_name},\n\n"
            f"Your booking {booking.booking_number} for {booking.service_reference} "
            f"({dates}) is paid and confirmed.\n"
            f"Total: {booking.total:,.0f} {booking.currency}\n"
        ),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[booking.email],
        fail_silently=False,
    )

    logger.info(f"[NOTIFICATION] Booking confirmation sent: {booking.booking_number} to {booking.email}")
    return True
