"""API views for the booking domain."""

from __future__ import annotations

import hmac
import logging

from asgiref.sync import async_to_sync
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.payments.services import get_status_writer

from .exceptions import InvalidStatusTransition
from .models import Booking
from .serializers import BookingCancelSerializer, BookingSerializer

logger = logging.getLogger(__name__)

CUSTOMER_TOKEN_HEADER = "X-Customer-Token"


def _customer_token(request) -> str:
    return request.headers.get(CUSTOMER_TOKEN_HEADER, "")


class IsBookingCustomer(permissions.BasePermission):
    """Клиент, создавший бронь (по токену), и персонал имеют доступ."""

    def has_object_permission(self, request, view, obj: Booking):  # type: ignore
        user = request.user
        if getattr(user, "is_staff", False):
            return True
        token = _customer_token(request)
        return bool(token) and hmac.compare_digest(token, obj.customer_token or "")


class BookingViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Read access to committed bookings and customer cancellation.

    Bookings are created by the wizard, not through this API.
    """

    queryset = Booking.objects.prefetch_related("status_changes", "payment_attempts").all()
    serializer_class = BookingSerializer
    permission_classes = [IsBookingCustomer]
    filterset_fields = ["status", "service_reference", "check_in"]

    def get_queryset(self):  # type: ignore
        qs = super().get_queryset()
        if getattr(self.request.user, "is_staff", False):
            return qs
        token = _customer_token(self.request)
        if not token:
            return qs.none()
        return qs.filter(customer_token=token)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data["reason"] or "cancelled by customer"

        try:
            update = async_to_sync(get_status_writer().cancel)(booking.id, reason)
        except InvalidStatusTransition as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        logger.info(f"Booking {booking.booking_number} cancel requested, applied={update.applied}")
        return Response({"status": update.booking.status.value, "applied": update.applied})
