"""Exceptions raised by payment gateway integrations."""


class PaymentGatewayError(Exception):
    """Base class for gateway failures."""


class GatewayUnavailable(PaymentGatewayError):
    """Timeout, connection failure or 5xx. The call may be retried."""


class GatewayRequestRejected(PaymentGatewayError):
    """The gateway refused the request (4xx)."""

    def __init__(self, message: str, status_code: int | None = None, body=None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class MalformedReturn(PaymentGatewayError):
    """Return parameters cannot be correlated with a booking."""
