"""Payment exceptions.

Raised by the payment service and gateways; the views translate them
into HTTP responses.
"""

from __future__ import annotations


class PaymentSessionNotFound(Exception):
    """No payment session exists with the given id."""


class PaymentMismatch(Exception):
    """The authorization request does not match its payment session."""


class InvalidWebhookSignature(Exception):
    """The webhook signature header is missing or does not match the body."""


class GatewayError(Exception):
    """The payment gateway could not be reached or answered unexpectedly."""
