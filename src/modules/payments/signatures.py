"""HMAC-SHA256 helpers for payment sessions and gateway webhooks."""

from __future__ import annotations

import hashlib
import hmac


def _hmac_hex(key: str, message: bytes) -> str:
    return hmac.new(key.encode(), message, hashlib.sha256).hexdigest()


def session_signature(
    merchant_id: str,
    amount: str,
    currency: str,
    order_id: str,
    session_id: str,
    key: str,
) -> str:
    """Sign ``merchantId + amount + currency + orderId + sessionId``."""
    if not key:
        raise ValueError("Payment signature key is not configured.")
    data = f"{merchant_id}{amount}{currency}{order_id}{session_id}"
    return _hmac_hex(key, data.encode())


def webhook_signature(body: bytes, secret: str) -> str:
    return _hmac_hex(secret, body)


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """Constant-time comparison of ``signature`` with the HMAC of ``body``."""
    if not signature or not secret:
        return False
    expected = webhook_signature(body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
