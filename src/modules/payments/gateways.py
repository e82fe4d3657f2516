"""Card payment gateways.

``get_gateway()`` picks the implementation from ``settings.PAYMENT_GATEWAY``:

- ``simulated``: deterministic, never leaves the process.  A card token
  starting with ``decline`` is rejected with code ``51``.
- ``niubiz``: talks to the Niubiz (VisaNet Peru) REST API.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

import requests
import structlog
from django.conf import settings

from modules.payments.exceptions import GatewayError
from modules.payments.models import SUCCESS_CODES

logger = structlog.get_logger(__name__)

DECLINE_TOKEN_PREFIX = "decline"


@dataclass(frozen=True)
class GatewayResult:
    transaction_id: str
    response_code: str
    response_message: str
    authorization_code: str = ""

    @property
    def approved(self) -> bool:
        return self.response_code in SUCCESS_CODES


class PaymentGateway(ABC):
    name: str = ""

    @abstractmethod
    def authorize(
        self,
        purchase_number: str,
        amount: Decimal,
        currency: str,
        token: str,
    ) -> GatewayResult:
        """Charge ``amount`` to the tokenized card."""


class SimulatedGateway(PaymentGateway):
    name = "simulated"

    def authorize(self, purchase_number, amount, currency, token):
        transaction_id = f"SIM-{uuid.uuid4().hex[:12].upper()}"
        if token.lower().startswith(DECLINE_TOKEN_PREFIX):
            return GatewayResult(
                transaction_id=transaction_id,
                response_code="51",
                response_message="TARJETA SIN FONDOS",
            )
        return GatewayResult(
            transaction_id=transaction_id,
            response_code="0",
            response_message="AUTORIZADA",
            authorization_code=transaction_id[-6:],
        )


class NiubizGateway(PaymentGateway):
    """Niubiz e-commerce authorization.

    Two calls: a security token obtained with HTTP basic auth, then the
    authorization itself with that token in the ``Authorization`` header.
    """

    name = "niubiz"

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()
        self._base_url = (
            settings.NIUBIZ_SANDBOX_URL
            if settings.NIUBIZ_SANDBOX
            else settings.NIUBIZ_PRODUCTION_URL
        )
        self._merchant_id = settings.NIUBIZ_MERCHANT_ID
        self._timeout = settings.NIUBIZ_TIMEOUT

    def _security_token(self) -> str:
        url = f"{self._base_url}/api.security/v1/security"
        try:
            response = self._session.post(
                url,
                auth=(settings.NIUBIZ_USERNAME, settings.NIUBIZ_PASSWORD),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("payment.gateway.security_failed", error=str(exc))
            raise GatewayError("Could not obtain a gateway security token.") from exc
        return response.text.strip()

    def authorize(self, purchase_number, amount, currency, token):
        url = (
            f"{self._base_url}/api.authorization/v3/authorization/ecommerce/"
            f"{self._merchant_id}"
        )
        payload = {
            "channel": "web",
            "captureType": "manual",
            "countable": True,
            "order": {
                "tokenId": token,
                "purchaseNumber": purchase_number,
                "amount": float(amount),
                "currency": currency,
            },
        }
        headers = {
            "Authorization": self._security_token(),
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(
                url, json=payload, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(
                "payment.gateway.authorization_failed",
                purchase_number=purchase_number,
                error=str(exc),
            )
            raise GatewayError("Payment gateway authorization failed.") from exc

        data = body.get("dataMap") or body.get("data") or {}
        header = body.get("header") or {}
        return GatewayResult(
            transaction_id=str(data.get("TRANSACTION_ID") or header.get("ecoreTransactionUUID", "")),
            response_code=str(data.get("ACTION_CODE", "")),
            response_message=str(data.get("ACTION_DESCRIPTION") or data.get("STATUS", "")),
            authorization_code=str(data.get("AUTHORIZATION_CODE", "")),
        )


GATEWAYS = {
    SimulatedGateway.name: SimulatedGateway,
    NiubizGateway.name: NiubizGateway,
}


def get_gateway() -> PaymentGateway:
    try:
        gateway_class = GATEWAYS[settings.PAYMENT_GATEWAY]
    except KeyError as exc:
        raise GatewayError(f"Unknown payment gateway '{settings.PAYMENT_GATEWAY}'.") from exc
    return gateway_class()
