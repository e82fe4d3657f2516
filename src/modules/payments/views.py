"""Payment API views.

Session creation and authorization are called by the storefront; the
webhook is called by the gateway and authenticated by its HMAC signature.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.exceptions import BusinessRuleViolation, validation_error_from_pydantic
from modules.payments.dtos import AuthorizeDTO, CreateSessionDTO
from modules.payments.exceptions import (
    GatewayError,
    InvalidWebhookSignature,
    PaymentMismatch,
    PaymentSessionNotFound,
)
from modules.payments.serializers import PaymentResultSerializer, PaymentSessionSerializer
from modules.payments.services import PaymentService

WEBHOOK_SIGNATURE_HEADER = "X-Niubiz-Signature"


class InvalidSignature(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid webhook signature."
    default_code = "invalid_signature"


class GatewayUnavailable(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "The payment gateway is unavailable."
    default_code = "gateway_unavailable"


def _validate(dto_cls, data):
    try:
        return dto_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise validation_error_from_pydantic(exc) from exc


class PaymentView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "payments"

    def get_service(self) -> PaymentService:
        return PaymentService()


class PaymentSessionView(PaymentView):
    """POST /api/v1/payments/session/"""

    def post(self, request: Request) -> Response:
        dto = _validate(CreateSessionDTO, request.data)
        try:
            payment = self.get_service().create_session(dto)
        except PaymentMismatch as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        except GatewayError as exc:
            raise GatewayUnavailable(str(exc)) from exc
        return Response(PaymentSessionSerializer(payment).data, status=status.HTTP_201_CREATED)


class PaymentAuthorizeView(PaymentView):
    """POST /api/v1/payments/authorize/

    Returns 200 for both approved and declined cards; ``approved`` tells
    them apart.
    """

    def post(self, request: Request) -> Response:
        dto = _validate(AuthorizeDTO, request.data)
        try:
            payment = self.get_service().authorize(dto)
        except PaymentSessionNotFound as exc:
            raise NotFound(str(exc)) from exc
        except PaymentMismatch as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        except GatewayError as exc:
            raise GatewayUnavailable(str(exc)) from exc
        return Response(PaymentResultSerializer(payment).data)


class PaymentWebhookView(PaymentView):
    """POST /api/v1/payments/webhook/"""

    authentication_classes: list = []
    throttle_scope = None

    def post(self, request: Request) -> Response:
        body = request.body
        signature = request.headers.get(WEBHOOK_SIGNATURE_HEADER, "")
        try:
            payment = self.get_service().handle_webhook(body, signature)
        except InvalidWebhookSignature as exc:
            raise InvalidSignature() from exc
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc
        except PaymentSessionNotFound as exc:
            raise NotFound(str(exc)) from exc
        except PaymentMismatch as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        return Response({"received": True, "status": payment.status})
