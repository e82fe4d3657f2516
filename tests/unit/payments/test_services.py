"""Unit tests for PaymentService.

Covers:
- Session creation: pending transaction, signature, order linking.
- Authorization: approved / declined, replay, mismatch, gateway errors.
- Approval confirms a ``Recibido`` order and e-mails the customer.
- Webhook: signature check, payload validation, idempotency, amount check.
"""

from __future__ import annotations

import json
from decimal import Decimal
from unittest import mock

import pytest
from django.core import mail
from pydantic import ValidationError

from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.dtos import AuthorizeDTO, CreateSessionDTO
from modules.payments.exceptions import (
    GatewayError,
    InvalidWebhookSignature,
    PaymentMismatch,
    PaymentSessionNotFound,
)
from modules.payments.gateways import SimulatedGateway
from modules.payments.models import PaymentStatus, PaymentTransaction
from modules.payments.services import PaymentService
from modules.payments.signatures import session_signature, webhook_signature
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture()
def service():
    return PaymentService(gateway=SimulatedGateway())


@pytest.fixture()
def order(bracelet):
    order_service = OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
    )
    return order_service.create_order(
        CreateOrderDTO(
            customer_name="María Quispe",
            customer_dni="45879632",
            customer_phone="987654321",
            customer_email="maria@example.com",
            shipping_address="Av. Larco 345, Miraflores, Lima",
            payment_method="Tarjeta",
            items=[CreateOrderItemDTO(product_id=bracelet.id, quantity=1)],
        )
    )


@pytest.fixture()
def payment(service, order):
    return service.create_session(
        CreateSessionDTO(
            amount=order.total_amount,
            currency="PEN",
            order_id=order.order_code,
            customer_email="maria@example.com",
        )
    )


def _authorize(payment, token="tok_visa", **overrides) -> AuthorizeDTO:
    data = {
        "session_id": payment.session_id,
        "token": token,
        "amount": payment.amount,
        "order_id": payment.purchase_number,
    }
    data.update(overrides)
    return AuthorizeDTO(**data)


def _notification(payment, **overrides) -> bytes:
    data = {
        "transactionId": "993203550001",
        "orderId": payment.purchase_number,
        "amount": str(payment.amount),
        "responseCode": "000",
        "responseMessage": "Aprobado",
    }
    data.update(overrides)
    return json.dumps(data).encode()


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


class TestSessionDTO:
    @pytest.mark.parametrize(
        "overrides",
        [{"amount": "0"}, {"currency": "EUR"}, {"order_id": "ab"}, {"customer_email": "nope"}],
    )
    def test_rejects_invalid_input(self, overrides):
        data = {"amount": "10", "currency": "PEN", "order_id": "ORD-1", "customer_email": "a@b.pe"}
        data.update(overrides)
        with pytest.raises(ValidationError):
            CreateSessionDTO(**data)

    def test_currency_is_upper_cased(self):
        dto = CreateSessionDTO(amount="10", currency="usd", order_id="ORD-1", customer_email="a@b.pe")
        assert dto.currency == "USD"
        assert dto.amount == Decimal("10.00")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestCreateSession:
    def test_creates_pending_transaction_linked_to_order(self, payment, order):
        assert payment.status == PaymentStatus.PENDING
        assert payment.order_id == order.id
        assert payment.session_id.startswith("session_")
        assert payment.gateway == "simulated"
        assert payment.signature == session_signature(
            "456879852",
            f"{payment.amount:.2f}",
            "PEN",
            order.order_code,
            payment.session_id,
            "test-signature-key",
        )

    def test_unknown_order_code_is_not_linked(self, service):
        payment = service.create_session(
            CreateSessionDTO(amount="50", order_id="REF-999", customer_email="a@b.pe")
        )
        assert payment.order is None
        assert payment.purchase_number == "REF-999"

    def test_underpayment_for_order_is_rejected(self, service, order):
        with pytest.raises(PaymentMismatch):
            service.create_session(
                CreateSessionDTO(amount="1.00", order_id=order.order_code, customer_email="a@b.pe")
            )
        assert PaymentTransaction.objects.count() == 0

    def test_order_not_awaiting_payment_is_rejected(self, service, order):
        Order.objects.filter(id=order.id).update(status=OrderStatus.CANCELLED)
        with pytest.raises(PaymentMismatch):
            service.create_session(
                CreateSessionDTO(
                    amount=order.total_amount, order_id=order.order_code, customer_email="a@b.pe"
                )
            )


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class TestAuthorize:
    def test_approved_confirms_order_and_sends_email(
        self, service, payment, order, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            result = service.authorize(_authorize(payment))

        assert result.status == PaymentStatus.APPROVED
        assert result.processed_at is not None
        order.refresh_from_db()
        assert order.status == OrderStatus.CONFIRMED
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["maria@example.com"]
        assert order.order_code in mail.outbox[0].subject

    def test_declined_leaves_order_untouched(
        self, service, payment, order, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            result = service.authorize(_authorize(payment, token="decline_card"))

        assert result.status == PaymentStatus.DECLINED
        assert result.response_code == "51"
        order.refresh_from_db()
        assert order.status == OrderStatus.RECEIVED
        assert mail.outbox == []

    def test_replay_does_not_charge_twice(self, payment):
        gateway = mock.Mock(wraps=SimulatedGateway())
        gateway.name = "simulated"
        service = PaymentService(gateway=gateway)

        first = service.authorize(_authorize(payment))
        second = service.authorize(_authorize(payment))

        assert gateway.authorize.call_count == 1
        assert second.transaction_id == first.transaction_id

    def test_amount_mismatch(self, service, payment):
        with pytest.raises(PaymentMismatch):
            service.authorize(_authorize(payment, amount=Decimal("1.00")))

    def test_order_mismatch(self, service, payment):
        with pytest.raises(PaymentMismatch):
            service.authorize(_authorize(payment, order_id="ORD-000000"))

    def test_unknown_session(self, service, payment):
        with pytest.raises(PaymentSessionNotFound):
            service.authorize(_authorize(payment, session_id="session_missing"))

    def test_gateway_error_keeps_payment_pending(self, payment):
        gateway = mock.Mock()
        gateway.authorize.side_effect = GatewayError("down")
        with pytest.raises(GatewayError):
            PaymentService(gateway=gateway).authorize(_authorize(payment))
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.PENDING

    def test_order_total_changed_after_session_is_not_confirmed(
        self, service, payment, order, django_capture_on_commit_callbacks
    ):
        Order.objects.filter(id=order.id).update(total_amount=Decimal("1798.00"))

        with django_capture_on_commit_callbacks(execute=True):
            result = service.authorize(_authorize(payment))

        assert result.status == PaymentStatus.APPROVED
        order.refresh_from_db()
        assert order.status == OrderStatus.RECEIVED
        assert mail.outbox == []


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


class TestWebhook:
    def test_valid_notification_approves(self, service, payment, order):
        body = _notification(payment)
        result = service.handle_webhook(body, webhook_signature(body, WEBHOOK_SECRET))

        assert result.id == payment.id
        assert result.status == PaymentStatus.APPROVED
        assert result.transaction_id == "993203550001"
        order.refresh_from_db()
        assert order.status == OrderStatus.CONFIRMED

    def test_declined_notification(self, service, payment):
        body = _notification(payment, responseCode="116")
        result = service.handle_webhook(body, webhook_signature(body, WEBHOOK_SECRET))
        assert result.status == PaymentStatus.DECLINED

    def test_invalid_signature(self, service, payment):
        body = _notification(payment)
        with pytest.raises(InvalidWebhookSignature):
            service.handle_webhook(body, webhook_signature(body, "wrong-secret"))
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.PENDING

    def test_missing_fields(self, service):
        body = json.dumps({"orderId": "ORD-1"}).encode()
        with pytest.raises(ValidationError):
            service.handle_webhook(body, webhook_signature(body, WEBHOOK_SECRET))

    def test_repeated_notification_is_idempotent(self, service, payment):
        body = _notification(payment)
        signature = webhook_signature(body, WEBHOOK_SECRET)
        service.handle_webhook(body, signature)
        result = service.handle_webhook(body, signature)
        assert result.status == PaymentStatus.APPROVED
        assert PaymentTransaction.objects.count() == 1

    def test_amount_mismatch(self, service, payment):
        body = _notification(payment, amount="1.00")
        with pytest.raises(PaymentMismatch):
            service.handle_webhook(body, webhook_signature(body, WEBHOOK_SECRET))

    def test_unknown_order(self, service, payment):
        body = _notification(payment, orderId="ORD-000000", transactionId="other")
        with pytest.raises(PaymentSessionNotFound):
            service.handle_webhook(body, webhook_signature(body, WEBHOOK_SECRET))
