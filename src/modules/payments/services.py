"""Payment service layer.

Flow:
1. ``create_session`` registers a pending transaction and returns the
   signed session the storefront hands to the card form.
2. ``authorize`` charges the tokenized card through the configured
   gateway.
3. ``handle_webhook`` applies the gateway's asynchronous notification.

An approved payment confirms the linked order (``Recibido`` ->
``Confirmado``) and queues the confirmation e-mail after commit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import structlog
import uuid6
from django.conf import settings
from django.db import transaction

from modules.orders.constants import OrderStatus
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.dtos import WebhookNotificationDTO
from modules.payments.exceptions import (
    InvalidWebhookSignature,
    PaymentMismatch,
    PaymentSessionNotFound,
)
from modules.payments.gateways import get_gateway
from modules.payments.models import PaymentStatus, PaymentTransaction
from modules.payments.signatures import session_signature, verify_webhook_signature
from modules.payments.tasks import send_payment_confirmation_email
from modules.products.repositories.django_repository import ProductDjangoRepository

if TYPE_CHECKING:
    from modules.payments.dtos import AuthorizeDTO, CreateSessionDTO
    from modules.payments.gateways import PaymentGateway

logger = structlog.get_logger(__name__)


class PaymentService:
    def __init__(
        self,
        gateway: Optional[PaymentGateway] = None,
        order_service: Optional[OrderService] = None,
    ) -> None:
        self._gateway = gateway
        self._order_service = order_service or OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
        )

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_gateway()
        return self._gateway

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_session(self, dto: CreateSessionDTO) -> PaymentTransaction:
        """Open a pending payment session for ``dto.order_id``.

        The order is linked when an order with that code exists; the
        session is still created otherwise so the storefront can pay a
        reference it generated itself.

        Raises:
            PaymentMismatch: the linked order is no longer ``Recibido`` or
                its total differs from ``dto.amount``.
        """
        order = OrderDjangoRepository().get_by_code(dto.order_id)
        if order is not None and (
            order.status != OrderStatus.RECEIVED or order.total_amount != dto.amount
        ):
            logger.warning(
                "payment.session_rejected",
                purchase_number=dto.order_id,
                order_status=order.status,
                expected_amount=str(order.total_amount),
                received_amount=str(dto.amount),
            )
            raise PaymentMismatch(
                "Amount does not match the order total or the order is not awaiting payment."
            )

        session_id = f"session_{uuid6.uuid7().hex}"
        amount = f"{dto.amount:.2f}"
        signature = session_signature(
            merchant_id=settings.NIUBIZ_MERCHANT_ID,
            amount=amount,
            currency=dto.currency,
            order_id=dto.order_id,
            session_id=session_id,
            key=settings.NIUBIZ_SIGNATURE_KEY,
        )
        payment = PaymentTransaction.objects.create(
            order=order,
            purchase_number=dto.order_id,
            session_id=session_id,
            signature=signature,
            gateway=self.gateway.name,
            amount=dto.amount,
            currency=dto.currency,
            customer_email=dto.customer_email,
        )
        logger.info(
            "payment.session_created",
            payment_id=str(payment.id),
            purchase_number=payment.purchase_number,
            gateway=payment.gateway,
            order_linked=order is not None,
        )
        return payment

    @transaction.atomic
    def authorize(self, dto: AuthorizeDTO) -> PaymentTransaction:
        """Charge the card for a pending session.

        A session that was already processed is returned as-is, so a
        retried request never charges twice.

        Raises:
            PaymentSessionNotFound: unknown ``session_id``.
            PaymentMismatch: amount or order id differ from the session.
            GatewayError: the gateway could not be reached.
        """
        payment = self._get_locked_session(dto.session_id)
        log = logger.bind(payment_id=str(payment.id), purchase_number=payment.purchase_number)

        if payment.status != PaymentStatus.PENDING:
            log.info("payment.authorize_replayed", status=payment.status)
            return payment

        if payment.amount != dto.amount or payment.purchase_number != dto.order_id:
            log.warning(
                "payment.authorize_mismatch",
                expected_amount=str(payment.amount),
                received_amount=str(dto.amount),
                received_order_id=dto.order_id,
            )
            raise PaymentMismatch("Amount or order id do not match the payment session.")

        result = self.gateway.authorize(
            purchase_number=payment.purchase_number,
            amount=payment.amount,
            currency=payment.currency,
            token=dto.token,
        )
        approved = payment.apply_result(
            transaction_id=result.transaction_id,
            response_code=result.response_code,
            response_message=result.response_message,
            authorization_code=result.authorization_code,
        )
        log.info(
            "payment.authorized" if approved else "payment.declined",
            transaction_id=result.transaction_id,
            response_code=result.response_code,
        )
        if approved:
            self._on_approved(payment)
        return payment

    @transaction.atomic
    def handle_webhook(self, body: bytes, signature: str) -> PaymentTransaction:
        """Apply a gateway notification.

        Raises:
            InvalidWebhookSignature: the body was not signed with the
                shared secret.
            pydantic.ValidationError: the payload is malformed.
            PaymentSessionNotFound: no pending transaction for the order.
            PaymentMismatch: the notified amount differs.
        """
        if not verify_webhook_signature(body, signature, settings.NIUBIZ_WEBHOOK_SECRET):
            logger.warning("payment.webhook_invalid_signature")
            raise InvalidWebhookSignature("Invalid webhook signature.")

        notification = WebhookNotificationDTO.model_validate_json(body)
        log = logger.bind(
            purchase_number=notification.order_id,
            transaction_id=notification.transaction_id,
        )

        payment = self._find_for_notification(notification)
        if payment.status != PaymentStatus.PENDING:
            log.info("payment.webhook_replayed", status=payment.status)
            return payment

        if payment.amount != notification.amount:
            log.warning(
                "payment.webhook_amount_mismatch",
                expected_amount=str(payment.amount),
                received_amount=str(notification.amount),
            )
            raise PaymentMismatch("Notified amount does not match the payment.")

        approved = payment.apply_result(
            transaction_id=notification.transaction_id,
            response_code=notification.response_code,
            response_message=notification.response_message,
            authorization_code=notification.authorization_code,
        )
        log.info("payment.webhook_applied", approved=approved)
        if approved:
            self._on_approved(payment)
        return payment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> PaymentTransaction:
        payment = PaymentTransaction.objects.filter(session_id=session_id).first()
        if payment is None:
            raise PaymentSessionNotFound(f"Payment session '{session_id}' not found.")
        return payment

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_approved(self, payment: PaymentTransaction) -> None:
        """Confirm the linked order, unless its total moved since the session opened."""
        if payment.order_id is not None:
            order = payment.order
            order.refresh_from_db(fields=["total_amount", "status"])
            if order.total_amount != payment.amount:
                logger.warning(
                    "payment.amount_mismatch",
                    payment_id=str(payment.id),
                    order_id=str(order.id),
                    order_total=str(order.total_amount),
                    paid_amount=str(payment.amount),
                )
                return
            self._order_service.confirm_payment(
                payment.order_id, reference=payment.transaction_id
            )
        payment_id = str(payment.id)
        transaction.on_commit(lambda: send_payment_confirmation_email.delay(payment_id))

    def _get_locked_session(self, session_id: str) -> PaymentTransaction:
        payment = (
            PaymentTransaction.objects.select_for_update()
            .filter(session_id=session_id)
            .first()
        )
        if payment is None:
            raise PaymentSessionNotFound(f"Payment session '{session_id}' not found.")
        return payment

    def _find_for_notification(
        self, notification: WebhookNotificationDTO
    ) -> PaymentTransaction:
        payments = PaymentTransaction.objects.select_for_update()
        payment = None
        if notification.transaction_id:
            payment = payments.filter(transaction_id=notification.transaction_id).first()
        payment = payment or (
            payments.filter(
                purchase_number=notification.order_id,
                status=PaymentStatus.PENDING,
            )
            .order_by("-created_at")
            .first()
        )
        if payment is None:
            raise PaymentSessionNotFound(
                f"No pending payment for order '{notification.order_id}'."
            )
        return payment

