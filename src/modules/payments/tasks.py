"""Background tasks for the payments module."""

from smtplib import SMTPException

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

logger = structlog.get_logger(__name__)


@shared_task(
    name="payments.send_payment_confirmation_email",
    autoretry_for=(SMTPException, ConnectionError),
    retry_backoff=True,
    max_retries=3,
)
def send_payment_confirmation_email(payment_id: str) -> bool:
    """E-mail the customer that their card payment was approved."""
    from modules.payments.models import PaymentTransaction

    payment = PaymentTransaction.objects.filter(id=payment_id).first()
    if payment is None:
        logger.warning("payment.confirmation_email_skipped", payment_id=payment_id)
        return False

    subject = f"{settings.STORE_NAME} - Pago confirmado {payment.purchase_number}"
    message = (
        f"Hemos recibido tu pago de {payment.currency} {payment.amount} "
        f"para el pedido {payment.purchase_number}.\n"
        f"Código de autorización: {payment.authorization_code or '-'}\n"
        f"Transacción: {payment.transaction_id}\n\n"
        f"Gracias por comprar en {settings.STORE_NAME}."
    )
    send_mail(
        subject,
        message,
        settings.DEFAULT_FROM_EMAIL,
        [payment.customer_email],
        fail_silently=False,
    )
    logger.info(
        "payment.confirmation_email_sent",
        payment_id=payment_id,
        purchase_number=payment.purchase_number,
    )
    return True
