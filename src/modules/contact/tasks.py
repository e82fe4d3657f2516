"""Background tasks for the contact module."""

from smtplib import SMTPException

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMessage

logger = structlog.get_logger(__name__)


@shared_task(
    name="contact.send_contact_message",
    autoretry_for=(SMTPException, ConnectionError),
    retry_backoff=True,
    max_retries=3,
)
def send_contact_message(subject: str, body: str, reply_to: str) -> int:
    """Forward a contact form submission to the shop inbox."""
    email = EmailMessage(
        subject=f"{settings.CONTACT_SUBJECT_PREFIX} {subject}",
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[settings.CONTACT_RECIPIENT_EMAIL],
        reply_to=[reply_to],
    )
    sent = email.send(fail_silently=False)
    logger.info("contact.message_sent", recipient=settings.CONTACT_RECIPIENT_EMAIL)
    return sent
