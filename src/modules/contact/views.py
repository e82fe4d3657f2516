"""Contact form endpoint."""

from __future__ import annotations

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.contact.dtos import ContactMessageDTO
from modules.contact.tasks import send_contact_message
from modules.core.exceptions import validation_error_from_pydantic

logger = structlog.get_logger(__name__)


class ContactView(APIView):
    """POST /api/v1/contact/

    The message is queued for delivery; the response does not wait for
    the mail server.
    """

    permission_classes = [AllowAny]
    throttle_scope = "contact"

    def post(self, request: Request) -> Response:
        try:
            dto = ContactMessageDTO.model_validate(request.data)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        send_contact_message.delay(dto.subject, dto.body(), dto.email)
        logger.info("contact.message_queued", has_phone=dto.phone is not None)
        return Response(
            {"detail": "Message received. We will get back to you soon."},
            status=status.HTTP_202_ACCEPTED,
        )
