"""API error handling.

Error payloads are rendered by ``drf-standardized-errors``::

    {"type": "validation_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

Views translate domain exceptions into the ``APIException`` subclasses
below (or DRF built-ins).
"""

from __future__ import annotations

from typing import Dict, List

import structlog
from drf_standardized_errors.handler import ExceptionHandler
from rest_framework import exceptions
from rest_framework.response import Response

logger = structlog.get_logger(__name__)


class LoggingExceptionHandler(ExceptionHandler):
    """Standard handler that also records every API error as a log event."""

    def report_exception(self, exc: exceptions.APIException, response: Response) -> None:
        request = self.context.get("request")
        logger.info(
            "api.error",
            status_code=response.status_code,
            exception=type(exc).__name__,
            path=getattr(request, "path", None),
        )
        super().report_exception(exc, response)


# ---------------------------------------------------------------------------
# Exceptions raised by views when translating domain errors
# ---------------------------------------------------------------------------


class Conflict(exceptions.APIException):
    """409: the request clashes with current state (stock, duplicates)."""

    status_code = 409
    default_detail = "The request conflicts with the current state of the resource."
    default_code = "conflict"


class BusinessRuleViolation(exceptions.APIException):
    """400: a domain rule rejected an otherwise well-formed request."""

    status_code = 400
    default_detail = "The request violates a business rule."
    default_code = "business_rule"


def validation_error_from_pydantic(exc) -> exceptions.ValidationError:
    """Convert a pydantic ``ValidationError`` into DRF's field-keyed form."""
    detail: Dict[str, List[str]] = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "non_field_errors"
        message = error.get("msg", "Invalid value.")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        detail.setdefault(location, []).append(message)
    return exceptions.ValidationError(detail)
