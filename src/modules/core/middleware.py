"""Request correlation for structured logs."""

import time
import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

CORRELATION_HEADER = "X-Request-ID"
QUIET_PATHS = ("/health",)

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger(__name__)


class CorrelationIdMiddleware:
    """Tag every log line of a request with one correlation id.

    The id comes from the ``X-Request-ID`` header (the storefront and the
    payment gateway both send one) or is generated, and is echoed back in
    the response.  Health probes are not logged.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        correlation_id_var.set(cid)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        quiet = request.path.startswith(QUIET_PATHS)
        started = time.monotonic()
        response = self.get_response(request)

        if not quiet:
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "http.request",
                method=request.method,
                path=request.path,
                status_code=response.status_code,
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )
        response[CORRELATION_HEADER] = cid
        return response
