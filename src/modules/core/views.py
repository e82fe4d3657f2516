import time
from typing import Any, Callable, Dict

import structlog
from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.permissions import IsStoreAdmin

logger = structlog.get_logger(__name__)

HEALTH_CACHE_KEY = "_health_check"


def _ping_database() -> None:
    with connections["default"].cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _ping_cache() -> None:
    cache.set(HEALTH_CACHE_KEY, "ok", 10)
    if cache.get(HEALTH_CACHE_KEY) != "ok":
        raise ConnectionError("Cache read-back failed")


def _probe(name: str, ping: Callable[[], None]) -> Dict[str, Any]:
    started = time.monotonic()
    try:
        ping()
    except (DatabaseError, ConnectionError, OSError) as exc:
        logger.error("health.probe_failed", service=name, error=str(exc))
        return {"status": "down"}
    return {"status": "up", "response_time_ms": round((time.monotonic() - started) * 1000, 2)}


def health_check(request: HttpRequest) -> JsonResponse:
    """Liveness for the load balancer: database, cache and gateway mode."""
    services: Dict[str, Dict[str, Any]] = {
        "database": _probe("database", _ping_database),
        "cache": _probe("cache", _ping_cache),
        "payment_gateway": {"status": "configured", "mode": settings.PAYMENT_GATEWAY},
    }
    healthy = all(service["status"] != "down" for service in services.values())
    label = "healthy" if healthy else "unhealthy"
    logger.info("health.checked", status=label)
    return JsonResponse(
        {"status": label, "timestamp": timezone.now().isoformat(), "services": services},
        status=200 if healthy else 503,
    )


class AdminSessionView(APIView):
    """Back-office identity check.

    * No token        -> 401
    * Non-admin token -> 403
    * Admin token     -> 200 with the resolved identity
    """

    permission_classes = [IsStoreAdmin]

    def get(self, request: HttpRequest) -> Response:
        user = request.user
        return Response(
            {
                "message": "authenticated",
                "user": str(user),
                "email": getattr(user, "email", ""),
                "is_admin": True,
            }
        )
