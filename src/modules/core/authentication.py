"""Hosted-auth (Supabase) JWT authentication backend for Django REST Framework.

The storefront's back-office signs in against the hosted auth provider,
which issues HS256 JWTs signed with the project's JWT secret.  The token is
verified locally with PyJWT; there is no network call per request.

Security decisions
------------------
* **Fail Closed**: any decode or validation error returns 401.
* ``algorithms`` is hard-coded to HS256, never read from the token header.
* Audience is always validated; issuer too when ``SUPABASE_URL`` is set.
* Tokens without the hosted issuer are left to other backends (SimpleJWT).
"""

from __future__ import annotations

import jwt as pyjwt
import structlog
from django.conf import settings
from jwt.exceptions import PyJWTError
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

logger = structlog.get_logger(__name__)

SUPABASE_ALGORITHM = "HS256"


def _expected_issuer() -> str:
    base = settings.SUPABASE_URL.rstrip("/")
    return f"{base}/auth/v1" if base else ""


class HostedAuthUser:
    """Lightweight user object for requests authenticated by the hosted provider.

    The provider is the source of truth; no local ``User`` row is required.
    ``is_staff`` is derived from ``app_metadata.role == "admin"``.
    """

    def __init__(self, payload: dict):
        self.payload = payload
        self.sub: str = payload.get("sub", "")
        self.email: str = payload.get("email", "") or ""
        app_metadata = payload.get("app_metadata") or {}
        self.role: str = app_metadata.get("role", "") or payload.get("role", "")
        self.is_staff: bool = app_metadata.get("role") == "admin"

    # DRF checks
    is_authenticated = True
    is_active = True
    is_anonymous = False

    @property
    def pk(self) -> str:
        return self.sub

    def __str__(self) -> str:  # pragma: no cover
        return self.email or self.sub


class SupabaseJWTAuthentication(BaseAuthentication):
    """DRF authentication class that validates hosted-auth Bearer tokens."""

    keyword = "Bearer"

    # ------------------------------------------------------------------
    # Public API (DRF contract)
    # ------------------------------------------------------------------

    def authenticate(self, request):
        """Return ``(HostedAuthUser, token)`` or ``None`` (not our token)."""
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not header:
            return None

        token = self._extract_token(header)

        if not settings.SUPABASE_JWT_SECRET:
            return None
        if not self._looks_like_hosted_token(token):
            return None

        payload = self._decode_token(token)
        user = HostedAuthUser(payload)
        logger.info("jwt_authenticated", sub=user.sub, role=user.role)
        return (user, token)

    def authenticate_header(self, request):
        """Value for the ``WWW-Authenticate`` response header on 401."""
        return f'{self.keyword} realm="api"'

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_token(header: str) -> str:
        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise AuthenticationFailed("Invalid Authorization header format.")
        return parts[1]

    @staticmethod
    def _looks_like_hosted_token(token: str) -> bool:
        """Hosted tokens carry the provider audience (and issuer when known)."""
        try:
            payload = pyjwt.decode(
                token,
                options={
                    "verify_signature": False,
                    "verify_aud": False,
                    "verify_iss": False,
                    "verify_exp": False,
                },
            )
        except PyJWTError:
            return False
        audience = payload.get("aud")
        audiences = audience if isinstance(audience, list) else [audience]
        if settings.SUPABASE_JWT_AUDIENCE not in audiences:
            return False
        issuer = _expected_issuer()
        return not issuer or payload.get("iss") == issuer

    @staticmethod
    def _decode_token(token: str) -> dict:
        issuer = _expected_issuer()
        options = {"require": ["exp", "sub"]}
        try:
            payload = pyjwt.decode(
                token,
                settings.SUPABASE_JWT_SECRET,
                algorithms=[SUPABASE_ALGORITHM],
                audience=settings.SUPABASE_JWT_AUDIENCE,
                issuer=issuer or None,
                options=options,
            )
        except PyJWTError as exc:
            logger.warning("jwt_validation_failed", error=str(exc))
            raise AuthenticationFailed(f"Token validation failed: {exc}") from exc
        return payload
