"""Permission classes for the back-office endpoints."""

from __future__ import annotations

from django.conf import settings
from rest_framework.permissions import BasePermission


class IsStoreAdmin(BasePermission):
    """Allow staff users and hosted-auth users flagged as store admins."""

    message = "Store administrator privileges are required."

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if getattr(user, "is_staff", False):
            return True
        email = (getattr(user, "email", "") or "").lower()
        admin_emails = {e.strip().lower() for e in settings.STORE_ADMIN_EMAILS if e.strip()}
        return bool(email) and email in admin_emails
