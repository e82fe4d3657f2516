"""Contact URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.contact.views import ContactView

urlpatterns = [
    path("contact/", ContactView.as_view(), name="contact"),
]
