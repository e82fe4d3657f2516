"""Payment URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.payments.views import (
    PaymentAuthorizeView,
    PaymentSessionView,
    PaymentWebhookView,
)

urlpatterns = [
    path("payments/session/", PaymentSessionView.as_view(), name="payment-session"),
    path("payments/authorize/", PaymentAuthorizeView.as_view(), name="payment-authorize"),
    path("payments/webhook/", PaymentWebhookView.as_view(), name="payment-webhook"),
]
