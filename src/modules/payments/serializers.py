"""DRF serializers for payments.

Input validation lives in the DTOs; these only shape responses.
"""

from __future__ import annotations

from django.conf import settings
from rest_framework import serializers

from modules.payments.models import PaymentTransaction


class PaymentSessionSerializer(serializers.ModelSerializer):
    """What the card form needs to open the gateway checkout."""

    session_key = serializers.CharField(source="session_id", read_only=True)
    order_id = serializers.CharField(source="purchase_number", read_only=True)
    merchant_id = serializers.SerializerMethodField()

    class Meta:
        model = PaymentTransaction
        fields = [
            "session_key",
            "merchant_id",
            "order_id",
            "amount",
            "currency",
            "signature",
            "gateway",
        ]
        read_only_fields = fields

    def get_merchant_id(self, obj: PaymentTransaction) -> str:
        return settings.NIUBIZ_MERCHANT_ID


class PaymentResultSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(source="purchase_number", read_only=True)
    approved = serializers.BooleanField(source="is_approved", read_only=True)
    order_status = serializers.SerializerMethodField()

    class Meta:
        model = PaymentTransaction
        fields = [
            "id",
            "order_id",
            "approved",
            "status",
            "transaction_id",
            "authorization_code",
            "response_code",
            "response_message",
            "amount",
            "currency",
            "processed_at",
            "order_status",
        ]
        read_only_fields = fields

    def get_order_status(self, obj: PaymentTransaction) -> str | None:
        if obj.order_id is None:
            return None
        return obj.order.status
