"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import (
    MAX_INSTALLMENTS,
    MIN_INSTALLMENTS,
    OrderStatus,
    PaymentMethod,
)
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in an order creation request."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    size = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload."""

    customer_name = serializers.CharField(max_length=255)
    customer_dni = serializers.CharField(max_length=8)
    customer_phone = serializers.CharField(max_length=30)
    customer_email = serializers.EmailField(required=False, default="", allow_blank=True)
    shipping_address = serializers.CharField()
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, default=PaymentMethod.BANK_TRANSFER
    )
    installments = serializers.IntegerField(
        min_value=MIN_INSTALLMENTS, max_value=MAX_INSTALLMENTS, default=MIN_INSTALLMENTS
    )
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class CheckoutSerializer(serializers.Serializer):
    """Validates the checkout form posted with the session cart."""

    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    dni = serializers.CharField(max_length=8)
    phone = serializers.CharField(max_length=30)
    email = serializers.EmailField(required=False, default="", allow_blank=True)
    address = serializers.CharField(max_length=255)
    department = serializers.CharField(max_length=100)
    city = serializers.CharField(max_length=100)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, default=PaymentMethod.BANK_TRANSFER
    )
    installments = serializers.IntegerField(
        min_value=MIN_INSTALLMENTS, max_value=MAX_INSTALLMENTS, default=MIN_INSTALLMENTS
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class UpdateStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items with product snapshot."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "selected_size",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "changed_by",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_code",
            "customer_name",
            "customer_dni",
            "customer_phone",
            "customer_email",
            "shipping_address",
            "payment_method",
            "installments",
            "status",
            "total_amount",
            "notes",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_code",
            "customer_name",
            "status",
            "total_amount",
            "payment_method",
            "created_at",
        ]
        read_only_fields = fields


class CheckoutResultSerializer(serializers.ModelSerializer):
    """What the buyer sees right after checkout."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "order_code",
            "status",
            "customer_name",
            "shipping_address",
            "payment_method",
            "installments",
            "total_amount",
            "created_at",
            "items",
        ]
        read_only_fields = fields
