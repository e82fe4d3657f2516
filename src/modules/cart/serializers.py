"""Cart output serializers."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.products.images import get_optimized_image_url


class CartLineSerializer(serializers.Serializer):
    product_id = serializers.UUIDField(source="product.id")
    name = serializers.CharField(source="product.name")
    image = serializers.SerializerMethodField()
    size = serializers.CharField(allow_null=True)
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    in_stock = serializers.BooleanField(source="product.in_stock")

    def get_image(self, obj) -> str:
        return get_optimized_image_url(obj.product.main_image, width=200)


def cart_payload(cart) -> dict:
    lines = cart.lines()
    return {
        "items": CartLineSerializer(lines, many=True).data,
        "total_items": sum(line.quantity for line in lines),
        "total_price": str(sum((line.subtotal for line in lines), Decimal("0.00"))),
    }
