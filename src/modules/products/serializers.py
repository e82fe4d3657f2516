"""Product DRF serializers for API output.

The serializers operate at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.products.images import get_optimized_image_url
from modules.products.models import Product, ProductImage, ProductVariant


class ProductVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariant
        fields = ["id", "size", "stock", "price"]
        read_only_fields = fields


class ProductImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = [
            "id",
            "public_id",
            "secure_url",
            "format",
            "bytes",
            "width",
            "height",
            "is_main",
            "sort_order",
        ]
        read_only_fields = fields


class ProductSerializer(serializers.ModelSerializer):
    """Read serializer for the Product resource, variants and images nested."""

    variants = ProductVariantSerializer(many=True, read_only=True)
    images = ProductImageSerializer(many=True, read_only=True)
    optimized_image = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "description",
            "category",
            "price",
            "main_image",
            "optimized_image",
            "additional_images",
            "featured",
            "stock",
            "in_stock",
            "display_order",
            "status",
            "variants",
            "images",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_optimized_image(self, obj: Product) -> str:
        return get_optimized_image_url(obj.main_image)
