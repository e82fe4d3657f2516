"""Product API views.

Exposes the ``ProductService`` via HTTP using DRF ViewSets.
Catalog reads are public; writes require a store administrator.
Domain exceptions are caught and translated into DRF exceptions, which
the project exception handler renders; generic exceptions propagate.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import (
    BusinessRuleViolation,
    validation_error_from_pydantic,
)
from modules.core.permissions import IsStoreAdmin
from modules.products.dtos import (
    AdjustStockDTO,
    CreateProductDTO,
    RegisterImagesDTO,
    ReorderProductsDTO,
    UpdateProductDTO,
)
from modules.products.exceptions import (
    InvalidStockAdjustment,
    ProductNotFound,
    VariantNotFound,
)
from modules.products.filters import ProductFilter
from modules.products.models import Product, ProductStatus
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.serializers import ProductSerializer
from modules.products.services import ProductService

PUBLIC_ACTIONS = {"list", "retrieve", "featured", "most_expensive"}
MOST_EXPENSIVE_DEFAULT = 3
MOST_EXPENSIVE_MAX = 20


class ProductViewSet(ListModelMixin, GenericViewSet):
    """ViewSet for the catalog.

    Uses ``ProductService`` with ``ProductDjangoRepository`` (DIP).
    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    filterset_class = ProductFilter
    search_fields = ["name", "description"]
    ordering_fields = ["display_order", "price", "name", "created_at"]
    ordering = ["display_order", "-created_at"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    queryset = Product.objects.none()
    serializer_class = ProductSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = ProductService(repository=ProductDjangoRepository())

    def get_permissions(self):
        if self.action in PUBLIC_ACTIONS:
            return [AllowAny()]
        return [IsStoreAdmin()]

    def get_queryset(self):
        queryset = self._service.list_products()
        if not self._is_admin():
            queryset = queryset.filter(status=ProductStatus.ACTIVE)
        return queryset

    def _is_admin(self) -> bool:
        return IsStoreAdmin().has_permission(self.request, self)

    # ------------------------------------------------------------------
    # Public reads
    # ------------------------------------------------------------------

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/"""
        try:
            product = self._service.get_product(pk)
        except ProductNotFound as exc:
            raise NotFound("Product not found.") from exc
        if product.status != ProductStatus.ACTIVE and not self._is_admin():
            raise NotFound("Product not found.")
        return Response(ProductSerializer(product).data)

    @action(detail=False, methods=["get"])
    def featured(self, request: Request) -> Response:
        """GET /api/v1/products/featured/"""
        products = self._service.featured_products()
        return Response(ProductSerializer(products, many=True).data)

    @action(detail=False, methods=["get"], url_path="most-expensive")
    def most_expensive(self, request: Request) -> Response:
        """GET /api/v1/products/most-expensive/?limit=N"""
        try:
            limit = int(request.query_params.get("limit", MOST_EXPENSIVE_DEFAULT))
        except ValueError as exc:
            raise BusinessRuleViolation("limit must be an integer.") from exc
        limit = max(1, min(limit, MOST_EXPENSIVE_MAX))
        products = self._service.most_expensive_products(limit)
        return Response(ProductSerializer(products, many=True).data)

    # ------------------------------------------------------------------
    # Admin writes
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/products/"""
        try:
            dto = CreateProductDTO.model_validate(request.data)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        product = self._service.create_product(dto)
        product = self._service.get_product(product.id)
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/products/{pk}/"""
        try:
            dto = UpdateProductDTO.model_validate(request.data)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        try:
            product = self._service.update_product(pk, dto)
        except ProductNotFound as exc:
            raise NotFound("Product not found.") from exc
        except InvalidStockAdjustment as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        return Response(ProductSerializer(product).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/products/{pk}/"""
        return self.update(request, pk)

    @action(detail=True, methods=["patch"], url_path="stock")
    def adjust_stock(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/products/{pk}/stock/

        Accepts ``{"stock": N}`` or ``{"stock": N, "size": "7"}``.
        """
        try:
            dto = AdjustStockDTO.model_validate(request.data)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        try:
            product = self._service.adjust_stock(pk, dto)
        except (ProductNotFound, VariantNotFound) as exc:
            raise NotFound(str(exc)) from exc
        except InvalidStockAdjustment as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        return Response(ProductSerializer(product).data)

    @action(detail=True, methods=["post"], url_path="images")
    def register_images(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/products/{pk}/images/"""
        try:
            dto = RegisterImagesDTO.model_validate(request.data)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        try:
            product = self._service.register_images(pk, dto)
        except ProductNotFound as exc:
            raise NotFound("Product not found.") from exc
        return Response(ProductSerializer(product).data)

    @action(detail=False, methods=["post"], url_path="reorder")
    def reorder(self, request: Request) -> Response:
        """POST /api/v1/products/reorder/ with ``{"product_ids": [...]}``."""
        try:
            dto = ReorderProductsDTO.model_validate(request.data)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        try:
            updated = self._service.reorder_products(dto)
        except ProductNotFound as exc:
            raise NotFound(str(exc)) from exc
        return Response({"updated": updated})

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/products/{pk}/"""
        try:
            self._service.delete_product(pk)
        except ProductNotFound as exc:
            raise NotFound("Product not found.") from exc
        return Response(status=status.HTTP_204_NO_CONTENT)
