"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Checkout, order creation and tracking are public; everything else is
back-office only.  Domain exceptions are caught and translated into DRF
exceptions; the view never swallows generic exceptions.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.cart.cart import Cart
from modules.core.exceptions import (
    BusinessRuleViolation,
    Conflict,
    validation_error_from_pydantic,
)
from modules.core.pagination import StandardResultsSetPagination
from modules.core.permissions import IsStoreAdmin
from modules.orders.dtos import CheckoutDTO, CreateOrderDTO
from modules.orders.exceptions import (
    EmptyCart,
    InactiveProduct,
    InsufficientStock,
    InvalidOrderStatus,
    OrderItemNotFound,
    OrderLocked,
    OrderNotFound,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CheckoutResultSerializer,
    CheckoutSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    UpdateStatusSerializer,
)
from modules.orders.services import OrderService
from modules.products.exceptions import ProductNotFound, SizeRequired, VariantNotFound
from modules.products.repositories.django_repository import ProductDjangoRepository

PUBLIC_ACTIONS = {"create", "checkout", "track"}
THROTTLE_SCOPES = {
    "create": "checkout",
    "checkout": "checkout",
    "track": "order_tracking",
}


def _actor(request: Request) -> str:
    user = request.user
    return getattr(user, "email", "") or str(user)


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.none()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["order_code", "customer_name", "customer_dni"]
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
        )

    def get_permissions(self):
        if self.action in PUBLIC_ACTIONS:
            return [AllowAny()]
        return [IsStoreAdmin()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Scoped throttling for the public endpoints."""
        self.throttle_scope = THROTTLE_SCOPES.get(self.action)
        return super().get_throttles()

    def get_queryset(self):
        return self._service.list_orders()

    # ------------------------------------------------------------------
    # Create / Checkout (public)
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data

        try:
            dto = CreateOrderDTO(
                **data,
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        order = self._place(lambda: self._service.create_order(dto))
        return Response(CheckoutResultSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"])
    def checkout(self, request: Request) -> Response:
        """POST /api/v1/orders/checkout/

        Creates an order from the session cart and empties the cart.
        """
        checkout_serializer = CheckoutSerializer(data=request.data)
        checkout_serializer.is_valid(raise_exception=True)

        try:
            dto = CheckoutDTO(**checkout_serializer.validated_data)
        except PydanticValidationError as exc:
            raise validation_error_from_pydantic(exc) from exc

        cart = Cart(request.session)
        idempotency_key = request.headers.get("Idempotency-Key")
        order = self._place(lambda: self._service.checkout(cart, dto, idempotency_key))
        return Response(CheckoutResultSerializer(order).data, status=status.HTTP_201_CREATED)

    @staticmethod
    def _place(create):
        try:
            return create()
        except ProductNotFound as exc:
            raise NotFound(str(exc)) from exc
        except (InactiveProduct, SizeRequired, VariantNotFound, EmptyCart) as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        except InsufficientStock as exc:
            raise Conflict(str(exc)) from exc

    # ------------------------------------------------------------------
    # Tracking (public)
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"], url_path=r"track/(?P<order_code>[^/]+)")
    def track(self, request: Request, order_code: str | None = None) -> Response:
        """GET /api/v1/orders/track/{order_code}/"""
        try:
            tracking = self._service.track_order(order_code or "")
        except OrderNotFound as exc:
            raise NotFound("Order not found.") from exc
        return Response(tracking.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # List / Retrieve (admin)
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, code, DNI, date range, total range) is handled
        by ``OrderFilter``; search and ordering by the DRF filters.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound as exc:
            raise NotFound("Order not found.") from exc
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Workflow (admin)
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/"""
        status_serializer = UpdateStatusSerializer(data=request.data)
        status_serializer.is_valid(raise_exception=True)
        data = status_serializer.validated_data

        try:
            order = self._service.update_status(
                order_id=pk,
                new_status=data["status"],
                notes=data["notes"],
                changed_by=_actor(request),
            )
        except OrderNotFound as exc:
            raise NotFound("Order not found.") from exc
        except InvalidOrderStatus as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels an order and restores the stock of every line.
        """
        try:
            order = self._service.cancel_order(
                order_id=pk,
                notes=request.data.get("notes", ""),
                changed_by=_actor(request),
            )
        except OrderNotFound as exc:
            raise NotFound("Order not found.") from exc
        except InvalidOrderStatus as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        return Response(OrderSerializer(order).data)

    @action(
        detail=True,
        methods=["delete"],
        url_path=r"items/(?P<item_id>[^/.]+)",
    )
    def remove_item(
        self, request: Request, pk: str | None = None, item_id: str | None = None
    ) -> Response:
        """DELETE /api/v1/orders/{pk}/items/{item_id}/"""
        try:
            order = self._service.remove_item(
                order_id=pk, item_id=item_id, changed_by=_actor(request)
            )
        except (OrderNotFound, OrderItemNotFound) as exc:
            raise NotFound(str(exc)) from exc
        except OrderLocked as exc:
            raise Conflict(str(exc)) from exc
        return Response(OrderSerializer(order).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/

        Restores stock (unless the order was cancelled) and removes it.
        """
        try:
            self._service.delete_order(order_id=pk, changed_by=_actor(request))
        except OrderNotFound as exc:
            raise NotFound("Order not found.") from exc
        return Response(status=status.HTTP_204_NO_CONTENT)
