"""Cart API views.

The cart is anonymous session state, so every endpoint is public.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.cart.cart import Cart
from modules.cart.dtos import AddCartItemDTO, RemoveCartItemDTO, UpdateCartItemDTO
from modules.cart.serializers import cart_payload
from modules.core.exceptions import BusinessRuleViolation, validation_error_from_pydantic
from modules.products.exceptions import ProductNotFound, SizeRequired, VariantNotFound


def _validate(dto_cls, data):
    try:
        return dto_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise validation_error_from_pydantic(exc) from exc


class CartView(APIView):
    """GET returns the cart summary; DELETE empties it."""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        return Response(cart_payload(Cart(request.session)))

    def delete(self, request: Request) -> Response:
        Cart(request.session).clear()
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartItemsView(APIView):
    """POST adds a line, PATCH sets its quantity, DELETE removes it."""

    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        dto = _validate(AddCartItemDTO, request.data)
        cart = Cart(request.session)
        try:
            cart.add(str(dto.product_id), dto.quantity, dto.size)
        except ProductNotFound as exc:
            raise NotFound("Product not found.") from exc
        except (SizeRequired, VariantNotFound) as exc:
            raise BusinessRuleViolation(str(exc)) from exc
        return Response(cart_payload(cart), status=status.HTTP_201_CREATED)

    def patch(self, request: Request) -> Response:
        dto = _validate(UpdateCartItemDTO, request.data)
        cart = Cart(request.session)
        cart.update_quantity(str(dto.product_id), dto.quantity, dto.size)
        return Response(cart_payload(cart))

    def delete(self, request: Request) -> Response:
        dto = _validate(RemoveCartItemDTO, request.data)
        cart = Cart(request.session)
        cart.remove(str(dto.product_id), dto.size)
        return Response(cart_payload(cart))
