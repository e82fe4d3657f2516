"""Cart URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.cart.views import CartItemsView, CartView

urlpatterns = [
    path("cart/", CartView.as_view(), name="cart"),
    path("cart/items/", CartItemsView.as_view(), name="cart-items"),
]
