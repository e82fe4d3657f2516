"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.  Catalog look-up failures reuse
``modules.products.exceptions``.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist."""


class OrderItemNotFound(Exception):
    """The order has no line with the requested id."""


class InvalidOrderStatus(Exception):
    """An invalid status transition was attempted."""


class OrderLocked(Exception):
    """The order is in a terminal state and its lines can no longer change."""


class InsufficientStock(Exception):
    """Not enough stock (simple or variant) to fulfil the order."""


class InactiveProduct(Exception):
    """A product referenced by an order item is inactive."""


class EmptyCart(Exception):
    """Checkout was attempted with an empty cart."""
