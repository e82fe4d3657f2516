"""Catalog exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class ProductNotFound(Exception):
    """The requested product does not exist or has been soft-deleted."""


class VariantNotFound(Exception):
    """The product has no variant with the requested size."""


class InvalidStockAdjustment(Exception):
    """A stock change would break the simple/variant stock rules."""


class SizeRequired(Exception):
    """The product is sold in sizes and none was selected."""
