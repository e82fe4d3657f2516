"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- Invalid status transitions rejected (enforced at service layer).
- Each status change generates a history record.
- History contains old/new status, timestamp, author and notes.
- Idempotency via ``idempotency_key`` unique constraint.
- ``order_code`` auto-generated as the customer-facing identifier.
- OrderItem snapshots product name and price at creation time.
- OrderItem subtotal is always ``quantity * unit_price`` (calculated on save).
- Orders are hard-deleted; stock compensation happens in the service.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import (
    MaxValueValidator,
    MinValueValidator,
    RegexValidator,
)
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    DNI_PATTERN,
    MAX_INSTALLMENTS,
    MIN_INSTALLMENTS,
    ORDER_CODE_MAX_RETRIES,
    ORDER_CODE_PREFIX,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_code`` (``ORD-`` + 6 digits) is what customers use to track
    their purchase.  The UUIDv7 ``id`` is used for all internal references
    and admin API lookups.

    ``idempotency_key`` is nullable: only orders created with an
    ``Idempotency-Key`` header carry one.
    """

    order_code: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    customer_name: models.CharField = models.CharField(max_length=255)
    customer_dni: models.CharField = models.CharField(
        max_length=8,
        validators=[RegexValidator(DNI_PATTERN, "DNI must have exactly 8 digits.")],
    )
    customer_phone: models.CharField = models.CharField(max_length=30)
    customer_email: models.EmailField = models.EmailField(blank=True, default="")
    shipping_address: models.TextField = models.TextField()
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    payment_method: models.CharField = models.CharField(
        max_length=30,
        choices=PaymentMethod.choices,
        default=PaymentMethod.BANK_TRANSFER,
    )
    installments: models.PositiveSmallIntegerField = models.PositiveSmallIntegerField(
        default=MIN_INSTALLMENTS,
        validators=[
            MinValueValidator(MIN_INSTALLMENTS),
            MaxValueValidator(MAX_INSTALLMENTS),
        ],
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.RECEIVED,
    )
    notes: models.TextField = models.TextField(blank=True, default="")
    idempotency_key: models.CharField = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        allowed = VALID_TRANSITIONS.get(self.status, set())
        return new_status in allowed

    def recalculate_total(self) -> Decimal:
        total = self.items.aggregate(total=models.Sum("subtotal"))["total"] or Decimal("0.00")
        self.total_amount = total
        return total

    # ------------------------------------------------------------------
    # Order code generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_code() -> str:
        """Generate a customer-facing code: ``ORD-`` followed by 6 digits."""
        return f"{ORDER_CODE_PREFIX}{100000 + secrets.randbelow(900000)}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_code:
            for _attempt in range(ORDER_CODE_MAX_RETRIES):
                candidate = self.generate_order_code()
                if not Order.objects.filter(order_code=candidate).exists():
                    self.order_code = candidate
                    break
                logger.warning("order.code_collision", candidate=candidate)
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_code after "
                    f"{ORDER_CODE_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_code} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product.

    ``product_name`` and ``unit_price`` are **snapshots** taken at the time
    of purchase; they never change even if the catalog is edited later.
    ``selected_size`` names the variant whose stock was reserved.
    ``subtotal`` is always ``quantity * unit_price``, recalculated on every save.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    product_name: models.CharField = models.CharField(max_length=255)
    selected_size: models.CharField = models.CharField(  # noqa: DJ01
        max_length=50, null=True, blank=True
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.unit_price:
            unit_price = getattr(self.product, "price", None)
            if unit_price is None:
                raise ValidationError({"unit_price": "Product price is required."})
            self.unit_price = unit_price
        if not self.product_name:
            self.product_name = self.product.name
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        size = f" [{self.selected_size}]" if self.selected_size else ""
        return f"{self.product_name}{size} x{self.quantity} (S/ {self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Each record captures a single status change with the responsible
    back-office identity and optional notes (e.g. cancellation reason).

    Audit records are **immutable**; they are only removed together with
    their order.  An empty ``changed_by`` means the change was performed by
    the system (e.g. payment confirmation).
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    changed_by: models.CharField = models.CharField(max_length=255, blank=True, default="")
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order} : {self.old_status} -> {self.new_status}"
