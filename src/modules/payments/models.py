"""Card payment transactions.

One ``PaymentTransaction`` is created per payment session and carries the
gateway's answer once the card is authorized (or the webhook arrives).
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel

SUCCESS_CODES = frozenset({"0", "00", "000"})


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    APPROVED = "APPROVED", "Approved"
    DECLINED = "DECLINED", "Declined"


class Currency(models.TextChoices):
    PEN = "PEN", "Soles"
    USD = "USD", "US Dollars"


class PaymentTransaction(BaseModel):
    """A card payment attempt for an order.

    ``purchase_number`` is the order reference sent to the gateway (the
    order code).  ``order`` is linked when that code matches an order.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    purchase_number = models.CharField(max_length=50, db_index=True)
    session_id = models.CharField(max_length=100, unique=True)
    signature = models.CharField(max_length=128, blank=True, default="")
    gateway = models.CharField(max_length=20)
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.PEN)
    customer_email = models.EmailField()
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    transaction_id = models.CharField(max_length=100, blank=True, default="", db_index=True)
    authorization_code = models.CharField(max_length=50, blank=True, default="")
    response_code = models.CharField(max_length=10, blank=True, default="")
    response_message = models.CharField(max_length=255, blank=True, default="")
    processed_at = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "payment_transactions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="payments_status_idx"),
        ]

    @property
    def is_approved(self) -> bool:
        return self.status == PaymentStatus.APPROVED

    def apply_result(
        self,
        transaction_id: str,
        response_code: str,
        response_message: str = "",
        authorization_code: str | None = None,
    ) -> bool:
        """Record the gateway answer; return ``True`` when it approved the payment."""
        approved = str(response_code) in SUCCESS_CODES
        self.transaction_id = transaction_id
        self.response_code = str(response_code)
        self.response_message = response_message or ""
        self.authorization_code = authorization_code or ""
        self.status = PaymentStatus.APPROVED if approved else PaymentStatus.DECLINED
        self.processed_at = timezone.now()
        self.save()
        return approved

    def __str__(self) -> str:
        return f"{self.purchase_number} {self.amount} {self.currency} [{self.status}]"
