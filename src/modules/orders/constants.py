"""Order domain constants.

Defines status choices, payment methods and the valid status transitions
of the order state machine.  Status values are the labels the shop uses
with its customers, so they are stored as-is.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    RECEIVED = "Recibido", "Recibido"
    CONFIRMED = "Confirmado", "Confirmado"
    IN_PROGRESS = "En proceso", "En proceso"
    DELIVERED = "Entregado", "Entregado"
    CANCELLED = "Cancelado", "Cancelado"


class PaymentMethod(models.TextChoices):
    BANK_TRANSFER = "Transferencia Bancaria", "Transferencia Bancaria"
    CARD = "Tarjeta", "Tarjeta"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.RECEIVED: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
    OrderStatus.IN_PROGRESS: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

ORDER_CODE_PREFIX = "ORD-"
ORDER_CODE_MAX_RETRIES = 5

MIN_INSTALLMENTS = 1
MAX_INSTALLMENTS = 3

DNI_PATTERN = r"^\d{8}$"
PHONE_PATTERN = r"^\+?[\d\s-]{9,}$"
