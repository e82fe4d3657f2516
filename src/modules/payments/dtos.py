"""Payment DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from modules.payments.models import Currency

CURRENCIES = {choice.value for choice in Currency}


class CreateSessionDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str = Currency.PEN.value
    order_id: str
    customer_email: EmailStr

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Amount must be greater than zero.")
        return v.quantize(Decimal("0.01"))

    @field_validator("currency")
    @classmethod
    def currency_supported(cls, v: str) -> str:
        v = v.upper()
        if v not in CURRENCIES:
            raise ValueError(f"Currency must be one of {sorted(CURRENCIES)}.")
        return v

    @field_validator("order_id")
    @classmethod
    def order_id_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Order id must have at least 3 characters.")
        return v


class AuthorizeDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    token: str
    amount: Decimal
    order_id: str

    @field_validator("token", "session_id", "order_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("This field is required.")
        return v.strip()


class WebhookNotificationDTO(BaseModel):
    """Asynchronous notification posted by the gateway."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction_id: str = Field(alias="transactionId")
    order_id: str = Field(alias="orderId")
    amount: Decimal
    response_code: str = Field(alias="responseCode")
    response_message: str = Field(default="", alias="responseMessage")
    authorization_code: str = Field(default="", alias="authorizationCode")

    @field_validator("response_code", mode="before")
    @classmethod
    def code_as_string(cls, v) -> str:
        return str(v)
