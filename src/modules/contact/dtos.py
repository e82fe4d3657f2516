"""Contact form DTO."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator


class ContactMessageDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    email: EmailStr
    phone: Optional[str] = None
    subject: str
    message: str

    @field_validator("name", "subject", "message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("This field is required.")
        return v.strip()

    @field_validator("phone", mode="before")
    @classmethod
    def blank_phone_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    def body(self) -> str:
        lines = [
            f"Nombre: {self.name}",
            f"Email: {self.email}",
        ]
        if self.phone:
            lines.append(f"Teléfono: {self.phone}")
        lines.extend(["", self.message])
        return "\n".join(lines)
