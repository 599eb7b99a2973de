from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


def normalize_currency(value: str | None) -> str | None:
    if value is None:
        return value
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError("Currency must be a 3-letter ISO code")
    return code


class Timestamped(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    created_at: datetime
    updated_at: datetime | None = None


class IDModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID


class Region(BaseModel):
    timezone: str | None = None
    currency: str | None = None
    country: str | None = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str | None) -> str | None:
        return normalize_currency(value)


class Envelope(BaseModel):
    success: bool = True
    message: str | None = None
