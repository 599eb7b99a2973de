from pydantic import BaseModel, field_validator

from settleup.schemas.common import Envelope, normalize_currency
from settleup.schemas.user import UserRead


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: str = ""
    company_name: str = ""
    timezone: str | None = None
    currency: str | None = None
    country: str | None = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str | None) -> str | None:
        return normalize_currency(value)


class RegionUpdate(BaseModel):
    timezone: str | None = None
    currency: str | None = None
    country: str | None = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str | None) -> str | None:
        return normalize_currency(value)


class AuthResponse(Envelope):
    token: str
    token_type: str = "bearer"
    user: UserRead


class ExternalProfile(BaseModel):
    """Verified identity returned by the external identity provider."""

    provider_id: str
    email: str
    name: str = ""
