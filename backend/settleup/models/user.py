from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from settleup.models.base import TimestampedModel, UUIDModel


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "users"

    email: str = Field(index=True, unique=True, max_length=255)
    password_hash: str | None = Field(default=None)
    google_id: str | None = Field(default=None, index=True, max_length=128)
    name: str = Field(default="", max_length=180)
    company_name: str = Field(default="", max_length=180)
    role: str = Field(default=UserRole.USER.value, max_length=16)

    timezone: str | None = Field(default=None, max_length=64)
    currency: str | None = Field(default=None, max_length=3)
    country: str | None = Field(default=None, max_length=64)

    is_active: bool = Field(default=True)
    last_login_at: datetime | None = Field(default=None)

    @property
    def region(self) -> dict[str, str | None]:
        return {"timezone": self.timezone, "currency": self.currency, "country": self.country}


class UserClientLink(UUIDModel, TimestampedModel, table=True):
    """Ordered list of the clients a user owns."""

    __tablename__ = "user_clients"
    __table_args__ = (UniqueConstraint("user_id", "client_id", name="uq_user_clients_user_client"),)

    user_id: UUID = Field(foreign_key="users.id", index=True)
    client_id: UUID = Field(foreign_key="clients.id", index=True)
    position: int = Field(default=0)
