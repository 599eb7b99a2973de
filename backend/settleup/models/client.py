from __future__ import annotations

from enum import Enum
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from settleup.models.base import TimestampedModel, UUIDModel, version_column


class ClientStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    INACTIVE = "inactive"


_client_version = version_column()


class Client(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("added_by", "email", name="uq_clients_owner_email"),)
    __mapper_args__ = {"version_id_col": _client_version}

    added_by: UUID = Field(foreign_key="users.id", index=True)
    name: str = Field(max_length=180)
    email: str = Field(index=True, max_length=255)
    company_name: str = Field(max_length=180)
    status: str = Field(default=ClientStatus.PENDING.value, index=True, max_length=16)

    timezone: str | None = Field(default=None, max_length=64)
    currency: str | None = Field(default=None, max_length=3)
    country: str | None = Field(default=None, max_length=64)

    notes: str | None = Field(default=None)
    version: int = Field(default=1, sa_column=_client_version)

    @property
    def region(self) -> dict[str, str | None]:
        return {"timezone": self.timezone, "currency": self.currency, "country": self.country}
