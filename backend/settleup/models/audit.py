from __future__ import annotations

from uuid import UUID

from sqlmodel import Field

from settleup.models.base import TimestampedModel, UUIDModel


class AuthLog(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "auth_logs"

    user_id: UUID | None = Field(default=None, foreign_key="users.id", index=True)
    event_type: str = Field(index=True)
    email: str | None = Field(default=None)
    ip_address: str | None = Field(default=None)
    user_agent: str | None = Field(default=None)
    success: bool = Field(default=True)
