from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON
from sqlmodel import Field

from settleup.models.base import TimestampedModel, UUIDModel


class NotificationType(str, Enum):
    CLIENT_ADD_REQUEST = "client_add_request"
    CLIENT_ADD_RESPONSE = "client_add_response"
    PAYMENT_DUE = "payment_due"
    PAYMENT_RECEIVED = "payment_received"


class Notification(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "notifications"

    user_id: UUID = Field(foreign_key="users.id", index=True)
    type: str = Field(max_length=64)
    title: str = Field(max_length=180)
    message: str
    data: dict | None = Field(default=None, sa_type=JSON)
    is_read: bool = Field(default=False, index=True)
    expires_at: datetime = Field(index=True)
