from datetime import datetime
from typing import Any
from uuid import UUID

from settleup.schemas.common import Envelope, IDModel


class NotificationRead(IDModel):
    user_id: UUID
    type: str
    title: str
    message: str
    data: dict[str, Any] | None = None
    is_read: bool
    created_at: datetime
    expires_at: datetime


class NotificationList(Envelope):
    notifications: list[NotificationRead]


class NotificationEnvelope(Envelope):
    notification: NotificationRead


class NotificationMarkAllResponse(Envelope):
    updated: int


class UnreadCount(Envelope):
    count: int
