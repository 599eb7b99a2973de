from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from settleup.models.base import TimestampedModel, UUIDModel


class ReminderStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"


class ReminderTask(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "reminder_tasks"
    __table_args__ = (UniqueConstraint("schedule_id", "offset_days", name="uq_reminder_schedule_offset"),)

    schedule_id: UUID = Field(foreign_key="payment_schedules.id", index=True)
    owner_id: UUID = Field(foreign_key="users.id", index=True)
    offset_days: int
    run_at: datetime = Field(index=True)
    status: str = Field(default=ReminderStatus.PENDING.value, index=True, max_length=16)
    attempts: int = Field(default=0)
    sent_at: datetime | None = Field(default=None)
    last_error: str | None = Field(default=None)
