from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlmodel import Field

from settleup.models.base import TimestampedModel, UUIDModel, version_column


class ScheduleFrequency(str, Enum):
    ONE_TIME = "one-time"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ScheduleStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


SETTLED_STATUSES = {ScheduleStatus.PAID.value, ScheduleStatus.CANCELLED.value}

_schedule_version = version_column()


class PaymentSchedule(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "payment_schedules"
    __mapper_args__ = {"version_id_col": _schedule_version}

    client_id: UUID = Field(foreign_key="clients.id", index=True)
    position: int = Field(default=0)

    description: str | None = Field(default=None, max_length=255)
    amount: float = Field(default=0)
    currency: str = Field(default="USD", max_length=3)
    due_date: datetime
    frequency: str = Field(default=ScheduleFrequency.ONE_TIME.value, max_length=16)
    status: str = Field(default=ScheduleStatus.PENDING.value, index=True, max_length=16)
    paid_at: datetime | None = Field(default=None)
    last_notified_at: datetime | None = Field(default=None)
    version: int = Field(default=1, sa_column=_schedule_version)
