from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from settleup.models.payment import ScheduleFrequency, ScheduleStatus
from settleup.schemas.common import Envelope, IDModel, Timestamped, normalize_currency
from settleup.utils.dates import to_naive_utc


class ScheduleCreate(BaseModel):
    client_id: UUID
    description: str | None = Field(default=None, max_length=255)
    amount: float = Field(ge=0)
    currency: str | None = None
    due_date: datetime
    frequency: ScheduleFrequency | None = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str | None) -> str | None:
        return normalize_currency(value)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class ScheduleUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=255)
    amount: float | None = Field(default=None, ge=0)
    currency: str | None = None
    due_date: datetime | None = None
    frequency: ScheduleFrequency | None = None
    status: ScheduleStatus | None = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str | None) -> str | None:
        return normalize_currency(value)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None


class ScheduleRead(IDModel, Timestamped):
    client_id: UUID
    position: int
    description: str | None = None
    amount: float
    currency: str
    due_date: datetime
    frequency: ScheduleFrequency
    status: ScheduleStatus
    paid_at: datetime | None = None
    last_notified_at: datetime | None = None


class ScheduleEnvelope(Envelope):
    payment_schedule: ScheduleRead


class ScheduleList(Envelope):
    payment_schedules: list[ScheduleRead]


class PaymentLinkRequest(BaseModel):
    client_id: UUID
    schedule_index: int | None = Field(default=None, ge=0)
    schedule_id: UUID | None = None
    success_url: str | None = None
    cancel_url: str | None = None


class PaymentLinkResponse(Envelope):
    payment_link: str
    expires_at: datetime | None = None


class WebhookAck(BaseModel):
    received: bool = True


class MaintenanceReport(BaseModel):
    reminders_sent: int
    reminders_cancelled: int
    schedules_marked_overdue: int
    notifications_purged: int
