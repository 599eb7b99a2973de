from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from settleup.models.client import ClientStatus
from settleup.schemas.common import Envelope, IDModel, Region, Timestamped
from settleup.schemas.user import UserSummary


class ClientCreate(BaseModel):
    name: str | None = None
    email: str | None = None
    company_name: str | None = None
    notes: str | None = None
    region: Region | None = None


class ClientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=180)
    email: str | None = None
    company_name: str | None = Field(default=None, min_length=1, max_length=180)
    status: ClientStatus | None = None
    notes: str | None = None
    region: Region | None = None


class ClientRespond(BaseModel):
    accept: bool


class ClientRead(IDModel, Timestamped):
    added_by: UUID
    name: str
    email: str
    company_name: str
    status: ClientStatus
    region: Region
    notes: str | None = None


class ClientEnvelope(Envelope):
    client: ClientRead


class ClientList(Envelope):
    clients: list[ClientRead]


class ClientEmailSearch(Envelope):
    clients: list[ClientRead]
    potential_users: list[UserSummary]
