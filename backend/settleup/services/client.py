from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from settleup.core.errors import (
    DuplicateError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from settleup.core.logging_setup import logger
from settleup.models.client import Client, ClientStatus
from settleup.models.notification import NotificationType
from settleup.models.payment import PaymentSchedule
from settleup.models.user import User, UserClientLink
from settleup.schemas.client import ClientCreate, ClientUpdate
from settleup.services.concurrency import run_with_retry
from settleup.services.notification import NotificationDispatcher
from settleup.services.reminders import delete_schedule_reminders
from settleup.utils.email_validation import normalize_email


def _region_fields(region: Any) -> dict[str, str | None]:
    if region is None:
        return {}
    values = region.model_dump(exclude_unset=True)
    if values.get("currency"):
        values["currency"] = values["currency"].strip().upper()
    return values


class ClientService:
    def __init__(self, session: Session, dispatcher: NotificationDispatcher | None = None) -> None:
        self.session = session
        self.dispatcher = dispatcher or NotificationDispatcher(session)

    def create_client(self, owner: User, payload: ClientCreate) -> Client:
        name = (payload.name or "").strip()
        company_name = (payload.company_name or "").strip()
        if not name or not (payload.email or "").strip() or not company_name:
            raise ValidationError("Name, email, and company name are required")
        try:
            email = normalize_email(payload.email)
        except ValueError as exc:
            raise ValidationError("Invalid email address") from exc

        if self._find_owned_by_email(owner.id, email):
            raise DuplicateError("Client with this email already exists")

        counterpart = self.session.exec(select(User).where(User.email == email)).first()
        client = Client(
            added_by=owner.id,
            name=name,
            email=email,
            company_name=company_name,
            notes=payload.notes,
            status=(ClientStatus.PENDING if counterpart else ClientStatus.ACTIVE).value,
            **_region_fields(payload.region),
        )
        self.session.add(client)
        self._append_to_owner(owner.id, client.id)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateError("Client with this email already exists") from exc
        self.session.refresh(client)
        logger.info("[clients] %s added client %s (%s)", owner.id, client.id, client.status)

        if counterpart:
            added_by_name = owner.name or owner.email
            self.dispatcher.emit(
                counterpart.id,
                NotificationType.CLIENT_ADD_REQUEST,
                "New Client Request",
                f"{added_by_name} wants to add you as a client",
                {
                    "clientId": str(client.id),
                    "addedBy": str(owner.id),
                    "addedByName": added_by_name,
                    "companyName": client.company_name,
                },
            )
        return client

    def respond(self, client_id: UUID, responder: User, accept: bool) -> Client:
        """Apply the counterpart's answer to a linkage request.

        Re-answering is allowed: the status is re-applied and the owner is
        notified again each time.
        """

        def mutation() -> Client:
            client = self.session.get(Client, client_id)
            if not client:
                raise NotFoundError("Client not found")
            if client.email != responder.email.lower():
                raise ForbiddenError("You are not authorized to respond to this request")
            client.status = (ClientStatus.ACTIVE if accept else ClientStatus.REJECTED).value
            self.session.add(client)
            if not accept:
                self._remove_from_owner(client.added_by, client.id)
            elif client.id not in self.owner_client_ids(client.added_by):
                self._append_to_owner(client.added_by, client.id)
            self.session.commit()
            self.session.refresh(client)
            return client

        client = run_with_retry(self.session, mutation)
        verdict = "accepted" if accept else "rejected"
        self.dispatcher.emit(
            client.added_by,
            NotificationType.CLIENT_ADD_RESPONSE,
            f"Client Request {verdict.capitalize()}",
            f"{client.name} has {verdict} your client request",
            {"clientId": str(client.id), "clientName": client.name, "accepted": accept},
        )
        return client

    def get_client(self, owner_id: UUID, client_id: UUID) -> Client:
        client = self.session.get(Client, client_id)
        if not client or client.added_by != owner_id:
            raise NotFoundError("Client not found")
        return client

    def list_clients(
        self,
        owner_id: UUID,
        status: ClientStatus | str | None = None,
        search: str | None = None,
    ) -> list[Client]:
        statement = select(Client).where(Client.added_by == owner_id)
        if status:
            statement = statement.where(Client.status == (status.value if isinstance(status, ClientStatus) else status))
        if search and search.strip():
            term = search.strip().lower()
            statement = statement.where(
                or_(
                    func.lower(Client.name).contains(term, autoescape=True),
                    func.lower(Client.email).contains(term, autoescape=True),
                    func.lower(Client.company_name).contains(term, autoescape=True),
                )
            )
        statement = statement.order_by(Client.created_at.desc())
        return list(self.session.exec(statement).all())

    def update_client(self, owner_id: UUID, client_id: UUID, payload: ClientUpdate) -> Client:
        changes = payload.model_dump(exclude_unset=True, exclude={"region"})
        region = _region_fields(payload.region) if "region" in payload.model_fields_set else {}
        if changes.get("email") is not None:
            try:
                changes["email"] = normalize_email(changes["email"])
            except ValueError as exc:
                raise ValidationError("Invalid email address") from exc

        def mutation() -> Client:
            client = self.get_client(owner_id, client_id)
            new_email = changes.get("email")
            if new_email and new_email != client.email:
                clash = self._find_owned_by_email(owner_id, new_email)
                if clash and clash.id != client.id:
                    raise DuplicateError("Client with this email already exists")
            for field, value in changes.items():
                if value is None:
                    continue
                if isinstance(value, ClientStatus):
                    value = value.value
                setattr(client, field, value)
            for field, value in region.items():
                setattr(client, field, value)
            self.session.add(client)
            try:
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                raise DuplicateError("Client with this email already exists") from exc
            self.session.refresh(client)
            return client

        return run_with_retry(self.session, mutation)

    def delete_client(self, owner_id: UUID, client_id: UUID) -> None:
        client = self.get_client(owner_id, client_id)
        schedules = self.session.exec(
            select(PaymentSchedule).where(PaymentSchedule.client_id == client.id)
        ).all()
        delete_schedule_reminders(self.session, [schedule.id for schedule in schedules])
        for schedule in schedules:
            self.session.delete(schedule)
        self._remove_from_owner(owner_id, client.id)
        self.session.delete(client)
        self.session.commit()
        logger.info("[clients] %s deleted client %s", owner_id, client_id)

    def search_by_email(self, owner_id: UUID, query: str | None) -> tuple[list[Client], list[User]]:
        term = (query or "").strip().lower()
        if not term:
            raise ValidationError("Email query parameter is required")
        clients = self.session.exec(
            select(Client)
            .where(Client.added_by == owner_id)
            .where(func.lower(Client.email).contains(term, autoescape=True))
            .order_by(Client.created_at.desc())
        ).all()
        users = self.session.exec(
            select(User)
            .where(User.id != owner_id)
            .where(func.lower(User.email).contains(term, autoescape=True))
            .order_by(User.email)
        ).all()
        return list(clients), list(users)

    def owner_client_ids(self, owner_id: UUID) -> list[UUID]:
        links = self.session.exec(
            select(UserClientLink)
            .where(UserClientLink.user_id == owner_id)
            .order_by(UserClientLink.position)
        ).all()
        return [link.client_id for link in links]

    def _find_owned_by_email(self, owner_id: UUID, email: str) -> Client | None:
        return self.session.exec(
            select(Client).where(Client.added_by == owner_id).where(Client.email == email)
        ).first()

    def _append_to_owner(self, owner_id: UUID, client_id: UUID) -> None:
        last = self.session.exec(
            select(func.max(UserClientLink.position)).where(UserClientLink.user_id == owner_id)
        ).one()
        position = 0 if last is None else last + 1
        self.session.add(UserClientLink(user_id=owner_id, client_id=client_id, position=position))

    def _remove_from_owner(self, owner_id: UUID, client_id: UUID) -> None:
        links = self.session.exec(
            select(UserClientLink)
            .where(UserClientLink.user_id == owner_id)
            .where(UserClientLink.client_id == client_id)
        ).all()
        for link in links:
            self.session.delete(link)
