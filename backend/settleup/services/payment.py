from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Union
from uuid import UUID

from sqlmodel import Session, func, select

from settleup.core.config import settings
from settleup.core.errors import InvalidStateError, NotFoundError, ValidationError
from settleup.core.logging_setup import logger
from settleup.models.client import Client, ClientStatus
from settleup.models.notification import NotificationType
from settleup.models.payment import (
    SETTLED_STATUSES,
    PaymentSchedule,
    ScheduleFrequency,
    ScheduleStatus,
)
from settleup.models.user import User
from settleup.schemas.payment import PaymentLinkRequest, ScheduleCreate, ScheduleUpdate
from settleup.services.concurrency import run_with_retry
from settleup.services.notification import NotificationDispatcher
from settleup.services.payment_provider import PaymentLink, PaymentProvider, to_minor_units
from settleup.services.reminders import cancel_schedule_reminders, enqueue_schedule_reminders
from settleup.utils.dates import from_unix

ScheduleRef = Union[int, UUID]


def parse_schedule_ref(value: str | int | UUID) -> ScheduleRef:
    """A schedule is addressed by its position index or by its id."""
    if isinstance(value, (int, UUID)):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    try:
        return UUID(text)
    except ValueError as exc:
        raise NotFoundError("Payment schedule not found") from exc


class PaymentScheduleService:
    def __init__(self, session: Session, dispatcher: NotificationDispatcher | None = None) -> None:
        self.session = session
        self.dispatcher = dispatcher or NotificationDispatcher(session)

    # ------------------------------------------------------------------ lookups
    def _get_owned_client(self, owner_id: UUID, client_id: UUID) -> Client:
        client = self.session.get(Client, client_id)
        if not client or client.added_by != owner_id:
            raise NotFoundError("Client not found")
        return client

    def _ordered_schedules(self, client_id: UUID) -> list[PaymentSchedule]:
        return list(
            self.session.exec(
                select(PaymentSchedule)
                .where(PaymentSchedule.client_id == client_id)
                .order_by(PaymentSchedule.position, PaymentSchedule.created_at)
            ).all()
        )

    def resolve_schedule(self, client_id: UUID, ref: ScheduleRef) -> PaymentSchedule:
        if isinstance(ref, int):
            schedules = self._ordered_schedules(client_id)
            if ref < 0 or ref >= len(schedules):
                raise NotFoundError("Payment schedule not found")
            return schedules[ref]
        schedule = self.session.get(PaymentSchedule, ref)
        if not schedule or schedule.client_id != client_id:
            raise NotFoundError("Payment schedule not found")
        return schedule

    def schedule_index(self, schedule: PaymentSchedule) -> int:
        ids = [item.id for item in self._ordered_schedules(schedule.client_id)]
        return ids.index(schedule.id)

    # --------------------------------------------------------------- operations
    def create_schedule(self, owner: User, payload: ScheduleCreate) -> PaymentSchedule:
        client = self._get_owned_client(owner.id, payload.client_id)
        if client.status != ClientStatus.ACTIVE.value:
            raise InvalidStateError("Cannot schedule payments for inactive clients")

        last = self.session.exec(
            select(func.max(PaymentSchedule.position)).where(PaymentSchedule.client_id == client.id)
        ).one()
        now = datetime.utcnow()
        schedule = PaymentSchedule(
            client_id=client.id,
            position=0 if last is None else last + 1,
            description=payload.description,
            amount=payload.amount,
            currency=payload.currency or (client.currency or "").upper() or "USD",
            due_date=payload.due_date,
            frequency=(payload.frequency or ScheduleFrequency.ONE_TIME).value,
            status=ScheduleStatus.PENDING.value,
        )
        notify_now = schedule.due_date >= now
        if notify_now:
            schedule.last_notified_at = now
        self.session.add(schedule)
        enqueue_schedule_reminders(self.session, schedule, owner.id, now=now)
        self.session.commit()
        self.session.refresh(schedule)
        logger.info("[payments] schedule %s created for client %s", schedule.id, client.id)

        if notify_now:
            self.dispatcher.emit(
                owner.id,
                NotificationType.PAYMENT_DUE,
                "Payment Due Reminder",
                f"Payment due for {client.name}: {schedule.description or 'scheduled payment'}",
                self._schedule_data(client, schedule),
            )
        return schedule

    def list_schedules(
        self,
        owner_id: UUID,
        client_id: UUID,
        status: ScheduleStatus | str | None = None,
    ) -> list[PaymentSchedule]:
        client = self._get_owned_client(owner_id, client_id)
        statement = select(PaymentSchedule).where(PaymentSchedule.client_id == client.id)
        if status:
            value = status.value if isinstance(status, ScheduleStatus) else status
            statement = statement.where(PaymentSchedule.status == value)
        statement = statement.order_by(PaymentSchedule.due_date, PaymentSchedule.position)
        return list(self.session.exec(statement).all())

    def update_schedule(
        self,
        owner_id: UUID,
        client_id: UUID,
        ref: ScheduleRef,
        payload: ScheduleUpdate,
    ) -> PaymentSchedule:
        changes = {
            field: value.value if isinstance(value, Enum) else value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if value is not None
        }

        def mutation() -> PaymentSchedule:
            client = self._get_owned_client(owner_id, client_id)
            schedule = self.resolve_schedule(client.id, ref)
            for field, value in changes.items():
                setattr(schedule, field, value)

            if schedule.status != ScheduleStatus.PAID.value:
                schedule.paid_at = None
            elif schedule.paid_at is None:
                schedule.paid_at = datetime.utcnow()
            if schedule.status in SETTLED_STATUSES:
                cancel_schedule_reminders(self.session, schedule.id)
            elif "due_date" in changes or "status" in changes:
                cancel_schedule_reminders(self.session, schedule.id)
                enqueue_schedule_reminders(self.session, schedule, client.added_by)

            self.session.add(schedule)
            self.session.commit()
            self.session.refresh(schedule)
            return schedule

        return run_with_retry(self.session, mutation)

    def mark_paid(self, owner: User, client_id: UUID, ref: ScheduleRef) -> PaymentSchedule:
        """Settle a schedule. The counterpart is notified on every call."""

        def mutation() -> tuple[Client, PaymentSchedule]:
            client = self._get_owned_client(owner.id, client_id)
            schedule = self.resolve_schedule(client.id, ref)
            self._settle(schedule, datetime.utcnow())
            self.session.commit()
            self.session.refresh(schedule)
            return client, schedule

        client, schedule = run_with_retry(self.session, mutation)
        self._notify_counterpart(client, schedule, owner.name or owner.email)
        return schedule

    def create_payment_link(
        self,
        owner: User,
        payload: PaymentLinkRequest,
        provider_factory: Callable[[], PaymentProvider],
    ) -> PaymentLink:
        if payload.schedule_id is None and payload.schedule_index is None:
            raise ValidationError("schedule_index or schedule_id is required")
        ref: ScheduleRef = payload.schedule_id if payload.schedule_id is not None else payload.schedule_index
        client = self._get_owned_client(owner.id, payload.client_id)
        schedule = self.resolve_schedule(client.id, ref)
        if schedule.status in SETTLED_STATUSES:
            raise InvalidStateError(f"Payment schedule is already {schedule.status}")

        frontend = settings.resolved_frontend_url()
        provider = provider_factory()
        link = provider.create_payment_link(
            amount_minor=to_minor_units(schedule.amount, schedule.currency),
            currency=schedule.currency,
            product_name=schedule.description or f"Payment to {owner.company_name or owner.name}",
            product_description=f"Payment for {client.company_name}",
            success_url=payload.success_url or f"{frontend}/dashboard/payments/success",
            cancel_url=payload.cancel_url or f"{frontend}/dashboard/payments/cancel",
            metadata={
                "clientId": str(client.id),
                "scheduleId": str(schedule.id),
                "scheduleIndex": str(self.schedule_index(schedule)),
                "userId": str(owner.id),
            },
        )
        logger.info("[payments] %s link created for schedule %s", provider.name, schedule.id)
        return link

    def apply_external_payment(
        self,
        client_id: UUID,
        ref: ScheduleRef,
        *,
        paid_at: datetime | None = None,
        owner_id: UUID | None = None,
    ) -> PaymentSchedule:
        """Settle a schedule from a provider confirmation.

        A redelivered confirmation for an already paid schedule changes nothing
        and notifies nobody.
        """

        def mutation() -> tuple[Client, PaymentSchedule, bool]:
            client = self.session.get(Client, client_id)
            if not client:
                raise NotFoundError("Client not found")
            schedule = self.resolve_schedule(client.id, ref)
            if schedule.status == ScheduleStatus.PAID.value:
                return client, schedule, False
            self._settle(schedule, paid_at or datetime.utcnow())
            self.session.commit()
            self.session.refresh(schedule)
            return client, schedule, True

        client, schedule, changed = run_with_retry(self.session, mutation)
        if not changed:
            logger.info("[payments] schedule %s already paid, ignoring confirmation", schedule.id)
            return schedule

        if owner_id and owner_id != client.added_by:
            logger.warning(
                "[payments] confirmation for client %s names user %s, owner is %s",
                client.id,
                owner_id,
                client.added_by,
            )
        owner = self.session.get(User, client.added_by)
        self._notify_counterpart(client, schedule, (owner.name or owner.email) if owner else "Your contact")
        self.dispatcher.emit(
            client.added_by,
            NotificationType.PAYMENT_RECEIVED,
            "Payment Received",
            f"Payment received from {client.name} for {schedule.description or 'scheduled payment'}",
            self._schedule_data(client, schedule),
        )
        return schedule

    def apply_checkout_session(self, checkout: dict[str, Any]) -> PaymentSchedule | None:
        """Apply a ``checkout.session.completed`` object; unusable metadata is logged and ignored."""
        metadata = checkout.get("metadata") or {}
        raw_ref = metadata.get("scheduleId") or metadata.get("scheduleIndex")
        try:
            client_id = UUID(str(metadata.get("clientId")))
            ref = parse_schedule_ref(raw_ref) if raw_ref is not None else None
        except (ValueError, NotFoundError):
            ref = None
            client_id = None
        if client_id is None or ref is None:
            logger.warning("[payments] checkout session %s has unusable metadata: %s", checkout.get("id"), metadata)
            return None

        owner_id = None
        if metadata.get("userId"):
            try:
                owner_id = UUID(str(metadata["userId"]))
            except ValueError:
                owner_id = None

        try:
            return self.apply_external_payment(
                client_id,
                ref,
                paid_at=from_unix(checkout.get("created")),
                owner_id=owner_id,
            )
        except NotFoundError as exc:
            logger.warning("[payments] checkout session %s ignored: %s", checkout.get("id"), exc.message)
            return None

    # ------------------------------------------------------------------ helpers
    def _settle(self, schedule: PaymentSchedule, paid_at: datetime) -> None:
        schedule.status = ScheduleStatus.PAID.value
        schedule.paid_at = paid_at
        cancel_schedule_reminders(self.session, schedule.id)
        self.session.add(schedule)

    def _notify_counterpart(self, client: Client, schedule: PaymentSchedule, owner_name: str) -> None:
        counterpart = self.session.exec(select(User).where(User.email == client.email)).first()
        if not counterpart:
            return
        data = self._schedule_data(client, schedule)
        data["scheduleIndex"] = self.schedule_index(schedule)
        self.dispatcher.emit(
            counterpart.id,
            NotificationType.PAYMENT_RECEIVED,
            "Payment Marked as Paid",
            f"{owner_name} marked a payment as paid: {schedule.description or 'scheduled payment'}",
            data,
        )

    @staticmethod
    def _schedule_data(client: Client, schedule: PaymentSchedule) -> dict[str, Any]:
        return {
            "clientId": str(client.id),
            "scheduleId": str(schedule.id),
            "dueDate": schedule.due_date.isoformat(),
            "amount": schedule.amount,
            "currency": schedule.currency,
        }
