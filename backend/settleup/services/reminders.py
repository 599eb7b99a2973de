"""
Durable payment reminders and periodic maintenance.

Creating a schedule enqueues ``ReminderTask`` rows (7, 3 and 1 days before the
due date by default). The maintenance job drains due tasks into ``payment_due``
notifications, flips past-due schedules to ``overdue`` and purges expired
notifications. It runs from an APScheduler background job when
``SCHEDULER_ENABLED`` is set, or on demand from the admin API.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable
from uuid import UUID

from apscheduler.schedulers.background import BackgroundScheduler
from sqlmodel import Session, select

from settleup.core.config import settings
from settleup.core.logging_setup import logger
from settleup.db.session import engine
from settleup.models.client import Client
from settleup.models.notification import NotificationType
from settleup.models.payment import SETTLED_STATUSES, PaymentSchedule, ScheduleStatus
from settleup.models.reminder import ReminderStatus, ReminderTask
from settleup.schemas.payment import MaintenanceReport
from settleup.services.concurrency import run_with_retry
from settleup.services.notification import NotificationDispatcher, NotificationService
from settleup.services.realtime import RealtimePublisher

MAINTENANCE_JOB_ID = "settleup-maintenance"


def plan_reminders(
    due_date: datetime,
    *,
    now: datetime | None = None,
    offsets: Iterable[int] | None = None,
) -> list[tuple[int, datetime]]:
    current = now or datetime.utcnow()
    plan: list[tuple[int, datetime]] = []
    for offset in offsets if offsets is not None else settings.reminder_offsets_days:
        run_at = due_date - timedelta(days=offset)
        if run_at > current:
            plan.append((offset, run_at))
    return plan


def enqueue_schedule_reminders(
    session: Session,
    schedule: PaymentSchedule,
    owner_id: UUID,
    *,
    now: datetime | None = None,
) -> list[ReminderTask]:
    """Stage reminder tasks for a schedule. The caller commits."""
    existing = {
        task.offset_days: task
        for task in session.exec(
            select(ReminderTask).where(ReminderTask.schedule_id == schedule.id)
        ).all()
    }
    tasks: list[ReminderTask] = []
    for offset, run_at in plan_reminders(schedule.due_date, now=now):
        task = existing.get(offset)
        if task is None:
            task = ReminderTask(
                schedule_id=schedule.id,
                owner_id=owner_id,
                offset_days=offset,
                run_at=run_at,
            )
        else:
            task.run_at = run_at
            task.status = ReminderStatus.PENDING.value
            task.attempts = 0
            task.sent_at = None
            task.last_error = None
        session.add(task)
        tasks.append(task)
    return tasks


def cancel_schedule_reminders(session: Session, schedule_id: UUID) -> int:
    """Cancel the pending tasks of a schedule. The caller commits."""
    pending = session.exec(
        select(ReminderTask)
        .where(ReminderTask.schedule_id == schedule_id)
        .where(ReminderTask.status == ReminderStatus.PENDING.value)
    ).all()
    for task in pending:
        task.status = ReminderStatus.CANCELLED.value
        session.add(task)
    return len(pending)


def delete_schedule_reminders(session: Session, schedule_ids: Iterable[UUID]) -> int:
    ids = list(schedule_ids)
    if not ids:
        return 0
    tasks = session.exec(select(ReminderTask).where(ReminderTask.schedule_id.in_(ids))).all()
    for task in tasks:
        session.delete(task)
    return len(tasks)


def _deliver_reminder(
    session: Session,
    dispatcher: NotificationDispatcher,
    task: ReminderTask,
    now: datetime,
) -> bool:
    schedule = session.get(PaymentSchedule, task.schedule_id)
    client = session.get(Client, schedule.client_id) if schedule else None
    if schedule is None or client is None or schedule.status in SETTLED_STATUSES:
        task.status = ReminderStatus.CANCELLED.value
        session.add(task)
        session.commit()
        return False

    description = schedule.description or "scheduled payment"
    dispatcher.emit(
        task.owner_id,
        NotificationType.PAYMENT_DUE,
        "Payment Due Reminder",
        f"Payment due for {client.name} in {task.offset_days} day(s): {description}",
        {
            "clientId": str(client.id),
            "scheduleId": str(schedule.id),
            "dueDate": schedule.due_date.isoformat(),
            "amount": schedule.amount,
            "currency": schedule.currency,
            "daysBefore": task.offset_days,
        },
    )

    task.status = ReminderStatus.SENT.value
    task.sent_at = now
    task.attempts += 1
    schedule.last_notified_at = now
    session.add(task)
    session.add(schedule)
    session.commit()
    return True


def _record_failure(session: Session, task_id: UUID, error: Exception) -> bool:
    task = session.get(ReminderTask, task_id)
    if task is None:
        return False
    task.attempts += 1
    task.last_error = str(error)[:500]
    if task.attempts >= settings.reminder_max_attempts:
        task.status = ReminderStatus.CANCELLED.value
    session.add(task)
    session.commit()
    logger.warning(
        "[reminders] task %s failed (attempt %s/%s): %s",
        task_id,
        task.attempts,
        settings.reminder_max_attempts,
        error,
    )
    return task.status == ReminderStatus.CANCELLED.value


def process_due_reminders(
    session: Session,
    publisher: RealtimePublisher | None = None,
    *,
    now: datetime | None = None,
) -> tuple[int, int]:
    """Deliver every pending task whose ``run_at`` has passed.

    Returns ``(sent, cancelled)``.
    """
    current = now or datetime.utcnow()
    tasks = session.exec(
        select(ReminderTask)
        .where(ReminderTask.status == ReminderStatus.PENDING.value)
        .where(ReminderTask.run_at <= current)
        .order_by(ReminderTask.run_at)
    ).all()

    dispatcher = NotificationDispatcher(session, publisher)
    sent = cancelled = 0
    for task in tasks:
        task_id = task.id
        try:
            if _deliver_reminder(session, dispatcher, task, current):
                sent += 1
            else:
                cancelled += 1
        except Exception as exc:
            session.rollback()
            if _record_failure(session, task_id, exc):
                cancelled += 1
    return sent, cancelled


def mark_overdue_schedules(session: Session, *, now: datetime | None = None) -> int:
    current = now or datetime.utcnow()

    def mutation() -> int:
        overdue = session.exec(
            select(PaymentSchedule)
            .where(PaymentSchedule.status == ScheduleStatus.PENDING.value)
            .where(PaymentSchedule.due_date < current)
        ).all()
        for schedule in overdue:
            schedule.status = ScheduleStatus.OVERDUE.value
            session.add(schedule)
        session.commit()
        return len(overdue)

    return run_with_retry(session, mutation)


def purge_expired_notifications(session: Session, *, now: datetime | None = None) -> int:
    return NotificationService(session).purge_expired(now=now)


def run_maintenance(
    session: Session,
    publisher: RealtimePublisher | None = None,
    *,
    now: datetime | None = None,
) -> MaintenanceReport:
    current = now or datetime.utcnow()
    sent, cancelled = process_due_reminders(session, publisher, now=current)
    overdue = mark_overdue_schedules(session, now=current)
    purged = purge_expired_notifications(session, now=current)
    report = MaintenanceReport(
        reminders_sent=sent,
        reminders_cancelled=cancelled,
        schedules_marked_overdue=overdue,
        notifications_purged=purged,
    )
    logger.info("[maintenance] %s", report.model_dump())
    return report


def run_scheduled_maintenance() -> MaintenanceReport:
    with Session(engine) as session:
        return run_maintenance(session)


def build_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        run_scheduled_maintenance,
        "interval",
        seconds=settings.scheduler_interval_seconds,
        id=MAINTENANCE_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler
