from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlmodel import Session, func, select

from settleup.core.config import settings
from settleup.core.errors import NotFoundError
from settleup.core.logging_setup import logger
from settleup.models.notification import Notification, NotificationType
from settleup.schemas.notification import NotificationRead
from settleup.services.realtime import RealtimePublisher, connection_manager


class NotificationDispatcher:
    """Persists a notification, then pushes it to the user's live sockets."""

    def __init__(self, session: Session, publisher: RealtimePublisher | None = None) -> None:
        self.session = session
        self.publisher = publisher if publisher is not None else connection_manager

    def emit(
        self,
        user_id: UUID,
        type: NotificationType | str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        now = datetime.utcnow()
        notification = Notification(
            user_id=user_id,
            type=type.value if isinstance(type, NotificationType) else type,
            title=title,
            message=message,
            data=data or {},
            is_read=False,
            created_at=now,
            expires_at=now + timedelta(days=settings.notification_ttl_days),
        )
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)

        self._forward(notification)
        return notification

    def _forward(self, notification: Notification) -> None:
        payload = NotificationRead.model_validate(notification).model_dump(mode="json")
        try:
            self.publisher.publish(notification.user_id, "notification", payload)
        except Exception as exc:
            logger.warning(
                "[notifications] live push of %s to user %s failed: %s",
                notification.id,
                notification.user_id,
                exc,
            )


class NotificationService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _visible(self, user_id: UUID, now: datetime | None = None):
        current = now or datetime.utcnow()
        return (
            select(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.expires_at > current)
        )

    def list_notifications(
        self,
        *,
        user_id: UUID,
        limit: int = 50,
        unread_only: bool = False,
    ) -> list[Notification]:
        query = self._visible(user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        return list(self.session.exec(query).all())

    def get_notification(self, *, user_id: UUID, notification_id: UUID) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if (
            not notification
            or notification.user_id != user_id
            or notification.expires_at <= datetime.utcnow()
        ):
            raise NotFoundError("Notification not found")
        return notification

    def mark_as_read(self, *, user_id: UUID, notification_id: UUID) -> Notification:
        notification = self.get_notification(user_id=user_id, notification_id=notification_id)
        if not notification.is_read:
            notification.is_read = True
            self.session.add(notification)
            self.session.commit()
            self.session.refresh(notification)
        return notification

    def mark_all_as_read(self, *, user_id: UUID) -> int:
        unread = self.session.exec(
            self._visible(user_id).where(Notification.is_read.is_(False))
        ).all()
        if not unread:
            return 0
        for item in unread:
            item.is_read = True
            self.session.add(item)
        self.session.commit()
        return len(unread)

    def unread_count(self, *, user_id: UUID) -> int:
        count = self.session.exec(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.is_read.is_(False))
            .where(Notification.expires_at > datetime.utcnow())
        ).one()
        return int(count or 0)

    def delete_notification(self, *, user_id: UUID, notification_id: UUID) -> None:
        notification = self.get_notification(user_id=user_id, notification_id=notification_id)
        self.session.delete(notification)
        self.session.commit()

    def purge_expired(self, *, now: datetime | None = None) -> int:
        current = now or datetime.utcnow()
        expired = self.session.exec(
            select(Notification).where(Notification.expires_at <= current)
        ).all()
        for item in expired:
            self.session.delete(item)
        if expired:
            self.session.commit()
            logger.info("[notifications] purged %s expired notifications", len(expired))
        return len(expired)
