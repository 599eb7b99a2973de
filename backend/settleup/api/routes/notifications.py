from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from settleup.api.deps import get_current_active_user, get_db
from settleup.models.user import User
from settleup.schemas.common import Envelope
from settleup.schemas.notification import (
    NotificationEnvelope,
    NotificationList,
    NotificationMarkAllResponse,
    NotificationRead,
    UnreadCount,
)
from settleup.services.notification import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
def list_notifications(
    limit: int = Query(default=50, ge=1, le=200),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationList:
    items = NotificationService(session).list_notifications(
        user_id=current_user.id,
        limit=limit,
        unread_only=unread_only,
    )
    return NotificationList(notifications=[NotificationRead.model_validate(item) for item in items])


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UnreadCount:
    return UnreadCount(count=NotificationService(session).unread_count(user_id=current_user.id))


@router.put("/read-all", response_model=NotificationMarkAllResponse)
def mark_all_notifications_as_read(
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationMarkAllResponse:
    updated = NotificationService(session).mark_all_as_read(user_id=current_user.id)
    return NotificationMarkAllResponse(message="All notifications marked as read", updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationEnvelope)
def mark_notification_as_read(
    notification_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationEnvelope:
    item = NotificationService(session).mark_as_read(user_id=current_user.id, notification_id=notification_id)
    return NotificationEnvelope(notification=NotificationRead.model_validate(item))


@router.delete("/{notification_id}", response_model=Envelope)
def delete_notification(
    notification_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Envelope:
    NotificationService(session).delete_notification(user_id=current_user.id, notification_id=notification_id)
    return Envelope(message="Notification deleted")
