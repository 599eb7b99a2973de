from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from fastapi import status
from sqlmodel import Session, select

from settleup.models.notification import Notification, NotificationType
from settleup.models.user import User
from settleup.services.notification import NotificationDispatcher, NotificationService
from tests.conftest import api, auth_headers, register_and_login  # type: ignore


class ExplodingPublisher:
    def publish(self, user_id, event, data) -> int:
        raise RuntimeError("socket gone")


def _emit(db_engine, user_id: str, count: int = 1) -> list[UUID]:
    ids = []
    with Session(db_engine) as session:
        dispatcher = NotificationDispatcher(session, ExplodingPublisher())
        for index in range(count):
            notification = dispatcher.emit(
                UUID(user_id),
                NotificationType.PAYMENT_DUE,
                f"Reminder {index}",
                f"Message {index}",
                {"index": index},
            )
            ids.append(notification.id)
    return ids


def test_emit_persists_even_when_live_push_fails(db_session) -> None:
    user = User(email="notify@example.com", name="N")
    db_session.add(user)
    db_session.commit()

    notification = NotificationDispatcher(db_session, ExplodingPublisher()).emit(
        user.id,
        NotificationType.CLIENT_ADD_REQUEST,
        "New Client Request",
        "Someone wants to add you as a client",
        {"clientId": "abc"},
    )

    stored = db_session.get(Notification, notification.id)
    assert stored.is_read is False
    assert stored.type == "client_add_request"
    assert stored.data == {"clientId": "abc"}
    assert stored.expires_at - stored.created_at == timedelta(days=30)


def test_list_unread_count_and_mark_read(client, db_engine) -> None:
    token, user = register_and_login(client, "reader")
    first, second, third = _emit(db_engine, user["id"], count=3)
    headers = auth_headers(token)

    listed = client.get(api("/notifications"), headers=headers).json()["notifications"]
    assert {item["id"] for item in listed} == {str(first), str(second), str(third)}
    limited = client.get(api("/notifications"), params={"limit": 2}, headers=headers).json()
    assert len(limited["notifications"]) == 2

    assert client.get(api("/notifications/unread-count"), headers=headers).json()["count"] == 3

    marked = client.put(api(f"/notifications/{first}/read"), headers=headers)
    assert marked.status_code == status.HTTP_200_OK
    assert marked.json()["notification"]["is_read"] is True
    assert client.get(api("/notifications/unread-count"), headers=headers).json()["count"] == 2

    unread = client.get(api("/notifications"), params={"unreadOnly": "true"}, headers=headers).json()
    assert {item["id"] for item in unread["notifications"]} == {str(second), str(third)}

    all_read = client.put(api("/notifications/read-all"), headers=headers)
    assert all_read.json()["updated"] == 2
    assert client.get(api("/notifications/unread-count"), headers=headers).json()["count"] == 0


def test_notifications_are_private_to_their_user(client, db_engine) -> None:
    owner_token, owner = register_and_login(client, "owner")
    other_token, _ = register_and_login(client, "other")
    (notification_id,) = _emit(db_engine, owner["id"])

    assert client.get(api("/notifications"), headers=auth_headers(other_token)).json()["notifications"] == []

    for method, path in (
        ("PUT", f"/notifications/{notification_id}/read"),
        ("DELETE", f"/notifications/{notification_id}"),
    ):
        response = client.request(method, api(path), headers=auth_headers(other_token))
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "message": "Notification not found"}

    deleted = client.delete(api(f"/notifications/{notification_id}"), headers=auth_headers(owner_token))
    assert deleted.status_code == status.HTTP_200_OK
    assert client.get(api("/notifications"), headers=auth_headers(owner_token)).json()["notifications"] == []


def test_expired_notifications_are_hidden_and_purged(client, db_engine) -> None:
    token, user = register_and_login(client, "expiry")
    old_id, fresh_id = _emit(db_engine, user["id"], count=2)

    with Session(db_engine) as session:
        old = session.get(Notification, old_id)
        old.expires_at = datetime.utcnow() - timedelta(minutes=1)
        session.add(old)
        session.commit()

    listed = client.get(api("/notifications"), headers=auth_headers(token)).json()["notifications"]
    assert [item["id"] for item in listed] == [str(fresh_id)]
    assert client.get(api("/notifications/unread-count"), headers=auth_headers(token)).json()["count"] == 1
    assert client.put(api(f"/notifications/{old_id}/read"), headers=auth_headers(token)).status_code == 404

    with Session(db_engine) as session:
        assert NotificationService(session).purge_expired() == 1
        remaining = session.exec(select(Notification.id)).all()
    assert remaining == [fresh_id]
