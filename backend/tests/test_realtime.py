from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import pytest
from fastapi import WebSocketDisconnect

from settleup.services.realtime import ConnectionManager, connection_manager
from settleup.utils.security import create_access_token
from tests.conftest import register_and_login  # type: ignore


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.fail = fail
        self.sent: list[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(message)


async def _drain() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.anyio
async def test_publish_reaches_every_socket_of_the_user() -> None:
    manager = ConnectionManager()
    user_id, stranger_id = uuid4(), uuid4()
    first, second, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()

    await manager.connect(user_id, first)
    await manager.connect(user_id, second)
    await manager.connect(stranger_id, other)

    scheduled = manager.publish(user_id, "notification", {"id": UUID(int=1), "title": "Hello"})
    await _drain()

    assert scheduled == 2
    assert first.accepted and second.accepted
    expected = {"event": "notification", "data": {"id": str(UUID(int=1)), "title": "Hello"}}
    assert first.sent == [expected]
    assert second.sent == [expected]
    assert other.sent == []


@pytest.mark.anyio
async def test_failed_send_drops_the_socket() -> None:
    manager = ConnectionManager()
    user_id = uuid4()
    broken = FakeWebSocket(fail=True)
    await manager.connect(user_id, broken)

    assert manager.publish(user_id, "notification", {"title": "x"}) == 1
    await _drain()

    assert manager.connection_count(user_id) == 0


@pytest.mark.anyio
async def test_disconnect_and_publish_without_subscribers() -> None:
    manager = ConnectionManager()
    user_id = uuid4()
    socket = FakeWebSocket()
    await manager.connect(user_id, socket)

    manager.disconnect(user_id, socket)
    manager.disconnect(user_id, socket)

    assert manager.connection_count(user_id) == 0
    assert manager.publish(user_id, "notification", {}) == 0


def test_socket_with_invalid_token_is_closed(client) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/ws/notifications?token=not-a-token"):
            pass
    assert excinfo.value.code == 1008

    unknown_user = create_access_token(subject=str(uuid4()), role="user")
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect(f"/ws/notifications?token={unknown_user}"):
            pass
    assert excinfo.value.code == 1008


def test_socket_receives_pushed_notifications(client) -> None:
    token, user = register_and_login(client, "live")

    with client.websocket_connect(f"/ws/notifications?token={token}") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"event": "pong"}
        assert connection_manager.connection_count(user["id"]) == 1

        connection_manager.publish(UUID(user["id"]), "notification", {"title": "Payment Received"})
        assert websocket.receive_json() == {"event": "notification", "data": {"title": "Payment Received"}}
