"""
Real-time notification channel.

Keeps the live WebSocket connections of each user and pushes ``notification``
events to them. Publishing is fire-and-forget: the send is scheduled on the
event loop that owns the socket, failures are logged and the dead socket is
dropped. Nothing here is persisted; the notifications table is the source of
truth.
"""

from __future__ import annotations

import asyncio
import threading
from collections import defaultdict
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from settleup.core.logging_setup import logger


class RealtimePublisher(Protocol):
    def publish(self, user_id: UUID, event: str, data: dict[str, Any]) -> int:
        ...


@dataclass
class Subscriber:
    websocket: WebSocket
    loop: asyncio.AbstractEventLoop
    connected_at: datetime = field(default_factory=datetime.utcnow)


class ConnectionManager:
    def __init__(self) -> None:
        self._subscribers: dict[str, dict[int, Subscriber]] = defaultdict(dict)
        self._lock = threading.Lock()

    async def connect(self, user_id: UUID, websocket: WebSocket) -> Subscriber:
        await websocket.accept()
        subscriber = Subscriber(websocket=websocket, loop=asyncio.get_running_loop())
        with self._lock:
            self._subscribers[str(user_id)][id(websocket)] = subscriber
        logger.info("[realtime] user %s connected (%s live)", user_id, self.connection_count(user_id))
        return subscriber

    def disconnect(self, user_id: UUID | str, websocket: WebSocket) -> None:
        key = str(user_id)
        with self._lock:
            sockets = self._subscribers.get(key)
            if not sockets:
                return
            sockets.pop(id(websocket), None)
            if not sockets:
                del self._subscribers[key]
        logger.info("[realtime] user %s disconnected", key)

    def connection_count(self, user_id: UUID | str) -> int:
        with self._lock:
            return len(self._subscribers.get(str(user_id), {}))

    def publish(self, user_id: UUID, event: str, data: dict[str, Any]) -> int:
        """Schedule ``{"event", "data"}`` on every live socket of the user.

        Returns the number of sockets a send was scheduled on.
        """
        key = str(user_id)
        with self._lock:
            subscribers = list(self._subscribers.get(key, {}).values())
        if not subscribers:
            return 0

        message = {"event": event, "data": jsonable_encoder(data)}
        scheduled = 0
        for subscriber in subscribers:
            try:
                future = asyncio.run_coroutine_threadsafe(
                    subscriber.websocket.send_json(message),
                    subscriber.loop,
                )
            except RuntimeError as exc:
                logger.warning("[realtime] loop gone for user %s: %s", key, exc)
                self.disconnect(key, subscriber.websocket)
                continue
            future.add_done_callback(self._send_callback(key, subscriber.websocket))
            scheduled += 1
        return scheduled

    def _send_callback(self, user_key: str, websocket: WebSocket):
        def _done(future: Future) -> None:
            if future.cancelled():
                return
            exc = future.exception()
            if exc is not None:
                logger.warning("[realtime] push to user %s failed: %s", user_key, exc)
                self.disconnect(user_key, websocket)

        return _done


connection_manager = ConnectionManager()
