from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlmodel import Session

from settleup.api.deps import get_db, resolve_user_from_token
from settleup.core.errors import SettleUpError
from settleup.core.logging_setup import logger
from settleup.services.realtime import connection_manager

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    session: Session = Depends(get_db),
) -> None:
    """Push channel for ``notification`` events; clients may send ``ping``."""
    try:
        user = resolve_user_from_token(token, session)
        user_id, active = user.id, user.is_active
    except SettleUpError as exc:
        logger.info("[realtime] rejected socket: %s", exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        session.close()

    if not active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await connection_manager.connect(user_id, websocket)
    try:
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        connection_manager.disconnect(user_id, websocket)
