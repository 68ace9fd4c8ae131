"""
WebSocket Router
Live notification push to authenticated users
"""

import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from database import SessionLocal
from services.auth_service import auth_service
from services.errors import AuthenticationError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str = ""):
    """
    Connect with ?token=<access token>; the server then pushes
    {"type": ..., "data": ...} messages. Client messages are ignored
    except "ping", answered with "pong".
    """
    registry = websocket.app.state.connections

    db = SessionLocal()
    try:
        user = auth_service.get_user_from_token(token, db)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await websocket.accept()
    try:
        await registry.register(user.id, websocket)
    except RuntimeError:
        # registry already closed: the server is shutting down
        logger.info(f"Rejected WebSocket of user {user.id} during shutdown")
        await websocket.close(code=status.WS_1001_GOING_AWAY)
        return
    await websocket.send_json({"type": "connected", "data": {"user_id": user.id}})

    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug(f"WebSocket of user {user.id} closed by client")
    finally:
        await registry.unregister(user.id, websocket)
