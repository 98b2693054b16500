"""
WebSocket Endpoint
Live permission snapshots for one signed-in principal
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
import structlog

from kalustovahti.core.database import AsyncSessionLocal
from kalustovahti.core.deps import load_active_user
from kalustovahti.core.permission_resolver import get_permission_resolver
from kalustovahti.core.security import verify_token
from kalustovahti.core.websocket import permission_sessions

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws/permissions")
async def permission_websocket(websocket: WebSocket, token: Optional[str] = Query(default=None)):
    """
    WebSocket endpoint for live permission updates.

    Client messages (JSON):
      {"action": "refresh"}
      {"action": "ping"}

    Server messages (JSON):
      {"type": "permissions", "data": {"status": "pending" | "resolved" | "failed", ...}}
      {"type": "pong"}
      {"type": "error", "message": "..."}
    """
    principal_id = None
    if token:
        try:
            principal_id = verify_token(token, token_type="access")
        except HTTPException:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        async with AsyncSessionLocal() as db:
            user = await load_active_user(db, principal_id)
        if user is None:
            logger.warning("WebSocket rejected, user not found or inactive", user_id=principal_id)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    tracker = await permission_sessions.connect(websocket, get_permission_resolver())
    try:
        await tracker.refresh(principal_id)
        while True:
            raw = await websocket.receive_text()
            await permission_sessions.handle_client_message(websocket, raw)
    except WebSocketDisconnect:
        await permission_sessions.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error", error=str(e))
        await permission_sessions.disconnect(websocket)
