"""
Live permission sessions over WebSocket.

Every connection owns a PermissionTracker. Role or grant changes call
invalidate_all(), which re-runs resolution for each connection; the client
sees a "pending" snapshot followed by the fresh one, and results superseded
by a newer cycle are never sent.
"""

import asyncio
import json
from typing import Dict, Optional

from fastapi import WebSocket
import structlog

from kalustovahti.core.permission_resolver import (
    PermissionResolution,
    PermissionResolver,
    resolution_to_dict,
)
from kalustovahti.core.permission_tracker import PermissionTracker

logger = structlog.get_logger()


class PermissionSessionManager:
    def __init__(self):
        self._sessions: Dict[WebSocket, PermissionTracker] = {}
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def connect(self, websocket: WebSocket, resolver: PermissionResolver) -> PermissionTracker:
        await websocket.accept()

        async def push(resolution: PermissionResolution) -> None:
            await self._send(websocket, resolution)

        tracker = PermissionTracker(resolver, listener=push)
        async with self._lock:
            self._sessions[websocket] = tracker
        logger.debug("Permission session opened", total=len(self._sessions))
        return tracker

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._sessions.pop(websocket, None)
        logger.debug("Permission session closed", total=len(self._sessions))

    def tracker_for(self, websocket: WebSocket) -> Optional[PermissionTracker]:
        return self._sessions.get(websocket)

    def invalidate_all(self) -> None:
        """Schedule re-resolution for every open session; returns immediately."""
        for websocket, tracker in list(self._sessions.items()):
            task = asyncio.create_task(self._invalidate(websocket, tracker))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if self._sessions:
            logger.info("Permission sessions invalidated", sessions=len(self._sessions))

    async def _invalidate(self, websocket: WebSocket, tracker: PermissionTracker) -> None:
        try:
            await tracker.invalidate()
        except Exception as e:
            logger.warning("Permission session refresh failed", error=str(e))
            await self.disconnect(websocket)

    async def _send(self, websocket: WebSocket, resolution: PermissionResolution) -> None:
        await websocket.send_text(json.dumps({
            "type": "permissions",
            "data": resolution_to_dict(resolution),
        }))

    async def handle_client_message(self, websocket: WebSocket, raw: str):
        """Client messages: {"action": "refresh"} and {"action": "ping"}"""
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await websocket.send_text(json.dumps({"type": "error", "message": "Invalid JSON"}))
            return

        action = msg.get("action") if isinstance(msg, dict) else None
        if action == "refresh":
            tracker = self.tracker_for(websocket)
            if tracker is not None:
                await tracker.invalidate()
        elif action == "ping":
            await websocket.send_text(json.dumps({"type": "pong"}))
        else:
            await websocket.send_text(json.dumps({
                "type": "error",
                "message": f"Unknown action: {action}",
            }))


permission_sessions = PermissionSessionManager()
