"""
Real-time push channel.

Every WebSocket connection authenticates with `?token=<jwt>` and then joins
the room named after its own user id by sending
`{"event": "join-room", "data": "<user id>"}`. Pushes go to rooms, so all of
a user's open tabs receive them. Delivery is fire-and-forget.
"""

import asyncio
import json
import logging
import threading
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from auth import find_user_by_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class RoomHub:
    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[str, Set[WebSocket]] = {}
        self._loops: Dict[WebSocket, asyncio.AbstractEventLoop] = {}

    def join(self, room: str, websocket: WebSocket, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            self._rooms.setdefault(room, set()).add(websocket)
            self._loops[websocket] = loop

    def leave(self, websocket: WebSocket) -> None:
        with self._lock:
            for room in list(self._rooms):
                self._rooms[room].discard(websocket)
                if not self._rooms[room]:
                    del self._rooms[room]
            self._loops.pop(websocket, None)

    def room_size(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def emit(self, room: str, event: str, data: Any) -> int:
        """
        Schedule `{"event", "data"}` onto every socket in `room`. Safe to call
        from worker threads; returns how many sockets the message was queued for.
        """
        with self._lock:
            targets = [(ws, self._loops[ws]) for ws in self._rooms.get(room, ())]
        message = {"event": event, "data": data}
        for websocket, loop in targets:
            future = asyncio.run_coroutine_threadsafe(websocket.send_json(message), loop)
            future.add_done_callback(_log_send_failure)
        return len(targets)


def _log_send_failure(future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.warning("Socket push failed: %s", future.exception())


hub = RoomHub()


@router.websocket("/ws")
async def socket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    user = await run_in_threadpool(find_user_by_token, token) if token else None
    if not user:
        await websocket.close(code=1008)
        return
    await websocket.accept()
    user_id = str(user["_id"])
    loop = asyncio.get_running_loop()
    logger.info("User connected: %s", user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"message": "Malformed message"}})
                continue
            if not isinstance(message, dict):
                continue
            if message.get("event") == "join-room":
                room = str(message.get("data"))
                if room != user_id:
                    await websocket.send_json({"event": "error", "data": {"message": "Cannot join another user's room"}})
                    continue
                hub.join(room, websocket, loop)
                logger.info("User %s joined room", user_id)
                await websocket.send_json({"event": "joined", "data": {"room": room}})
    except WebSocketDisconnect:
        logger.info("User disconnected: %s", user_id)
    finally:
        hub.leave(websocket)
