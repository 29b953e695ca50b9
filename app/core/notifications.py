from collections import defaultdict
from typing import Any, Protocol
from uuid import UUID

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from app.core.logger import logger


def user_room(user_id: UUID | str) -> str:
    return f"user_{user_id}"


class NotificationSink(Protocol):
    async def notify_user(self, user_id: UUID | str, event: str, payload: dict[str, Any]) -> None: ...

    async def notify_topic(self, topic: str, event: str, payload: dict[str, Any]) -> None: ...


class ConnectionManager:
    """
    In-process WebSocket rooms.

    Delivery is best-effort and at-most-once: a socket that fails to receive
    is dropped from every room and the error is only logged. Nothing here is
    ever raised back to the code that triggered the notification.
    """

    def __init__(self):
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)

    def join(self, websocket: WebSocket, room: str) -> None:
        self.rooms[room].add(websocket)
        logger.info(f"Socket joined room {room}")

    def disconnect(self, websocket: WebSocket) -> None:
        for room in list(self.rooms):
            self.rooms[room].discard(websocket)
            if not self.rooms[room]:
                del self.rooms[room]

    async def notify_user(self, user_id: UUID | str, event: str, payload: dict[str, Any]) -> None:
        await self._emit(user_room(user_id), event, payload)

    async def notify_topic(self, topic: str, event: str, payload: dict[str, Any]) -> None:
        await self._emit(topic, event, payload)

    async def _emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        message = {"event": event, "data": jsonable_encoder(payload)}
        for websocket in list(self.rooms.get(room, ())):
            try:
                await websocket.send_json(message)
            except Exception as exc:
                logger.warning(f"Dropping socket in {room} after failed '{event}' delivery: {exc}")
                self.disconnect(websocket)
