import asyncio
import json
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from pydantic import ValidationError

from logging_config import get_logger
from schemas.realtime import (
    JOIN_ROOM, LEAVE_ROOM, ROOM_MEMBERS, SIGNAL, USER_JOINED, USER_LEFT,
    Envelope, JoinRoomPayload, LeaveRoomPayload,
)

logger = get_logger(__name__)


class RoomGroups:
    """Transport level grouping of live sockets into named rooms.

    Format: sockets {connection_id: websocket}, rooms {room: {connection_id, ...}}.
    A room with no members is removed.
    """

    def __init__(self):
        self.sockets: Dict[str, WebSocket] = {}
        self.rooms: Dict[str, Set[str]] = {}

    def register(self, connection_id: str, websocket: WebSocket):
        self.sockets[connection_id] = websocket

    def unregister(self, connection_id: str):
        self.sockets.pop(connection_id, None)
        for room in [r for r, members in self.rooms.items() if connection_id in members]:
            self.discard(connection_id, room)

    def add(self, connection_id: str, room: str):
        self.rooms.setdefault(room, set()).add(connection_id)

    def discard(self, connection_id: str, room: str):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    def members(self, room: str) -> list:
        return list(self.rooms.get(room, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        return {room for room, members in self.rooms.items() if connection_id in members}

    async def send(self, connection_id: str, event: str, data: dict) -> bool:
        """Send one event to one connection. Unknown ids are absorbed."""
        websocket = self.sockets.get(connection_id)
        if websocket is None:
            logger.debug(f"Dropping {event} for unknown connection {connection_id}")
            return False
        try:
            await websocket.send_text(json.dumps({"event": event, "data": data}))
            return True
        except Exception as e:
            logger.warning(f"Error sending {event} to connection {connection_id}: {e}")
            return False

    async def broadcast(self, room: str, event: str, data: dict, exclude: Optional[str] = None):
        recipients = [conn_id for conn_id in self.members(room) if conn_id != exclude]
        if not recipients:
            return
        logger.debug(f"Broadcasting {event} to {len(recipients)} connections in room {room}")
        await asyncio.gather(*(self.send(conn_id, event, data) for conn_id in recipients), return_exceptions=True)

    def clear(self):
        self.sockets.clear()
        self.rooms.clear()


class RoomRelay:
    """Room membership and signaling fan-out for one server instance.

    `memberships` mirrors the rooms each connection holds in `groups`; every
    handler below updates both before it awaits anything. `store` is the
    meeting store participants are recorded in, or None to skip persistence.
    """

    def __init__(self, store=None):
        self.store = store
        self.groups = RoomGroups()
        self.memberships: Dict[str, Set[str]] = {}
        self._background_tasks: Set[asyncio.Task] = set()

    def connect(self, websocket: WebSocket) -> str:
        connection_id = str(uuid.uuid4())
        self.groups.register(connection_id, websocket)
        self.memberships[connection_id] = set()
        logger.info(f"Realtime connected: {connection_id}")
        return connection_id

    async def dispatch(self, connection_id: str, raw: Any):
        """Route one client frame to its handler. Malformed frames are ignored."""
        try:
            if isinstance(raw, (str, bytes)):
                raw = json.loads(raw)
            envelope = Envelope.model_validate(raw)
        except (ValueError, RecursionError, ValidationError) as e:
            logger.debug(f"Ignoring malformed frame from {connection_id}: {e}")
            return

        handler = {
            JOIN_ROOM: self.join,
            LEAVE_ROOM: self.leave,
            SIGNAL: self.signal,
        }.get(envelope.event)
        if handler is None:
            logger.debug(f"Ignoring unknown event {envelope.event!r} from {connection_id}")
            return
        await handler(connection_id, envelope.data)

    async def join(self, connection_id: str, payload: dict):
        try:
            request = JoinRoomPayload.model_validate(payload)
        except ValidationError as e:
            logger.debug(f"Ignoring invalid join-room from {connection_id}: {e}")
            return
        room = request.room
        if not room:
            return

        self.groups.add(connection_id, room)
        self.memberships.setdefault(connection_id, set()).add(room)
        logger.info(f"Connection {connection_id} joined room {room}")

        if self.store is not None:
            self._spawn(self._record_participant(room, request.user_id, request.display_name))

        await self.groups.broadcast(room, USER_JOINED, {
            "socketId": connection_id,
            "userId": request.user_id,
            "displayName": request.display_name,
        }, exclude=connection_id)

        await self.groups.send(connection_id, ROOM_MEMBERS, {"members": self.groups.members(room)})

    async def leave(self, connection_id: str, payload: dict):
        try:
            room = LeaveRoomPayload.model_validate(payload).room
        except ValidationError as e:
            logger.debug(f"Ignoring invalid leave-room from {connection_id}: {e}")
            return
        if not room:
            return

        self.groups.discard(connection_id, room)
        rooms = self.memberships.get(connection_id)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self.memberships[connection_id]
        logger.info(f"Connection {connection_id} left room {room}")

        # Sent even when the connection never joined this room
        await self.groups.broadcast(room, USER_LEFT, {"socketId": connection_id}, exclude=connection_id)

    async def signal(self, connection_id: str, payload: dict):
        target = payload.get("to")
        if not target or not isinstance(target, str):
            return
        logger.debug(f"Relaying signal from {connection_id} to {target}")
        await self.groups.send(target, SIGNAL, payload)

    async def disconnect(self, connection_id: str):
        rooms = self.memberships.pop(connection_id, set())
        self.groups.unregister(connection_id)
        for room in rooms:
            await self.groups.broadcast(room, USER_LEFT, {"socketId": connection_id}, exclude=connection_id)
        logger.info(f"Realtime disconnected: {connection_id}")

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self.memberships.get(connection_id, ()))

    async def close(self):
        """Cancel in-flight persistence work and drop all membership state."""
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background_tasks.clear()
        self.memberships.clear()
        self.groups.clear()
        logger.info("Room relay closed")

    async def wait_background(self):
        """Wait until every in-flight persistence task has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _record_participant(self, room: str, user_id, display_name: Optional[str]):
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.store.record_participant, room, user_id, display_name)

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task):
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"participant db save failed: {error}")
