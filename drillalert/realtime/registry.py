"""
registry.py — Live session rooms and non-blocking broadcast.

Room keys:
    class:<name>   every session that joined with that class
    role:<role>    every session that joined with that role (teacher/student/admin)

Each connected client is a ``ClientSession`` with its own bounded outbound
queue drained by a background sender task, so a broadcast only enqueues
and never waits on a slow socket. When a queue is full the oldest pending
message is dropped.

All registry methods are synchronous and run on the event loop thread, so
a broadcast always iterates a consistent snapshot of room membership. A
session joining while an event is being published may or may not get it.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def class_room(class_name: str) -> str:
    return f"class:{class_name}"


def role_room(role: str) -> str:
    return f"role:{role}"


class ClientSession:
    """One live connection and what it told us in its ``join`` message."""

    def __init__(
        self,
        websocket: Optional[WebSocket] = None,
        *,
        max_queue_size: int = 100,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.websocket = websocket
        self.role: Optional[str] = None
        self.class_name: Optional[str] = None
        self.username: Optional[str] = None
        self.user_id: Optional[int] = None
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self._sender: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Spawn the sender task (call from inside the event loop)."""
        if self._sender is None:
            self._sender = asyncio.create_task(self._drain())

    def deliver(self, event: str, payload: Dict[str, Any]) -> None:
        """Queue an event for this client without waiting."""
        message = {"event": event, "data": payload}
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.put_nowait(message)
            self.dropped += 1
            logger.warning(
                "Session %s backlog full, dropped oldest message",
                self.session_id, extra={"session_id": self.session_id},
            )

    @property
    def backlog(self) -> int:
        """Messages queued but not yet written to the socket."""
        return self._queue.qsize()

    async def _drain(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.websocket.send_json(message)
            except Exception as exc:
                logger.info("Session %s send failed, stopping sender: %s", self.session_id, exc)
                return

    async def close(self) -> None:
        if self._sender is not None:
            self._sender.cancel()
            try:
                await self._sender
            except asyncio.CancelledError:
                pass
            self._sender = None


class SessionRegistry:
    """The only owner of room membership."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, ClientSession]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    # ── Membership ──

    def join(
        self,
        session: ClientSession,
        role: Optional[str],
        class_name: Optional[str] = None,
        *,
        username: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> List[str]:
        """
        Add ``session`` to its role room and, if given, its class room.

        Idempotent: joining again with the same parameters changes nothing.
        Joining with a different role or class moves the session out of the
        old room. Returns every room the session is now a member of.
        """
        if role and session.role and role != session.role:
            self._drop(session, role_room(session.role))
        if class_name and session.class_name and class_name != session.class_name:
            self._drop(session, class_room(session.class_name))

        session.role = role or session.role
        session.class_name = class_name or session.class_name
        session.username = username or session.username
        session.user_id = user_id if user_id is not None else session.user_id

        keys = []
        if role:
            keys.append(role_room(role))
        if class_name:
            keys.append(class_room(class_name))

        memberships = self._memberships.setdefault(session.session_id, set())
        for key in keys:
            self._rooms.setdefault(key, {})[session.session_id] = session
            memberships.add(key)

        logger.info(
            "Session %s (%s) joined %s",
            session.session_id, username or "anonymous", sorted(memberships),
            extra={"session_id": session.session_id},
        )
        return sorted(memberships)

    def _drop(self, session: ClientSession, key: str) -> None:
        self._memberships.get(session.session_id, set()).discard(key)
        members = self._rooms.get(key)
        if members is None:
            return
        members.pop(session.session_id, None)
        if not members:
            del self._rooms[key]

    def leave(self, session: ClientSession) -> None:
        """Remove ``session`` from every room; unknown sessions are ignored."""
        for key in list(self._memberships.get(session.session_id, ())):
            self._drop(session, key)
        self._memberships.pop(session.session_id, None)

    def members(self, room: str) -> List[ClientSession]:
        return list(self._rooms.get(room, {}).values())

    def rooms_of(self, session: ClientSession) -> List[str]:
        return sorted(self._memberships.get(session.session_id, set()))

    @property
    def session_count(self) -> int:
        return len(self._memberships)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    # ── Delivery ──

    def broadcast(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        """Deliver to every current member of ``room``; returns sessions reached."""
        return self.publish([room], event, payload)

    def publish(self, rooms: Iterable[str], event: str, payload: Dict[str, Any]) -> int:
        """Deliver once to each session in the union of ``rooms``."""
        room_list = list(rooms)
        audience: Dict[str, ClientSession] = {}
        for room in room_list:
            for session_id, session in self._rooms.get(room, {}).items():
                audience.setdefault(session_id, session)

        delivered = 0
        for session in audience.values():
            try:
                session.deliver(event, payload)
                delivered += 1
            except Exception as exc:
                logger.warning(
                    "Delivery of %s to session %s failed: %s",
                    event, session.session_id, exc,
                )

        logger.debug(
            "Published %s to %s → %d sessions",
            event, room_list, delivered,
            extra={"event": event, "room": ",".join(room_list), "delivered": delivered},
        )
        return delivered
