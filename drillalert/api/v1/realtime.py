"""
WebSocket route: live drill notifications.

    WS /ws

Frames in both directions are JSON objects ``{"event": <name>, "data": {...}}``.
Keys inside ``data`` are camelCase on this channel in both directions; the
HTTP JSON bodies keep the stored column names.

Inbound:
    join    {role, class, username, userId}  → replies ``joined`` with the rooms

Outbound:
    drillStarted, alert   {id, type, class, message, startedBy, startedAt}
    studentResponded      {drillId, studentId, time}
    joined                {sessionId, rooms}
    error                 {message, errors?}

A malformed frame is answered with an ``error`` event; the connection stays
open. All replies go through the session's outbound queue so they are
never interleaved with a concurrent broadcast.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from drillalert.api.schemas import JoinMessage
from drillalert.core.logging_config import log_context
from drillalert.realtime.registry import ClientSession, SessionRegistry
from drillalert.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

EVENT_JOIN = "join"
EVENT_JOINED = "joined"
EVENT_ERROR = "error"


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, services: Services = Depends(get_services)):
    await websocket.accept()
    session = ClientSession(websocket, max_queue_size=services.config.WS_MAX_QUEUE_SIZE)
    with log_context(ws_session=session.session_id):
        session.start()
        logger.info("Session %s connected", session.session_id, extra={"session_id": session.session_id})
        try:
            while True:
                try:
                    frame = await websocket.receive_json()
                except (ValueError, KeyError, TypeError):
                    session.deliver(EVENT_ERROR, {"message": "Frames must be JSON objects"})
                    continue
                _handle_frame(services.registry, session, frame)
        except WebSocketDisconnect:
            pass
        finally:
            services.registry.leave(session)
            await session.close()
            logger.info(
                "Session %s disconnected (%d dropped)", session.session_id, session.dropped,
                extra={"session_id": session.session_id},
            )


def _handle_frame(registry: SessionRegistry, session: ClientSession, frame: Any) -> None:
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        session.deliver(EVENT_ERROR, {"message": "Frame must have a string 'event'"})
        return

    event = frame["event"]
    if event != EVENT_JOIN:
        session.deliver(EVENT_ERROR, {"message": f"Unknown event '{event}'"})
        return

    data = frame.get("data", frame)
    try:
        join = JoinMessage.model_validate(data)
    except PydanticValidationError as exc:
        session.deliver(
            EVENT_ERROR,
            {"message": "Invalid join", "errors": exc.errors(include_url=False, include_context=False)},
        )
        return

    rooms = registry.join(
        session, join.role, join.class_name,
        username=join.username, user_id=join.user_id,
    )
    session.deliver(EVENT_JOINED, {"sessionId": session.session_id, "rooms": rooms})
