"""
services.py — Wiring of the drill core for the FastAPI app.

The lifespan handler builds one ``Services`` bundle and stores it on
``app.state.services``; routes reach it through the ``get_services``
dependency (tests override that dependency with their own bundle).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from starlette.requests import HTTPConnection

from drillalert.alerts.bridge import NotificationBridge
from drillalert.alerts.channels.sms_gateway import SmsGateway
from drillalert.core.config import Settings, settings as default_settings
from drillalert.directory.service import DirectoryService
from drillalert.drills.orchestrator import DrillOrchestrator
from drillalert.drills.store import DrillStore
from drillalert.realtime.registry import SessionRegistry


@dataclass
class Services:
    store: DrillStore
    directory: DirectoryService
    registry: SessionRegistry
    bridge: NotificationBridge
    orchestrator: DrillOrchestrator
    config: Settings
    engine: Optional[AsyncEngine] = None

    async def close(self) -> None:
        await self.bridge.close()


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    gateway: Optional[SmsGateway] = None,
    config: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
) -> Services:
    config = config or default_settings
    store = DrillStore(session_factory)
    directory = DirectoryService(
        session_factory,
        bulk_concurrency=config.BULK_IMPORT_CONCURRENCY,
        default_class=config.DEFAULT_CLASS,
    )
    registry = SessionRegistry()
    bridge = NotificationBridge(
        gateway or SmsGateway.from_settings(config),
        max_concurrency=config.SMS_MAX_CONCURRENCY,
    )
    orchestrator = DrillOrchestrator(store, registry, directory, bridge)
    return Services(
        store=store,
        directory=directory,
        registry=registry,
        bridge=bridge,
        orchestrator=orchestrator,
        config=config,
        engine=engine,
    )


def get_services(connection: HTTPConnection) -> Services:
    """FastAPI dependency for both HTTP and WebSocket routes."""
    return connection.app.state.services
