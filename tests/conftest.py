"""
Shared fixtures: a fresh SQLite database per test and fake collaborators.

Each test gets its own database file under ``tmp_path`` so store, directory
and orchestrator tests never see each other's rows.
"""

from __future__ import annotations

import os

# Settings are read at import time; keep the app's own engine off the disk.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("TWILIO_ACCOUNT_SID", None)

from typing import Any, Dict, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from drillalert.alerts.models import DeliveryStatus, SmsDeliveryAttempt  # noqa: E402
from drillalert.core.database import build_engine, build_session_factory, init_db  # noqa: E402


class RecordingSession:
    """Stands in for a ClientSession; keeps every delivered event."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.role: Optional[str] = None
        self.class_name: Optional[str] = None
        self.username: Optional[str] = None
        self.user_id: Optional[int] = None
        self.received: List[Tuple[str, Dict[str, Any]]] = []

    def deliver(self, event: str, payload: Dict[str, Any]) -> None:
        self.received.append((event, payload))

    def events(self) -> List[str]:
        return [event for event, _ in self.received]


class FakeGateway:
    """SMS gateway double: records sends, fails for the configured numbers."""

    mode = "simulation"

    def __init__(self, failing: Tuple[str, ...] = (), raising: Tuple[str, ...] = ()):
        self.failing = set(failing)
        self.raising = set(raising)
        self.sent: List[Tuple[Optional[str], str]] = []
        self.closed = False

    async def send(self, to, body, *, recipient_id=""):
        self.sent.append((to, body))
        if to in self.raising:
            raise RuntimeError("gateway exploded")
        if not to or to in self.failing:
            return SmsDeliveryAttempt(
                to=to,
                recipient_id=recipient_id,
                status=DeliveryStatus.FAILED,
                error_message="carrier rejected" if to else "No phone number on file",
            )
        return SmsDeliveryAttempt(
            to=to, recipient_id=recipient_id, status=DeliveryStatus.DELIVERED,
        )

    async def close(self):
        self.closed = True


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'drillalert.db'}"


@pytest.fixture
async def engine(db_url):
    engine = build_engine(db_url, poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)
