"""
orchestrator.py — Drill lifecycle and notification fan-out.

This is the only component that starts drills. Ordering is always
create-then-notify:

    ┌────────────────────┐
    │ 1. Validate input  │  type and class are required
    └─────────┬──────────┘
              ▼
    ┌────────────────────┐
    │ 2. Persist drill   │  StorageError → abort, nothing was sent
    └─────────┬──────────┘
              ▼
    ┌────────────────────┐
    │ 3. Live publish    │  class room (or every student for ALL)
    │    (non-blocking)  │  + teacher and admin dashboards
    └─────────┬──────────┘
              ▼
    ┌────────────────────┐
    │ 4. SMS fan-out     │  alerts only; per-parent outcome collected,
    │    (best effort)   │  failures never undo the stored drill
    └────────────────────┘

A drill has no closed state: once stored it stays queryable and students
can keep acknowledging it. Reports are recomputed from the store on every
call.

Class filtering happens here, on the server. A drill for ClassA is
published to ``class:ClassA`` and the staff role rooms only, so a ClassB
student never receives it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from drillalert.alerts.bridge import NotificationBridge, format_alert_sms
from drillalert.alerts.models import AlertDeliveryReport, SmsRecipient
from drillalert.core.errors import StorageError, ValidationError
from drillalert.directory.service import DirectoryService
from drillalert.drills.models import (
    ALL_CLASSES,
    Drill,
    DrillReport,
    DrillResponse,
    ResponseEntry,
)
from drillalert.drills.store import DrillStore
from drillalert.realtime.registry import SessionRegistry, class_room, role_room

logger = logging.getLogger(__name__)

# Outbound realtime events
EVENT_DRILL_STARTED = "drillStarted"
EVENT_ALERT = "alert"
EVENT_STUDENT_RESPONDED = "studentResponded"

STAFF_ROLES = ("teacher", "admin")


@dataclass
class AlertDispatchResult:
    """What ``send_alert_with_sms`` hands back: the stored alert plus SMS outcome."""
    drill: Drill
    delivery: AlertDeliveryReport
    live_sessions: int = 0

    @property
    def total(self) -> int:
        return self.delivery.total

    @property
    def sent(self) -> int:
        return self.delivery.sent

    @property
    def failed(self) -> int:
        return self.delivery.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert": self.drill.to_dict(),
            "live_sessions": self.live_sessions,
            **self.delivery.to_dict(),
        }


def audience_rooms(class_name: str) -> List[str]:
    """Rooms a drill for ``class_name`` is published to."""
    if class_name == ALL_CLASSES:
        target = role_room("student")
    else:
        target = class_room(class_name)
    return [target] + [role_room(r) for r in STAFF_ROLES]


class DrillOrchestrator:

    def __init__(
        self,
        store: DrillStore,
        registry: SessionRegistry,
        directory: DirectoryService,
        bridge: NotificationBridge,
    ):
        self.store = store
        self.registry = registry
        self.directory = directory
        self.bridge = bridge

    # ── Drill creation ──

    async def start_drill(
        self,
        type: Optional[str],
        class_name: Optional[str],
        message: Optional[str] = None,
        started_by: Optional[str] = None,
    ) -> Drill:
        """Record a drill, then publish ``drillStarted`` to its audience."""
        drill_type, target, text = _validate_drill_input(type, class_name, message)
        if not text:
            text = f"{drill_type} started. Follow instructions."

        drill = await self.store.create_drill(drill_type, target, text, started_by)
        self._publish(drill, EVENT_DRILL_STARTED)
        return drill

    async def send_alert_with_sms(
        self,
        type: Optional[str],
        class_name: Optional[str],
        message: Optional[str] = None,
        started_by: Optional[str] = None,
    ) -> AlertDispatchResult:
        """
        Record an alert, publish it live, then text every parent in the class.

        Per-parent SMS failures are reported in the result, never raised.
        If the class roll cannot be read the StorageError propagates with the
        already-stored ``drill_id`` in its details.
        """
        alert_type, target, text = _validate_drill_input(type, class_name, message)

        drill = await self.store.create_drill(alert_type, target, text, started_by)
        live = self._publish(drill, EVENT_ALERT)

        try:
            students = await self.directory.students_in_class(target)
        except StorageError as exc:
            exc.details["drill_id"] = drill.id
            logger.error(
                "Alert %d stored but class roll lookup failed: %s",
                drill.id, exc.message, extra={"drill_id": drill.id},
            )
            raise

        recipients = [
            SmsRecipient(
                recipient_id=str(s.id),
                name=s.name or s.username,
                phone=s.parent_phone,
            )
            for s in students
        ]
        body = format_alert_sms(alert_type, text, started_by)
        delivery = await self.bridge.dispatch(recipients, body)

        logger.info(
            "Alert %d for %s: %d/%d SMS sent, %d live sessions",
            drill.id, target, delivery.sent, delivery.total, live,
            extra={
                "drill_id": drill.id,
                "class_name": target,
                "recipient_count": delivery.total,
                "delivered": delivery.sent,
            },
        )
        return AlertDispatchResult(drill=drill, delivery=delivery, live_sessions=live)

    # ── Acknowledgements ──

    async def record_safe(
        self, drill_id: Optional[int], student_id: Optional[int]
    ) -> Tuple[DrillResponse, bool]:
        """
        Store a student's "I'm safe" and tell every teacher dashboard.

        Returns the response and whether it was new; a repeat submission is
        accepted but not re-announced.
        """
        if drill_id is None or student_id is None:
            raise ValidationError("drillId and studentId required")

        response, created = await self.store.record_response(drill_id, student_id)
        if created:
            self.registry.broadcast(
                role_room("teacher"),
                EVENT_STUDENT_RESPONDED,
                response.to_event(),
            )
        else:
            logger.info(
                "Duplicate response ignored: drill=%d student=%d",
                drill_id, student_id, extra={"drill_id": drill_id},
            )
        return response, created

    # ── Queries ──

    async def get_all_reports(self) -> List[DrillReport]:
        return await self.store.list_reports()

    async def get_live_report(self, class_name: Optional[str] = None) -> Optional[DrillReport]:
        """Newest report, optionally limited to drills that reached ``class_name``."""
        for report in await self.store.list_reports():
            if class_name is None or report.class_name in (class_name, ALL_CLASSES):
                return report
        return None

    async def get_current_drill(self, class_name: str) -> Optional[Drill]:
        return await self.store.get_current_drill(class_name)

    async def get_responses(self, drill_id: int) -> List[ResponseEntry]:
        return await self.store.get_responses(drill_id)

    # ── Internals ──

    def _publish(self, drill: Drill, event: str) -> int:
        rooms = audience_rooms(drill.class_name)
        delivered = self.registry.publish(rooms, event, drill.to_event())
        logger.info(
            "Drill %d (%s) published as %s to %d sessions",
            drill.id, drill.class_name, event, delivered,
            extra={"drill_id": drill.id, "event": event, "delivered": delivered},
        )
        return delivered


def _validate_drill_input(
    type: Optional[str], class_name: Optional[str], message: Optional[str]
) -> Tuple[str, str, str]:
    drill_type = (type or "").strip()
    target = (class_name or "").strip()
    if not drill_type or not target:
        missing = [n for n, v in (("type", drill_type), ("class", target)) if not v]
        raise ValidationError("type and class required", missing=missing)
    return drill_type, target, (message or "").strip()
