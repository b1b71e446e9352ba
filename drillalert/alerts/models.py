"""
models.py — Data structures for the SMS notification bridge.

Defines:
    • DeliveryStatus     — outcome of one send
    • SmsRecipient       — a parent contact resolved from the directory
    • SmsDeliveryAttempt — record of one gateway call (after retries)
    • AlertDeliveryReport — aggregate over every targeted recipient

A recipient without a phone number is still counted as targeted; their
attempt is FAILED with "No phone number on file" so the caller sees who
could not be reached.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class DeliveryStatus(str, Enum):
    PENDING   = "pending"
    SENDING   = "sending"
    DELIVERED = "delivered"
    FAILED    = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SmsRecipient:
    recipient_id: str
    name: str
    phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"recipient_id": self.recipient_id, "name": self.name, "phone": self.phone}


@dataclass
class SmsDeliveryAttempt:
    """Record of a single SMS send to one address."""
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    to: Optional[str] = None
    recipient_id: str = ""
    status: DeliveryStatus = DeliveryStatus.PENDING
    simulated: bool = False
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None
    retry_count: int = 0
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "to": self.to,
            "ok": self.ok,
            "status": self.status.value,
            "simulated": self.simulated,
            "retry_count": self.retry_count,
            "error": self.error_message,
            "provider_message_id": self.provider_message_id,
        }


@dataclass
class AlertDeliveryReport:
    """Aggregate SMS outcome for one alert."""
    attempts: List[SmsDeliveryAttempt] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.attempts)

    @property
    def sent(self) -> int:
        return sum(1 for a in self.attempts if a.ok)

    @property
    def failed(self) -> int:
        return self.total - self.sent

    @property
    def failures(self) -> List[SmsDeliveryAttempt]:
        return [a for a in self.attempts if not a.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "sent": self.sent,
            "failed": self.failed,
            "details": [a.to_dict() for a in self.attempts],
        }
