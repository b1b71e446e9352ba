"""
bridge.py — Best-effort SMS fan-out for drill alerts.

One alert → N parent phone numbers. Each send is independent:

    ┌──────────────┐     semaphore(SMS_MAX_CONCURRENCY)
    │ recipients   │ ──► send ──► SmsDeliveryAttempt   (delivered)
    │ (class roll) │ ──► send ──► SmsDeliveryAttempt   (failed: reason)
    └──────────────┘ ──► send ──► SmsDeliveryAttempt   ...
                              │
                              ▼
                     AlertDeliveryReport(total, sent, failed, details)

A failure for one recipient never cancels or fails the others; even an
unexpected exception from the gateway is captured as a failed attempt.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from drillalert.alerts.channels.sms_gateway import SmsGateway
from drillalert.alerts.models import (
    AlertDeliveryReport,
    DeliveryStatus,
    SmsDeliveryAttempt,
    SmsRecipient,
)
from drillalert.core.config import settings

logger = logging.getLogger(__name__)

SMS_MAX_GSM7 = 160


def format_alert_sms(
    alert_type: str,
    message: str,
    started_by: Optional[str],
    *,
    max_length: int = SMS_MAX_GSM7,
) -> str:
    """Parent-facing alert text, trimmed so the whole SMS fits ``max_length``."""
    prefix = f"{alert_type} Alert: "
    suffix = f" - Your child's school: {started_by or 'School'}. Please remain calm."
    body = (message or "").strip()

    available = max_length - len(prefix) - len(suffix)
    if available <= 3:
        body = ""
    elif len(body) > available:
        body = body[: available - 3] + "..."

    return f"{prefix}{body}{suffix}"


class NotificationBridge:
    """Fan an SMS out to many recipients through an ``SmsGateway``."""

    def __init__(self, gateway: SmsGateway, *, max_concurrency: Optional[int] = None):
        self.gateway = gateway
        self.max_concurrency = max(1, max_concurrency or settings.SMS_MAX_CONCURRENCY)

    @property
    def mode(self) -> str:
        return self.gateway.mode

    async def send(self, to: Optional[str], body: str, *, recipient_id: str = "") -> SmsDeliveryAttempt:
        """Single send; any exception becomes a FAILED attempt."""
        try:
            return await self.gateway.send(to, body, recipient_id=recipient_id)
        except Exception as exc:
            logger.error("[SMS] Unexpected failure for %s: %s", recipient_id or to, exc)
            return SmsDeliveryAttempt(
                to=to,
                recipient_id=recipient_id,
                status=DeliveryStatus.FAILED,
                error_message=str(exc) or type(exc).__name__,
                completed_at=datetime.now(timezone.utc),
            )

    async def dispatch(self, recipients: Sequence[SmsRecipient], body: str) -> AlertDeliveryReport:
        """Send ``body`` to every recipient concurrently and aggregate the outcomes."""
        report = AlertDeliveryReport(started_at=datetime.now(timezone.utc))
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def send_one(recipient: SmsRecipient) -> SmsDeliveryAttempt:
            async with semaphore:
                return await self.send(
                    recipient.phone, body, recipient_id=recipient.recipient_id,
                )

        report.attempts = list(
            await asyncio.gather(*(send_one(r) for r in recipients))
        )
        report.completed_at = datetime.now(timezone.utc)

        logger.info(
            "SMS fan-out complete [%s]: %d/%d sent, %d failed",
            self.mode, report.sent, report.total, report.failed,
            extra={"recipient_count": report.total, "delivered": report.sent},
        )
        return report

    async def close(self) -> None:
        await self.gateway.close()
