"""
sms_gateway.py — SMS delivery via the Twilio REST API.

Delivery mechanism:
    App  →  HTTP POST  →  Twilio Messages API  →  Carrier  →  Parent's handset

    POST {TWILIO_API_BASE_URL}/Accounts/{SID}/Messages.json
         form: To, From, Body        auth: (SID, AUTH_TOKEN)

Modes:
    • twilio      — all three TWILIO_* settings present
    • simulation  — anything missing; every send with a phone number is
                    logged and reported as delivered (simulated=True)

Retry policy (twilio mode only):
    Network errors, timeouts, HTTP 429 and 5xx are retried with exponential
    backoff: delay = SMS_RETRY_BACKOFF_SECONDS × 2^(attempt - 1).
    Other 4xx responses (bad number, unverified sender) fail immediately.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from drillalert.alerts.models import DeliveryStatus, SmsDeliveryAttempt
from drillalert.core.config import Settings, settings as default_settings
from drillalert.core.errors import NotificationError

logger = logging.getLogger(__name__)

MODE_TWILIO = "twilio"
MODE_SIMULATION = "simulation"


class SmsGateway:
    """Sends one SMS per call; never raises for delivery problems."""

    def __init__(
        self,
        *,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        api_base_url: str = "https://api.twilio.com/2010-04-01",
        timeout_seconds: float = 15.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **overrides) -> "SmsGateway":
        config = config or default_settings
        options = dict(
            account_sid=config.TWILIO_ACCOUNT_SID,
            auth_token=config.TWILIO_AUTH_TOKEN,
            from_number=config.TWILIO_FROM,
            api_base_url=config.TWILIO_API_BASE_URL,
            timeout_seconds=config.SMS_TIMEOUT_SECONDS,
            max_retries=config.SMS_MAX_RETRIES,
            backoff_seconds=config.SMS_RETRY_BACKOFF_SECONDS,
        )
        options.update(overrides)
        return cls(**options)

    @property
    def mode(self) -> str:
        if self.account_sid and self.auth_token and self.from_number:
            return MODE_TWILIO
        return MODE_SIMULATION

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                auth=(self.account_sid or "", self.auth_token or ""),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def send(self, to: Optional[str], body: str, *, recipient_id: str = "") -> SmsDeliveryAttempt:
        """
        Send ``body`` to ``to``.

        Returns
        -------
        SmsDeliveryAttempt
            DELIVERED on success (or simulation), FAILED with error_message
            otherwise.
        """
        attempt = SmsDeliveryAttempt(
            to=to, recipient_id=recipient_id, status=DeliveryStatus.SENDING,
        )

        if not to:
            attempt.status = DeliveryStatus.FAILED
            attempt.error_message = "No phone number on file"
            attempt.completed_at = datetime.now(timezone.utc)
            return attempt

        if self.mode == MODE_SIMULATION:
            logger.info(
                "[SMS] Would send to %s (%d chars): '%s'",
                to, len(body), body[:80] + ("..." if len(body) > 80 else ""),
            )
            attempt.status = DeliveryStatus.DELIVERED
            attempt.simulated = True
            attempt.completed_at = datetime.now(timezone.utc)
            return attempt

        for attempt_num in range(1, self.max_retries + 2):
            attempt.retry_count = attempt_num - 1
            try:
                attempt.provider_message_id = await self._post_message(to, body)
                attempt.status = DeliveryStatus.DELIVERED
                break
            except NotificationError as exc:
                attempt.status = DeliveryStatus.FAILED
                attempt.error_message = exc.message
                if not exc.details.get("retryable") or attempt_num > self.max_retries:
                    break
                delay = self.backoff_seconds * (2 ** (attempt_num - 1))
                logger.info(
                    "Retry %d/%d for %s in %.1fs: %s",
                    attempt_num, self.max_retries, to, delay, exc.message,
                )
                await asyncio.sleep(delay)

        if attempt.status == DeliveryStatus.FAILED:
            logger.warning("[SMS/Twilio] Failed for %s: %s", to, attempt.error_message)
        attempt.completed_at = datetime.now(timezone.utc)
        return attempt

    async def _post_message(self, to: str, body: str) -> Optional[str]:
        """One Twilio API call; returns the message SID."""
        url = f"{self.api_base_url}/Accounts/{self.account_sid}/Messages.json"
        client = await self._get_client()
        try:
            response = await client.post(
                url, data={"To": to, "From": self.from_number, "Body": body},
            )
        except httpx.HTTPError as exc:
            raise NotificationError(to, f"{type(exc).__name__}: {exc}", retryable=True) from exc

        if response.status_code >= 400:
            retryable = response.status_code == 429 or response.status_code >= 500
            try:
                reason = response.json().get("message") or response.text
            except ValueError:
                reason = response.text
            raise NotificationError(
                to, f"HTTP {response.status_code}: {reason}",
                retryable=retryable, status_code=response.status_code,
            )

        try:
            return response.json().get("sid")
        except ValueError:
            return None
