"""
Health check aggregation — deep health probe for the drill-alert service.

Checks:
    • Database connectivity (SELECT 1 through the async engine)
    • SMS bridge mode (Twilio vs simulation)
    • Realtime session registry (connected sessions, rooms)

Returns a structured health report suitable for:
    - Kubernetes liveness/readiness probes
    - Load balancer health checks
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List

from drillalert.alerts.channels.sms_gateway import MODE_TWILIO
from drillalert.core.config import settings
from drillalert.core.database import ping_db

if TYPE_CHECKING:
    from drillalert.services import Services

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


async def check_database(services: "Services") -> ComponentHealth:
    comp = ComponentHealth(name="database")
    start = time.monotonic()
    try:
        await ping_db(services.engine)
        comp.message = "Connection available"
    except Exception as e:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e)
        logger.warning("Database health check failed: %s", e)
    url = services.config.DATABASE_URL
    comp.details = {"url": url.split("@")[-1]}
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_sms_bridge(services: "Services") -> ComponentHealth:
    """Simulation mode still answers requests, so it only degrades."""
    comp = ComponentHealth(name="sms_bridge")
    start = time.monotonic()
    mode = services.bridge.mode
    comp.details = {"mode": mode, "max_concurrency": services.bridge.max_concurrency}
    if mode == MODE_TWILIO:
        comp.message = "Twilio configured"
    else:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Twilio not configured, SMS is simulated"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_realtime(services: "Services") -> ComponentHealth:
    comp = ComponentHealth(name="realtime")
    start = time.monotonic()
    comp.details = {
        "sessions": services.registry.session_count,
        "rooms": services.registry.room_count,
    }
    comp.message = f"{services.registry.session_count} live sessions"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def run_health_check(services: "Services") -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    checks = [
        check_database(services),
        check_sms_bridge(services),
        check_realtime(services),
    ]
    for coro in checks:
        report.components.append(await coro)

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
