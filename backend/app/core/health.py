"""
Health check aggregation — deep health probe for the alert pipeline.

Checks:
    • Message transport configuration (provider, credentials present)
    • Location permission as reported by the geolocation provider
    • Contact list (an empty list means an alert cannot be delivered)
    • Sampler subscription vs. tracking flag

Returns a structured health report suitable for readiness probes and
the host application's status screen. Credential values never appear
in the report.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List

from backend.app.core.config import settings

if TYPE_CHECKING:
    from backend.app.safety.monitor import SafetyMonitor

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # an alert would be incomplete
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"name": self.name, "status": self.status.value}
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
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


def check_transport() -> ComponentHealth:
    comp = ComponentHealth(name="message_transport")
    provider = settings.MAIL_PROVIDER.lower()
    comp.details = {"provider": provider}
    if provider == "simulation":
        comp.status = HealthStatus.DEGRADED
        comp.message = "Simulation mode — alerts are logged, not sent"
    elif provider == "mailgun" and settings.MAILGUN_API_KEY is None:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "MAILGUN_API_KEY not configured"
    else:
        comp.message = f"Sending via {settings.MAILGUN_DOMAIN}"
    return comp


async def check_location(monitor: "SafetyMonitor") -> ComponentHealth:
    comp = ComponentHealth(name="geolocation")
    try:
        permission = await monitor.geolocation.request_permission()
        comp.details = {"permission": permission.value}
        if permission.value != "granted":
            comp.status = HealthStatus.UNHEALTHY
            comp.message = "Location permission denied — alerts will not be sent"
    except Exception as e:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e)
    return comp


def check_contacts(monitor: "SafetyMonitor") -> ComponentHealth:
    comp = ComponentHealth(name="contacts")
    count = len(monitor.contacts)
    comp.details = {"count": count}
    if count == 0:
        comp.status = HealthStatus.DEGRADED
        comp.message = "No emergency contacts configured"
    return comp


def check_tracking(monitor: "SafetyMonitor") -> ComponentHealth:
    comp = ComponentHealth(name="shake_tracking")
    comp.details = {
        "tracking": monitor.is_tracking,
        "countdown": monitor.context.countdown.phase.value,
    }
    return comp


async def run_health_check(monitor: "SafetyMonitor") -> HealthReport:
    """Run all checks; overall status is the worst component status."""
    components = [
        check_transport(),
        await check_location(monitor),
        check_contacts(monitor),
        check_tracking(monitor),
    ]

    statuses = {c.status for c in components}
    if HealthStatus.UNHEALTHY in statuses:
        overall = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        overall = HealthStatus.DEGRADED
    else:
        overall = HealthStatus.HEALTHY

    if overall is not HealthStatus.HEALTHY:
        logger.info("Health check: %s", overall.value)

    return HealthReport(
        status=overall,
        uptime_seconds=time.monotonic() - _start_time,
        components=components,
    )
