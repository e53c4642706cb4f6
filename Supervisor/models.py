"""Data types produced by a supervisor cycle.

Reports are written with camelCase keys so dashboards reading the
``latest`` snapshot keep working across monitor versions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProcessInfo:
    """One entry of the process manager's live list."""

    name: str
    pm_id: int
    pid: int
    status: str
    env_port: int | None = None


@dataclass(frozen=True)
class PortCheck:
    """TCP and HTTP probe outcome for a single port."""

    port: int
    tcp_ok: bool
    tcp_reason: str
    health_ok: bool
    health_reason: str

    @property
    def ok(self) -> bool:
        return self.tcp_ok and self.health_ok

    def to_dict(self) -> dict[str, Any]:
        return {
            "port": self.port,
            "tcpOk": self.tcp_ok,
            "tcpReason": self.tcp_reason,
            "healthOk": self.health_ok,
            "healthReason": self.health_reason,
        }


@dataclass
class ServiceHealthRecord:
    """Per-service verdict for one cycle."""

    name: str
    pm_id: int
    pid: int
    status: str
    ports: list[int] = field(default_factory=list)
    checks: list[PortCheck] = field(default_factory=list)
    healthy: bool = True
    restarted: bool = False
    reason: str = ""

    def add_reason(self, reason: str) -> None:
        """Append a cause to ``reason`` (causes are separated by ``; ``)."""
        self.reason = f"{self.reason}; {reason}" if self.reason else reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "pm2Id": self.pm_id,
            "pid": self.pid,
            "pm2Status": self.status,
            "ports": list(self.ports),
            "checks": [c.to_dict() for c in self.checks],
            "healthy": self.healthy,
            "restarted": self.restarted,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class CycleSummary:
    total_services: int
    unhealthy_services: int
    restarted_services: int
    ok: bool
    duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalServices": self.total_services,
            "unhealthyServices": self.unhealthy_services,
            "restartedServices": self.restarted_services,
            "ok": self.ok,
            "durationMs": self.duration_ms,
        }


@dataclass(frozen=True)
class CycleReport:
    """Everything one cycle observed; persisted as latest + history."""

    timestamp: str
    interval_ms: int
    monitor_name: str
    summary: CycleSummary
    services: list[ServiceHealthRecord]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "intervalMs": self.interval_ms,
            "monitorName": self.monitor_name,
            "summary": self.summary.to_dict(),
            "services": [s.to_dict() for s in self.services],
        }
