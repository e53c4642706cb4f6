"""Supervisor: polling health checks and restarts for pm2-managed services."""

from __future__ import annotations

from .config import SupervisorConfig
from .cooldown import RestartCooldown
from .exceptions import PortInspectionError, ProcessManagerError, SupervisorError
from .models import (
    CycleReport,
    CycleSummary,
    PortCheck,
    ProcessInfo,
    ServiceHealthRecord,
)
from .supervisor import HealthSupervisor

__all__ = [
    "CycleReport",
    "CycleSummary",
    "HealthSupervisor",
    "PortCheck",
    "PortInspectionError",
    "ProcessInfo",
    "ProcessManagerError",
    "RestartCooldown",
    "ServiceHealthRecord",
    "SupervisorConfig",
    "SupervisorError",
]
