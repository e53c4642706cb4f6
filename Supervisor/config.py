"""Configuration for the health supervisor.

Durations are given in milliseconds in the environment and exposed in
seconds. Override via environment variables:
    MONITOR_INTERVAL_MS          - polling interval (default: 60000)
    MONITOR_CONNECT_TIMEOUT_MS   - TCP connect timeout (default: 1500)
    MONITOR_HEALTH_TIMEOUT_MS    - HTTP health probe timeout (default: 3000)
    MONITOR_RESTART_COOLDOWN_MS  - minimum gap between restarts (default: 120000)
    MONITOR_NAME                 - the supervisor's own pm2 name, skipped
    MONITOR_HEALTH_PATH          - health endpoint path (default: /health)
    MONITOR_HOST                 - host probed on every port (default: 127.0.0.1)
    MONITOR_REPORT_DIR           - report directory (default: ./storage/health)
    MONITOR_HISTORY_MAX_BYTES    - history rotation threshold (default: 10 MiB)
    MONITOR_HISTORY_BACKUPS      - rotated history files kept (default: 5)
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


def _default_report_dir() -> Path:
    return Path.cwd() / "storage" / "health"


@dataclass(frozen=True)
class SupervisorConfig:
    """Immutable configuration for the health supervisor."""

    # Timing (milliseconds)
    interval_ms: int = 60_000
    connect_timeout_ms: int = 1_500
    health_timeout_ms: int = 3_000
    restart_cooldown_ms: int = 120_000

    # Identity / probe target
    monitor_name: str = "pm2-health-monitor"
    health_path: str = "/health"
    host: str = "127.0.0.1"

    # Reports
    report_dir: Path = field(default_factory=_default_report_dir)
    history_max_bytes: int = 10 * 1024 * 1024
    history_backups: int = 5

    # --- Derived values (properties) ---

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def connect_timeout(self) -> float:
        return self.connect_timeout_ms / 1000

    @property
    def health_timeout(self) -> float:
        return self.health_timeout_ms / 1000

    @property
    def restart_cooldown_seconds(self) -> float:
        return self.restart_cooldown_ms / 1000

    @property
    def latest_report_file(self) -> Path:
        """<report_dir>/health_scan_report_latest.json, overwritten each cycle."""
        return self.report_dir / "health_scan_report_latest.json"

    @property
    def history_file(self) -> Path:
        """<report_dir>/health_scan_report_history.ndjson, one line per cycle."""
        return self.report_dir / "health_scan_report_history.ndjson"

    @classmethod
    def from_env(cls) -> SupervisorConfig:
        """Build config from environment variables with sensible defaults."""
        kwargs: dict[str, Any] = {}
        if v := os.environ.get("MONITOR_INTERVAL_MS"):
            kwargs["interval_ms"] = int(v)
        if v := os.environ.get("MONITOR_CONNECT_TIMEOUT_MS"):
            kwargs["connect_timeout_ms"] = int(v)
        if v := os.environ.get("MONITOR_HEALTH_TIMEOUT_MS"):
            kwargs["health_timeout_ms"] = int(v)
        if v := os.environ.get("MONITOR_RESTART_COOLDOWN_MS"):
            kwargs["restart_cooldown_ms"] = int(v)
        if v := os.environ.get("MONITOR_NAME", "").strip():
            kwargs["monitor_name"] = v
        if v := os.environ.get("MONITOR_HEALTH_PATH", "").strip():
            kwargs["health_path"] = v if v.startswith("/") else f"/{v}"
        if v := os.environ.get("MONITOR_HOST", "").strip():
            kwargs["host"] = v
        if v := os.environ.get("MONITOR_REPORT_DIR"):
            kwargs["report_dir"] = Path(v)
        if v := os.environ.get("MONITOR_HISTORY_MAX_BYTES"):
            kwargs["history_max_bytes"] = int(v)
        if v := os.environ.get("MONITOR_HISTORY_BACKUPS"):
            kwargs["history_backups"] = int(v)
        return cls(**kwargs)
