"""PM2 health supervisor: probe every managed service, restart the sick ones.

One cycle (:meth:`HealthSupervisor.check_once`):

1. List pm2 processes, skipping the supervisor's own entry.
2. Candidate ports = the port declared in the process env, plus every
   port the process id is seen listening on.
3. No candidate port -> unhealthy (``no_port_detected``), no probe.
4. Per port: TCP connect; only if it succeeds, GET the health path and
   expect 200 with ``{"status": "ok"}``.
5. Healthy iff pm2 says ``online`` and every port passed both probes.
6. Unhealthy and outside the restart cooldown -> ``pm2 restart``.
7. Write the ``latest`` snapshot and append one line to the history.

A failure while checking one service is recorded on that service only;
a failure of the whole cycle is logged by :meth:`run_forever`, which
then waits for the next tick.
"""
from __future__ import annotations

import signal
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from Supervisor.config import SupervisorConfig
from Supervisor.cooldown import RestartCooldown
from Supervisor.exceptions import PortInspectionError
from Supervisor.history import HistoryLog
from Supervisor.models import (
    CycleReport,
    CycleSummary,
    PortCheck,
    ProcessInfo,
    ServiceHealthRecord,
)
from Supervisor.ports import PortInspector, PortMap
from Supervisor.probes import (
    SKIP_HEALTH_TCP_FAILED,
    ProbeResult,
    http_probe,
    tcp_probe,
)
from Supervisor.process_manager import ProcessManager
from infra.json_store import atomic_write
from infra.logger import get_logger

ONLINE = "online"

TcpProbe = Callable[[str, int, float], ProbeResult]


def _utc_timestamp() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class HealthSupervisor:
    """Polls pm2-managed services and restarts unhealthy ones.

    Parameters
    ----------
    config:
        Timing, probe target and report locations.
    process_manager:
        pm2 access (``list_processes`` / ``restart``).
    port_inspector:
        Listening-port discovery for the current platform.
    cooldown:
        Restart bookkeeping. Passed in so tests and multiple supervisors
        each own their state; a fresh one is created when omitted.
    http_client:
        Client used by the health probe; created (and closed by
        :meth:`close`) when omitted.
    tcp_probe_fn:
        TCP probe, replaceable in tests.
    """

    def __init__(
        self,
        config: SupervisorConfig,
        process_manager: ProcessManager,
        port_inspector: PortInspector,
        cooldown: RestartCooldown | None = None,
        http_client: httpx.Client | None = None,
        tcp_probe_fn: TcpProbe = tcp_probe,
    ) -> None:
        self.config = config
        self._pm = process_manager
        self._ports = port_inspector
        self.cooldown = cooldown or RestartCooldown(config.restart_cooldown_seconds)
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=config.health_timeout)
        self._tcp_probe = tcp_probe_fn
        self.history = HistoryLog(
            config.history_file,
            max_bytes=config.history_max_bytes,
            backups=config.history_backups,
        )
        self._stop = threading.Event()
        self.log = get_logger("supervisor")

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def check_once(self) -> CycleReport:
        """Run one full cycle, persist the report and return it."""
        started = time.monotonic()

        processes = [
            p for p in self._pm.list_processes() if p.name != self.config.monitor_name
        ]
        port_map = self._listening_ports()

        services: list[ServiceHealthRecord] = []
        for proc in processes:
            record = self._inspect_service(proc, port_map)
            if not record.healthy:
                self._maybe_restart(record)
            services.append(record)

        unhealthy = sum(1 for s in services if not s.healthy)
        summary = CycleSummary(
            total_services=len(services),
            unhealthy_services=unhealthy,
            restarted_services=sum(1 for s in services if s.restarted),
            ok=unhealthy == 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        report = CycleReport(
            timestamp=_utc_timestamp(),
            interval_ms=self.config.interval_ms,
            monitor_name=self.config.monitor_name,
            summary=summary,
            services=services,
        )
        self.write_report(report)
        self.log.info(
            "Cycle done: total=%d unhealthy=%d restarted=%d (%dms)",
            summary.total_services,
            summary.unhealthy_services,
            summary.restarted_services,
            summary.duration_ms,
        )
        return report

    def write_report(self, report: CycleReport) -> None:
        """Overwrite the latest snapshot and append to the history."""
        data = report.to_dict()
        atomic_write(self.config.latest_report_file, data)
        self.history.append(data)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run_forever(self) -> None:
        """Run a cycle now and then once per interval until stopped.

        SIGINT / SIGTERM stop the loop once the current cycle finishes.
        """
        self._register_signals()
        self.log.info(
            "Supervisor started (interval=%ss, cooldown=%ss)",
            self.config.interval_seconds,
            self.config.restart_cooldown_seconds,
        )
        while not self._stop.is_set():
            try:
                self.check_once()
            except Exception:
                self.log.exception("Cycle failed")
            if self._stop.wait(self.config.interval_seconds):
                break
        self.log.info("Supervisor stopped")

    def stop(self) -> None:
        """Ask :meth:`run_forever` to return after the current cycle."""
        self._stop.set()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> HealthSupervisor:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _listening_ports(self) -> PortMap:
        try:
            return self._ports.listening_ports()
        except PortInspectionError as exc:
            self.log.warning("Port inspection failed, using declared ports only: %s", exc)
            return {}

    def _inspect_service(
        self, proc: ProcessInfo, port_map: PortMap
    ) -> ServiceHealthRecord:
        record = ServiceHealthRecord(
            name=proc.name, pm_id=proc.pm_id, pid=proc.pid, status=proc.status
        )
        try:
            self._probe_service(proc, port_map, record)
        except Exception as exc:
            self.log.exception(
                "Check of %s failed", proc.name, extra={"service": proc.name}
            )
            record.healthy = False
            record.add_reason(f"check_failed={exc}")
        return record

    def _probe_service(
        self, proc: ProcessInfo, port_map: PortMap, record: ServiceHealthRecord
    ) -> None:
        ports: set[int] = set(port_map.get(proc.pid, ())) if proc.pid > 0 else set()
        if proc.env_port is not None:
            ports.add(proc.env_port)
        record.ports = sorted(ports)

        if not record.ports:
            record.healthy = False
            record.add_reason("no_port_detected")
            return

        for port in record.ports:
            record.checks.append(self._check_port(port))

        if proc.status != ONLINE:
            record.add_reason(f"status={proc.status or 'unknown'}")
        seen: set[str] = set()
        for check in record.checks:
            if check.ok:
                continue
            cause = check.health_reason if check.tcp_ok else check.tcp_reason
            if cause not in seen:
                seen.add(cause)
                record.add_reason(cause)
        record.healthy = proc.status == ONLINE and all(c.ok for c in record.checks)

    def _check_port(self, port: int) -> PortCheck:
        host = self.config.host
        tcp = self._tcp_probe(host, port, self.config.connect_timeout)
        if tcp.ok:
            health = http_probe(
                self._http, host, port, self.config.health_path,
                self.config.health_timeout,
            )
        else:
            health = ProbeResult(False, SKIP_HEALTH_TCP_FAILED)
        return PortCheck(
            port=port,
            tcp_ok=tcp.ok,
            tcp_reason=tcp.reason,
            health_ok=health.ok,
            health_reason=health.reason,
        )

    def _maybe_restart(self, record: ServiceHealthRecord) -> None:
        if not self.cooldown.try_acquire(record.name):
            self.log.info(
                "%s unhealthy (%s); restart skipped, cooling down for %.0fs",
                record.name,
                record.reason,
                self.cooldown.remaining(record.name),
                extra={"service": record.name},
            )
            return
        try:
            self._pm.restart(record.name)
        except Exception as exc:
            self.log.error(
                "Restart of %s failed: %s",
                record.name,
                exc,
                extra={"service": record.name},
            )
            record.add_reason(f"restart_failed={exc}")
            return
        record.restarted = True
        self.log.warning(
            "%s unhealthy (%s); restarted",
            record.name,
            record.reason,
            extra={"service": record.name},
        )

    def _register_signals(self) -> None:
        """Register SIGINT and SIGTERM handlers (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum: int, frame: Any) -> None:
        self.log.info(
            "Shutdown signal received (%s), finishing current cycle...",
            signal.Signals(signum).name,
        )
        self._stop.set()
