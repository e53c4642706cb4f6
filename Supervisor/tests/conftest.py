"""Shared fakes and fixtures for Supervisor tests."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterator

import httpx
import pytest

from Supervisor.config import SupervisorConfig
from Supervisor.cooldown import RestartCooldown
from Supervisor.models import ProcessInfo
from Supervisor.ports import PortMap
from Supervisor.probes import ProbeResult
from Supervisor.supervisor import HealthSupervisor


class FakeProcessManager:
    """In-memory pm2: a fixed process list plus a restart log."""

    def __init__(self, processes: list[ProcessInfo] | None = None) -> None:
        self.processes = list(processes or [])
        self.restarts: list[str] = []
        self.restart_error: Exception | None = None

    def list_processes(self) -> list[ProcessInfo]:
        return list(self.processes)

    def restart(self, name: str) -> None:
        self.restarts.append(name)
        if self.restart_error is not None:
            raise self.restart_error


class FakePortInspector:
    def __init__(self, ports: PortMap | None = None) -> None:
        self.ports: PortMap = ports or {}

    def listening_ports(self) -> PortMap:
        return {pid: set(p) for pid, p in self.ports.items()}


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNetwork:
    """Stands in for both probes: TCP results and HTTP health bodies per port.

    Ports absent from ``tcp`` refuse connections. Ports absent from
    ``health`` answer 200 ``{"status": "ok"}``.
    """

    def __init__(self) -> None:
        self.tcp: dict[int, ProbeResult] = {}
        self.health: dict[int, tuple[int, str]] = {}
        self.requests: list[httpx.Request] = []

    def open(self, port: int) -> None:
        self.tcp[port] = ProbeResult(True)

    def tcp_probe(self, host: str, port: int, timeout: float) -> ProbeResult:
        return self.tcp.get(port, ProbeResult(False, "ECONNREFUSED"))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.health.get(
            request.url.port or 80, (200, json.dumps({"status": "ok"}))
        )
        return httpx.Response(status, text=body)


@pytest.fixture
def config(tmp_path: Path) -> SupervisorConfig:
    return SupervisorConfig(
        report_dir=tmp_path / "health",
        restart_cooldown_ms=120_000,
        interval_ms=10,
    )


@pytest.fixture
def pm() -> FakeProcessManager:
    return FakeProcessManager()


@pytest.fixture
def inspector() -> FakePortInspector:
    return FakePortInspector()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def make_supervisor(
    config: SupervisorConfig,
    pm: FakeProcessManager,
    inspector: FakePortInspector,
    clock: FakeClock,
    network: FakeNetwork,
) -> Iterator[Callable[..., HealthSupervisor]]:
    created: list[HealthSupervisor] = []

    def _make(**overrides: Any) -> HealthSupervisor:
        cfg = overrides.pop("config", config)
        supervisor = HealthSupervisor(
            cfg,
            pm,
            inspector,
            cooldown=RestartCooldown(cfg.restart_cooldown_seconds, clock=clock),
            http_client=httpx.Client(transport=httpx.MockTransport(network.handle)),
            tcp_probe_fn=overrides.pop("tcp_probe_fn", network.tcp_probe),
            **overrides,
        )
        created.append(supervisor)
        return supervisor

    yield _make
    for supervisor in created:
        supervisor._http.close()
