"""Tests for Supervisor.probes."""
from __future__ import annotations

import socket
from typing import Iterator

import httpx
import pytest

from Supervisor.probes import ProbeResult, http_probe, tcp_probe


@pytest.fixture
def listening_port() -> Iterator[int]:
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    try:
        yield server.getsockname()[1]
    finally:
        server.close()


@pytest.fixture
def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestTcpProbe:
    def test_open_port(self, listening_port: int) -> None:
        assert tcp_probe("127.0.0.1", listening_port, 1.0) == ProbeResult(True, "")

    def test_refused_port_reports_errno_name(self, closed_port: int) -> None:
        result = tcp_probe("127.0.0.1", closed_port, 1.0)
        assert result.ok is False
        assert result.reason == "ECONNREFUSED"

    def test_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _slow(*args, **kwargs):
            raise socket.timeout("timed out")

        monkeypatch.setattr("Supervisor.probes.socket.create_connection", _slow)
        assert tcp_probe("10.255.255.1", 80, 0.01) == ProbeResult(False, "tcp_timeout")

    def test_error_without_errno(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _broken(*args, **kwargs):
            raise OSError("weird")

        monkeypatch.setattr("Supervisor.probes.socket.create_connection", _broken)
        assert tcp_probe("127.0.0.1", 80, 0.01) == ProbeResult(False, "tcp_error")


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestHttpProbe:
    def test_ok(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "ok", "uptime": 12})

        with _client(handler) as client:
            result = http_probe(client, "127.0.0.1", 3000, "/health", 1.0)

        assert result == ProbeResult(True, "")
        assert str(seen[0].url) == "http://127.0.0.1:3000/health"

    @pytest.mark.parametrize(
        ("status", "body", "reason"),
        [
            (503, '{"status": "ok"}', "http_503"),
            (200, "not json", "health_json_invalid"),
            (200, '{"status": "degraded"}', "health_payload_invalid"),
            (200, '"ok"', "health_payload_invalid"),
        ],
    )
    def test_failures(self, status: int, body: str, reason: str) -> None:
        with _client(lambda request: httpx.Response(status, text=body)) as client:
            result = http_probe(client, "127.0.0.1", 3000, "/health", 1.0)
        assert result == ProbeResult(False, reason)

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with _client(handler) as client:
            result = http_probe(client, "127.0.0.1", 3000, "/health", 0.1)
        assert result == ProbeResult(False, "health_timeout")

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.RemoteProtocolError("reset", request=request)

        with _client(handler) as client:
            result = http_probe(client, "127.0.0.1", 3000, "/health", 0.1)
        assert result == ProbeResult(False, "health_error")

    def test_ipv6_host(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "ok"})

        with _client(handler) as client:
            http_probe(client, "::1", 3000, "/healthz", 1.0)
        assert seen[0].url.port == 3000
        assert seen[0].url.path == "/healthz"
