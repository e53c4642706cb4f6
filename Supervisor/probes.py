"""Liveness probes: TCP connect, then HTTP GET of the health endpoint.

Probes never raise. A failure is reported as a short reason string that
ends up in the cycle report:

    tcp_timeout, ECONNREFUSED (any errno name), tcp_error
    http_<status>, health_json_invalid, health_payload_invalid,
    health_timeout, health_error, skip_health_tcp_failed
"""
from __future__ import annotations

import errno
import json
import socket
from typing import NamedTuple

import httpx

SKIP_HEALTH_TCP_FAILED = "skip_health_tcp_failed"


class ProbeResult(NamedTuple):
    ok: bool
    reason: str = ""


def tcp_probe(host: str, port: int, timeout: float) -> ProbeResult:
    """Open and immediately close a TCP connection to host:port."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return ProbeResult(True)
    except socket.timeout:
        return ProbeResult(False, "tcp_timeout")
    except OSError as exc:
        name = errno.errorcode.get(exc.errno) if exc.errno else None
        return ProbeResult(False, name or "tcp_error")


def http_probe(
    client: httpx.Client,
    host: str,
    port: int,
    path: str,
    timeout: float,
) -> ProbeResult:
    """GET the health endpoint; healthy means 200 and ``{"status": "ok"}``."""
    netloc = f"[{host}]" if ":" in host else host
    url = f"http://{netloc}:{port}{path}"
    try:
        resp = client.get(url, timeout=timeout)
    except httpx.TimeoutException:
        return ProbeResult(False, "health_timeout")
    except httpx.HTTPError:
        return ProbeResult(False, "health_error")

    if resp.status_code != 200:
        return ProbeResult(False, f"http_{resp.status_code}")
    try:
        payload = json.loads(resp.text or "{}")
    except ValueError:
        return ProbeResult(False, "health_json_invalid")
    if isinstance(payload, dict) and payload.get("status") == "ok":
        return ProbeResult(True)
    return ProbeResult(False, "health_payload_invalid")
