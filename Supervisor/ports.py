"""Listening-port discovery by process id.

One capability, two implementations: ``netstat`` on Windows and ``lsof``
everywhere else. :func:`select_port_inspector` picks one at startup; the
parsers are pure functions over the command output.
"""
from __future__ import annotations

import subprocess
import sys
from typing import Protocol, Sequence

from Supervisor.exceptions import PortInspectionError

PortMap = dict[int, set[int]]


class PortInspector(Protocol):
    """Maps OS process ids to the TCP ports they listen on."""

    def listening_ports(self) -> PortMap:
        ...


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def _port_from_endpoint(endpoint: str) -> int | None:
    """``127.0.0.1:3000`` / ``[::]:3000`` / ``*:3000`` -> 3000."""
    _, sep, tail = endpoint.rpartition(":")
    if not sep:
        return None
    try:
        port = int(tail)
    except ValueError:
        return None
    return port if 0 < port < 65536 else None


def _add(ports: PortMap, pid: int, port: int) -> None:
    ports.setdefault(pid, set()).add(port)


def parse_netstat(output: str) -> PortMap:
    """Parse ``netstat -ano -p tcp`` (Windows).

    Row shape: ``TCP  0.0.0.0:3000  0.0.0.0:0  LISTENING  4242``.
    """
    ports: PortMap = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 5:
            continue
        proto, local, _, state, pid_raw = parts[:5]
        if proto.upper() != "TCP" or state.upper() != "LISTENING":
            continue
        try:
            pid = int(pid_raw)
        except ValueError:
            continue
        port = _port_from_endpoint(local)
        if port is not None:
            _add(ports, pid, port)
    return ports


def parse_lsof(output: str) -> PortMap:
    """Parse ``lsof -nP -iTCP -sTCP:LISTEN``.

    Row shape: ``node 4242 app 20u IPv6 0x0 0t0 TCP *:3000 (LISTEN)``;
    the header row is skipped because its PID column is not numeric.
    """
    ports: PortMap = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 9:
            continue
        try:
            pid = int(parts[1])
        except ValueError:
            continue
        port = _port_from_endpoint(parts[8])
        if port is not None:
            _add(ports, pid, port)
    return ports


# ---------------------------------------------------------------------------
# Inspectors
# ---------------------------------------------------------------------------


def _run(args: Sequence[str], timeout: float, ok_codes: tuple[int, ...]) -> str:
    try:
        proc = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise PortInspectionError(f"{args[0]}: {exc}") from exc
    if proc.returncode not in ok_codes:
        raise PortInspectionError(
            f"{' '.join(args)} exited {proc.returncode}: {proc.stderr.strip()[:200]}"
        )
    return proc.stdout


class NetstatPortInspector:
    """Windows: ``netstat -ano -p tcp``."""

    command = ("netstat", "-ano", "-p", "tcp")

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    def listening_ports(self) -> PortMap:
        return parse_netstat(_run(self.command, self._timeout, (0,)))


class LsofPortInspector:
    """POSIX: ``lsof -nP -iTCP -sTCP:LISTEN``.

    lsof exits 1 when nothing matches, which is an empty result here.
    """

    command = ("lsof", "-nP", "-iTCP", "-sTCP:LISTEN")

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    def listening_ports(self) -> PortMap:
        return parse_lsof(_run(self.command, self._timeout, (0, 1)))


def select_port_inspector(platform: str | None = None) -> PortInspector:
    """Pick the inspector for *platform* (defaults to ``sys.platform``)."""
    if (platform or sys.platform).startswith("win"):
        return NetstatPortInspector()
    return LsofPortInspector()
