"""pm2 access: list managed processes and restart them."""
from __future__ import annotations

import json
import subprocess
from typing import Any, Protocol, Sequence

from Supervisor.exceptions import ProcessManagerError
from Supervisor.models import ProcessInfo
from infra.logger import get_logger


class ProcessManager(Protocol):
    """What the supervisor needs from a process manager."""

    def list_processes(self) -> list[ProcessInfo]:
        ...

    def restart(self, name: str) -> None:
        ...


def parse_jlist(raw: str) -> list[ProcessInfo]:
    """Turn ``pm2 jlist`` output into ProcessInfo entries.

    Entries without a name are dropped. The declared port comes from
    ``pm2_env.env.PORT`` and falls back to ``pm2_env.PORT``.

    Raises:
        ProcessManagerError: If the output is not a JSON array.
    """
    try:
        data = json.loads(raw or "[]")
    except json.JSONDecodeError as exc:
        raise ProcessManagerError("pm2 jlist", f"invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ProcessManagerError("pm2 jlist", "expected a JSON array")

    processes: list[ProcessInfo] = []
    for app in data:
        if not isinstance(app, dict):
            continue
        name = str(app.get("name") or "").strip()
        if not name:
            continue
        pm2_env = app.get("pm2_env") or {}
        env = pm2_env.get("env") or {}
        processes.append(
            ProcessInfo(
                name=name,
                pm_id=_to_int(app.get("pm_id"), -1),
                pid=_to_int(app.get("pid"), 0),
                status=str(pm2_env.get("status") or ""),
                env_port=_parse_port(env.get("PORT", pm2_env.get("PORT"))),
            )
        )
    return processes


class Pm2Client:
    """Runs the ``pm2`` CLI.

    Parameters
    ----------
    binary:
        Executable name or path (default ``pm2``).
    timeout:
        Seconds allowed per command before it counts as failed.
    """

    def __init__(self, binary: str = "pm2", timeout: float = 30.0) -> None:
        self._binary = binary
        self._timeout = timeout
        self._log = get_logger("supervisor.pm2")

    def list_processes(self) -> list[ProcessInfo]:
        return parse_jlist(self._run(["jlist"]))

    def restart(self, name: str) -> None:
        self._run(["restart", name])
        self._log.info("Restarted %s", name)

    def _run(self, args: Sequence[str]) -> str:
        command = " ".join([self._binary, *args])
        try:
            proc = subprocess.run(
                [self._binary, *args],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ProcessManagerError(command, str(exc)) from exc
        if proc.returncode != 0:
            raise ProcessManagerError(
                command, (proc.stderr or proc.stdout or "").strip()[:500]
            )
        return proc.stdout


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_port(value: Any) -> int | None:
    port = _to_int(str(value).strip() if value is not None else None, 0)
    if 0 < port < 65536:
        return port
    return None
