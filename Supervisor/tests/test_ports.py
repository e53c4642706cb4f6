"""Tests for Supervisor.ports."""
from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from Supervisor.exceptions import PortInspectionError
from Supervisor.ports import (
    LsofPortInspector,
    NetstatPortInspector,
    parse_lsof,
    parse_netstat,
    select_port_inspector,
)

NETSTAT_OUTPUT = """
Active Connections

  Proto  Local Address          Foreign Address        State           PID
  TCP    0.0.0.0:135            0.0.0.0:0              LISTENING       1044
  TCP    0.0.0.0:3000           0.0.0.0:0              LISTENING       4242
  TCP    127.0.0.1:3001         0.0.0.0:0              LISTENING       4242
  TCP    [::]:8080              [::]:0                 LISTENING       5150
  TCP    127.0.0.1:3000         127.0.0.1:51234        ESTABLISHED     4242
  UDP    0.0.0.0:5353           *:*                                    900
  TCP    0.0.0.0:bad            0.0.0.0:0              LISTENING       77
"""

LSOF_OUTPUT = """\
COMMAND   PID USER   FD   TYPE DEVICE SIZE/OFF NODE NAME
node     4242 app    20u  IPv6 0x1a2b      0t0  TCP *:3000 (LISTEN)
node     4242 app    21u  IPv4 0x1a2c      0t0  TCP 127.0.0.1:3001 (LISTEN)
python3  5150 app     3u  IPv6 0x1a2d      0t0  TCP [::1]:8080 (LISTEN)
nginx    xyz  root    6u  IPv4 0x1a2e      0t0  TCP *:80 (LISTEN)
"""


class TestParsers:
    def test_netstat(self) -> None:
        assert parse_netstat(NETSTAT_OUTPUT) == {
            1044: {135},
            4242: {3000, 3001},
            5150: {8080},
        }

    def test_lsof(self) -> None:
        assert parse_lsof(LSOF_OUTPUT) == {4242: {3000, 3001}, 5150: {8080}}

    @pytest.mark.parametrize("parser", [parse_netstat, parse_lsof])
    def test_empty(self, parser) -> None:
        assert parser("") == {}


class TestInspectors:
    def test_select(self) -> None:
        assert isinstance(select_port_inspector("win32"), NetstatPortInspector)
        assert isinstance(select_port_inspector("linux"), LsofPortInspector)
        assert isinstance(select_port_inspector("darwin"), LsofPortInspector)

    def test_lsof_runs_listen_query(self) -> None:
        done = subprocess.CompletedProcess([], 0, stdout=LSOF_OUTPUT, stderr="")
        with patch("Supervisor.ports.subprocess.run", return_value=done) as run:
            ports = LsofPortInspector().listening_ports()
        assert ports[4242] == {3000, 3001}
        assert run.call_args.args[0] == ["lsof", "-nP", "-iTCP", "-sTCP:LISTEN"]

    def test_lsof_no_matches_is_empty(self) -> None:
        done = subprocess.CompletedProcess([], 1, stdout="", stderr="")
        with patch("Supervisor.ports.subprocess.run", return_value=done):
            assert LsofPortInspector().listening_ports() == {}

    def test_netstat_failure(self) -> None:
        done = subprocess.CompletedProcess([], 1, stdout="", stderr="denied")
        with patch("Supervisor.ports.subprocess.run", return_value=done):
            with pytest.raises(PortInspectionError, match="denied"):
                NetstatPortInspector().listening_ports()

    def test_missing_binary(self) -> None:
        with patch(
            "Supervisor.ports.subprocess.run",
            side_effect=FileNotFoundError("lsof"),
        ):
            with pytest.raises(PortInspectionError):
                LsofPortInspector().listening_ports()
