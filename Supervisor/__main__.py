"""Entry point for running the health supervisor as a module.

Usage:
    python -m Supervisor            # poll until SIGINT/SIGTERM
    python -m Supervisor --once     # one cycle, print the report, exit
"""
from __future__ import annotations

import argparse
import json
import sys

from Supervisor.config import SupervisorConfig
from Supervisor.ports import select_port_inspector
from Supervisor.process_manager import Pm2Client
from Supervisor.supervisor import HealthSupervisor


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="PM2 health supervisor")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle, print the report and exit",
    )
    args = parser.parse_args(argv)

    config = SupervisorConfig.from_env()
    with HealthSupervisor(config, Pm2Client(), select_port_inspector()) as supervisor:
        if args.once:
            report = supervisor.check_once()
            print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
            return 0 if report.summary.ok else 1
        supervisor.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
