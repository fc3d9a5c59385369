#!/usr/bin/env python3

import argparse
import os
import pathlib
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional

from .common import CLIENT_PREFIX, SERVER_PREFIX
from .logs import counter_advanced, has_client_error, last_counter

_STARTUP_TIMEOUT = 10


@dataclass
class RunLogs:
    server: str
    clients: list[str]


def _python_env() -> dict[str, str]:
    # Child interpreters must import this package even when it is not installed
    root = str(pathlib.Path(__file__).resolve().parent.parent)
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [root, env.get("PYTHONPATH")]))
    return env


def _format_logs(stdout: str, stderr: str) -> str:
    return f"STDOUT:\n{stdout}\nSTDERR:\n{stderr}"


def run_sessions(count: int, interval: float, first: int, sessions: int) -> RunLogs:
    """Start a counter server and run `sessions` clients against it one after another."""
    env = _python_env()
    server = subprocess.Popen(
        [
            sys.executable, "-m", "counter_probe.server", "0",
            "--host", "127.0.0.1",
            "--interval", str(interval),
            "--count", str(count),
            "--first", str(first),
        ],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
    )
    try:
        banner = server.stdout.readline()
        if not banner.startswith("Listening on"):
            raise RuntimeError(f"Counter server did not start: {banner!r}")
        port = int(banner.rsplit(":", 1)[1])

        clients = []
        for _ in range(sessions):
            res = subprocess.run(
                [sys.executable, "-m", "counter_probe.client", "127.0.0.1", str(port)],
                capture_output=True,
                text=True,
                env=env,
                timeout=_STARTUP_TIMEOUT + count * interval,
            )
            clients.append(_format_logs(res.stdout, res.stderr))
    finally:
        server.terminate()
        server_out, server_err = server.communicate(timeout=_STARTUP_TIMEOUT)

    return RunLogs(_format_logs(banner + server_out, server_err), clients)


def judge(logs: RunLogs, count: int, first: int) -> list[str]:
    problems = []
    previous = None
    for idx, client_log in enumerate(logs.clients):
        expected = first + (idx + 1) * count - 1
        seen = last_counter(client_log, CLIENT_PREFIX)
        if seen != expected:
            problems.append(f"client #{idx + 1} ended at {seen}, expected {expected}")
        if not has_client_error(client_log):
            problems.append(f"client #{idx + 1} did not report the end of the stream")
        if previous is not None and not counter_advanced(previous, client_log, CLIENT_PREFIX, count):
            problems.append(f"client #{idx + 1} counter did not advance past client #{idx}")
        previous = client_log

    expected = first + len(logs.clients) * count - 1
    sent = last_counter(logs.server, SERVER_PREFIX)
    if sent != expected:
        problems.append(f"server ended at {sent}, expected {expected}")
    return problems


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Run counter-probe client sessions against a counter server and check the logs")
    ap.add_argument("--count", type=int, default=3, help="samples per client session")
    ap.add_argument("--interval", type=float, default=0.1)
    ap.add_argument("--first", type=int, default=1)
    ap.add_argument("--sessions", type=int, default=2)
    args = ap.parse_args(argv)

    logs = run_sessions(args.count, args.interval, args.first, args.sessions)
    problems = judge(logs, args.count, args.first)
    for problem in problems:
        print(f"FAIL: {problem}")
    if problems:
        print(logs.server)
        for client_log in logs.clients:
            print(client_log)
        return 1

    print(f"OK: {args.sessions} sessions of {args.count} samples")
    return 0


if __name__ == "__main__":
    sys.exit(main())
