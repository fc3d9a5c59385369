#!/usr/bin/env python3

import argparse
import socket
import sys
import time
from logging import warning
from typing import Optional

from .common import DEFAULT_INTERVAL, DEFAULT_PORT, SERVER_PREFIX, encode_sample


class CounterServer:
    """Streams an incrementing counter to each client, one client at a time."""

    def __init__(
        self,
        host: str = "",
        port: int = 0,
        interval: float = DEFAULT_INTERVAL,
        count: Optional[int] = None,
        first: int = 1,
    ) -> None:
        self.interval = interval
        self.count = count
        self.next_value = first
        self.listen_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self.listen_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.listen_socket.bind((host, port))
            self.listen_socket.listen()
        except OSError:
            self.listen_socket.close()
            raise

    @property
    def address(self) -> tuple[str, int]:
        return self.listen_socket.getsockname()

    def serve_one(self) -> int:
        sock, peer = self.listen_socket.accept()
        print(f"Accepted {peer[0]}:{peer[1]}", flush=True)
        with sock:
            return self._stream(sock)

    def serve_forever(self) -> None:
        while True:
            self.serve_one()

    def _stream(self, sock: socket.socket) -> int:
        sent = 0
        while self.count is None or sent < self.count:
            if sent > 0 and self.interval > 0:
                time.sleep(self.interval)
            try:
                sock.sendall(encode_sample(self.next_value))
            except OSError as e:
                warning(f"Client went away after {sent} samples: {e}")
                break
            print(f"{SERVER_PREFIX} {self.next_value}", flush=True)
            self.next_value += 1
            sent += 1
        return sent

    def close(self) -> None:
        self.listen_socket.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.close()


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Counter server to pair with counter-probe-client")
    ap.add_argument("port", type=int, nargs="?", default=DEFAULT_PORT)
    ap.add_argument("--host", default="0.0.0.0")
    ap.add_argument("--interval", type=float, default=DEFAULT_INTERVAL,
                    help="seconds between samples")
    ap.add_argument("--count", type=int, default=None,
                    help="samples per client before closing (default: unlimited)")
    ap.add_argument("--first", type=int, default=1)
    ap.add_argument("--once", action="store_true", help="serve a single client and exit")
    args = ap.parse_args(argv)

    with CounterServer(args.host, args.port, args.interval, args.count, args.first) as server:
        host, port = server.address
        print(f"Listening on {host}:{port}", flush=True)
        try:
            if args.once:
                server.serve_one()
            else:
                server.serve_forever()
        except KeyboardInterrupt:
            print("shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
