#!/usr/bin/env python3

import ipaddress
import socket
import sys
from typing import Optional

from .common import CLIENT_ERROR_MARKER, CLIENT_PREFIX, recv_sample
from .errors import (
    AddressParseError,
    ClientError,
    ConnectError,
    ReadError,
    SocketCreateError,
    UsageError,
)

EXIT_FAILURE = 1


def parse_port(text: str) -> int:
    # Plain ASCII digits only: int() would also take "+80", " 80 " and "8_0"
    if not (text.isascii() and text.isdecimal()):
        raise AddressParseError(f"Invalid port `{text}`")
    port = int(text)
    if not 0 <= port <= 0xFFFF:
        raise AddressParseError(f"Port {port} is out of range")
    return port


def connect(address: str, port: int) -> socket.socket:
    """Open the one connection this client owns.

    Announces the target on stdout once connected.
    """
    try:
        ip = ipaddress.IPv4Address(address)
    except ipaddress.AddressValueError as e:
        raise AddressParseError(f"Invalid IPv4 address `{address}`: {e}") from e
    if not 0 <= port <= 0xFFFF:
        raise AddressParseError(f"Port {port} is out of range")

    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    except OSError as e:
        raise SocketCreateError(str(e)) from e

    try:
        sock.connect((str(ip), port))
    except OSError as e:
        sock.close()
        raise ConnectError(str(e)) from e

    print(f"Connected to {address}:{port} ...", flush=True)
    return sock


def read_loop(sock: socket.socket) -> int:
    """Print samples until the stream ends; returns how many were printed."""
    received = 0
    while True:
        try:
            value = recv_sample(sock)
        except ReadError as e:
            print(CLIENT_ERROR_MARKER, file=sys.stderr, flush=True)
            print(f"read: {e}", file=sys.stderr, flush=True)
            return received

        print(f"{CLIENT_PREFIX} {value}", flush=True)
        received += 1


def run(address: str, port: int) -> int:
    try:
        sock = connect(address, port)
    except SocketCreateError as e:
        print(f"Can't create socket: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except AddressParseError as e:
        print(f"Can't resolve server address: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except ConnectError as e:
        print(f"Can't connect to server: {e}", file=sys.stderr)
        return EXIT_FAILURE

    with sock:
        read_loop(sock)

    # The loop only ends when the stream breaks, harnesses treat that as a failure
    return EXIT_FAILURE


def parse_args(argv: list[str]) -> tuple[str, int]:
    if len(argv) != 3:
        raise UsageError(
            f"Usage: {argv[0]} <address> <port>\nExample: {argv[0]} 127.0.0.1 8080"
        )
    return argv[1], parse_port(argv[2])


def main(argv: Optional[list[str]] = None) -> int:
    if argv is None:
        argv = sys.argv
    if len(argv) == 0:
        argv = ["counter-probe-client"]

    try:
        address, port = parse_args(argv)
    except UsageError as e:
        print(e)
        return EXIT_FAILURE
    except ClientError as e:
        print(f"Can't resolve server address: {e}", file=sys.stderr)
        return EXIT_FAILURE

    return run(address, port)


if __name__ == "__main__":
    sys.exit(main())
