import socket
import threading
from typing import Callable

import pytest

from counter_probe.server import CounterServer


class ScriptedServer:
    """Loopback listener that runs `script` against the first client."""

    def __init__(self, script: Callable[[socket.socket], None]) -> None:
        self.listen_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listen_socket.bind(("127.0.0.1", 0))
        self.listen_socket.listen()
        self.script = script
        self.thread = threading.Thread(target=self._accept_job, daemon=True)
        self.thread.start()

    @property
    def port(self) -> int:
        return self.listen_socket.getsockname()[1]

    def _accept_job(self) -> None:
        sock, _ = self.listen_socket.accept()
        with sock:
            self.script(sock)

    def close(self) -> None:
        self.thread.join(timeout=5)
        self.listen_socket.close()


@pytest.fixture
def scripted_server():
    servers = []

    def make(script: Callable[[socket.socket], None]) -> ScriptedServer:
        server = ScriptedServer(script)
        servers.append(server)
        return server

    yield make
    for server in servers:
        server.close()


@pytest.fixture
def counter_server():
    servers = []

    def make(**kwargs) -> CounterServer:
        server = CounterServer("127.0.0.1", 0, **kwargs)
        thread = threading.Thread(target=server.serve_one, daemon=True)
        thread.start()
        servers.append((server, thread))
        return server

    yield make
    for server, thread in servers:
        thread.join(timeout=5)
        server.close()


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
