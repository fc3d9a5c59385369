import socket
import threading
import time

import pytest

from counter_probe import server as server_mod
from counter_probe.common import SERVER_PREFIX, recv_sample
from counter_probe.errors import ReadError
from counter_probe.server import CounterServer


def read_all(port: int, out: list[int]) -> None:
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        while True:
            try:
                out.append(recv_sample(sock))
            except ReadError:
                return


def test_serve_one_sends_count_then_closes(capsys):
    received: list[int] = []
    with CounterServer("127.0.0.1", 0, interval=0, count=3) as server:
        reader = threading.Thread(target=read_all, args=(server.address[1], received))
        reader.start()
        assert server.serve_one() == 3
        reader.join(timeout=5)

    assert received == [1, 2, 3]
    out = capsys.readouterr().out
    assert [line for line in out.splitlines() if line.startswith(SERVER_PREFIX)] == [
        f"{SERVER_PREFIX} 1",
        f"{SERVER_PREFIX} 2",
        f"{SERVER_PREFIX} 3",
    ]


def test_counter_continues_across_clients():
    with CounterServer("127.0.0.1", 0, interval=0, count=2, first=40) as server:
        batches = []
        for _ in range(2):
            received: list[int] = []
            reader = threading.Thread(target=read_all, args=(server.address[1], received))
            reader.start()
            server.serve_one()
            reader.join(timeout=5)
            batches.append(received)

    assert batches == [[40, 41], [42, 43]]


def test_client_disconnect_ends_stream(caplog):
    def read_two(port: int) -> None:
        with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
            recv_sample(sock)
            recv_sample(sock)

    with CounterServer("127.0.0.1", 0, interval=0.01) as server:
        reader = threading.Thread(target=read_two, args=(server.address[1],))
        reader.start()
        sent = server.serve_one()
        reader.join(timeout=5)

    assert sent >= 2
    assert "Client went away" in caplog.text


def test_interval_paces_samples():
    received: list[int] = []
    with CounterServer("127.0.0.1", 0, interval=0.05, count=3) as server:
        reader = threading.Thread(target=read_all, args=(server.address[1], received))
        reader.start()
        started = time.monotonic()
        server.serve_one()
        elapsed = time.monotonic() - started
        reader.join(timeout=5)

    assert received == [1, 2, 3]
    assert elapsed >= 0.1


def test_port_in_use():
    with CounterServer("127.0.0.1", 0) as first:
        with pytest.raises(OSError):
            CounterServer(*first.address)


def test_main_once(free_port, capsys):
    received: list[int] = []

    def reader() -> None:
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            try:
                read_all(free_port, received)
                return
            except ConnectionRefusedError:
                time.sleep(0.05)

    thread = threading.Thread(target=reader)
    thread.start()
    rc = server_mod.main(
        [str(free_port), "--host", "127.0.0.1", "--interval", "0", "--count", "2", "--first", "5", "--once"]
    )
    thread.join(timeout=5)

    assert rc == 0
    assert received == [5, 6]
    assert f"Listening on 127.0.0.1:{free_port}" in capsys.readouterr().out
