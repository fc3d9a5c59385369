import socket
import struct
from logging import warning

from .errors import ReadError

# Host byte order, 4-byte signed int (what a C `int` is on the paired server)
SAMPLE_FORMAT = "=i"
SAMPLE_SIZE = struct.calcsize(SAMPLE_FORMAT)

DEFAULT_PORT = 8080
DEFAULT_INTERVAL = 1.0

BUFFER_SIZE = 2 ** 13

CLIENT_ERROR_MARKER = "CLIENT_ERROR: Failed to read from socket."
CLIENT_PREFIX = "Client <- Server:"
SERVER_PREFIX = "Server -> Client:"


def encode_sample(value: int) -> bytes:
    try:
        return struct.pack(SAMPLE_FORMAT, value)
    except struct.error as e:
        raise ValueError(f"Sample {value} does not fit in {SAMPLE_SIZE} bytes") from e


def decode_sample(data: bytes) -> int:
    return struct.unpack(SAMPLE_FORMAT, data)[0]


# Receives **exactly** `length` bytes from the socket
def socket_receive(sock: socket.socket, length: int) -> bytes:
    chunks = []
    received_cnt = 0
    while received_cnt < length:
        try:
            chunk = sock.recv(min(length - received_cnt, BUFFER_SIZE))
        except OSError as e:
            raise ReadError(str(e)) from e
        if chunk == b'':
            if received_cnt > 0:
                warning(f"Stream closed after {received_cnt} of {length} bytes")
            raise ReadError("connection closed by peer")
        chunks.append(chunk)
        received_cnt = received_cnt + len(chunk)
    return b''.join(chunks)


def recv_sample(sock: socket.socket) -> int:
    return decode_sample(socket_receive(sock, SAMPLE_SIZE))
