import re
from typing import Optional

from .common import CLIENT_ERROR_MARKER, SAMPLE_SIZE

_INT_RE = re.compile(r"[+-]?[0-9]+")
_SAMPLE_MIN = -(1 << (SAMPLE_SIZE * 8 - 1))
_SAMPLE_MAX = (1 << (SAMPLE_SIZE * 8 - 1)) - 1


def _parse_sample(token: str) -> Optional[int]:
    if _INT_RE.fullmatch(token) is None:
        return None
    value = int(token)
    if not _SAMPLE_MIN <= value <= _SAMPLE_MAX:
        return None
    return value


# Counter lines look like "Client <- Server: 42", the value is the last token
def last_counter(logs: str, pattern: str) -> Optional[int]:
    for line in reversed(logs.splitlines()):
        if pattern in line:
            parts = line.split()
            if len(parts) == 0:
                return None
            return _parse_sample(parts[-1])
    return None


def has_client_error(logs: str) -> bool:
    return CLIENT_ERROR_MARKER in logs


def counter_advanced(before: str, after: str, pattern: str, min_delta: int = 2) -> bool:
    old = last_counter(before, pattern)
    new = last_counter(after, pattern)
    if old is None or new is None:
        return False
    return new >= old + min_delta
