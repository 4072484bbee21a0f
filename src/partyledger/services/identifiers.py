"""Expense identifiers.

An expense id is ``<local_id>:<chunk_id>``. The local id is a ULID: 48 bits of
millisecond timestamp followed by 80 random bits, written as 26 Crockford
base32 characters, so string order follows creation order. The chunk id
suffix names the chunk that stores the expense.
"""

from __future__ import annotations

import secrets
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional, Union

SEPARATOR = ":"
ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
TIME_LEN = 10
RANDOM_LEN = 16
TIME_MAX = (1 << 48) - 1
RANDOM_MAX = (1 << 80) - 1
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Timestamp = Union[datetime, int, None]


class MalformedIdentifier(ValueError):
    pass


class DecodedExpenseId(NamedTuple):
    local_id: str
    chunk_id: str


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, index = divmod(value, 32)
        chars.append(ENCODING[index])
    return "".join(reversed(chars))


def _to_millis(timestamp: Timestamp) -> Optional[int]:
    if timestamp is None:
        return None
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return (timestamp - EPOCH) // timedelta(milliseconds=1)
    return int(timestamp)


class ExpenseIdGenerator:
    """Monotonic ULID source.

    Two ids minted in the same millisecond share the timestamp and the second
    one gets the previous random part plus one.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_random = 0

    def new_local_id(self, timestamp: Timestamp = None) -> str:
        explicit = _to_millis(timestamp)
        with self._lock:
            ms = explicit if explicit is not None else self._clock() // 1_000_000
            if not 0 <= ms <= TIME_MAX:
                raise ValueError(f"timestamp out of range: {ms}")

            if ms == self._last_ms or (explicit is None and ms < self._last_ms):
                if self._last_random >= RANDOM_MAX:
                    raise OverflowError("random component exhausted for this millisecond")
                ms = self._last_ms
                random_part = self._last_random + 1
            else:
                random_part = secrets.randbits(80)

            self._last_ms = ms
            self._last_random = random_part
        return _encode(ms, TIME_LEN) + _encode(random_part, RANDOM_LEN)


_default_generator = ExpenseIdGenerator()


def encode_expense_id(
    chunk_id: str,
    timestamp: Timestamp = None,
    *,
    generator: Optional[ExpenseIdGenerator] = None,
) -> str:
    if not chunk_id or SEPARATOR in chunk_id:
        raise ValueError(f"invalid chunk id: {chunk_id!r}")
    local_id = (generator or _default_generator).new_local_id(timestamp)
    return f"{local_id}{SEPARATOR}{chunk_id}"


def decode_expense_id(expense_id: str) -> DecodedExpenseId:
    local_id, separator, chunk_id = expense_id.partition(SEPARATOR)
    if not separator or not local_id or not chunk_id:
        raise MalformedIdentifier(f"expense id without chunk reference: {expense_id!r}")
    return DecodedExpenseId(local_id=local_id, chunk_id=chunk_id)


def expense_timestamp(expense_id: str) -> datetime:
    local_id = decode_expense_id(expense_id).local_id
    ms = 0
    for char in local_id[:TIME_LEN].upper():
        index = ENCODING.find(char)
        if index < 0:
            raise MalformedIdentifier(f"not a time-sortable id: {expense_id!r}")
        ms = ms * 32 + index
    return EPOCH + timedelta(milliseconds=ms)
