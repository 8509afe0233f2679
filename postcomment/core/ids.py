"""64-bit time-ordered identifiers.

Layout (Snowflake): 41 bits of milliseconds since ``EPOCH_MS``, 10 bits of
worker id, 12 bits of per-millisecond sequence. Ids produced by one worker are
strictly increasing, and ``id`` order agrees with creation time order.
"""

import threading
import time
from datetime import UTC, datetime


EPOCH_MS = 1704067200000  # 2024-01-01T00:00:00Z

WORKER_BITS = 10
SEQUENCE_BITS = 12
MAX_WORKER_ID = (1 << WORKER_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1

# Reserved "no reference yet" cursor: the largest signed 64-bit value.
MAX_ID = (1 << 63) - 1


class SnowflakeIdGenerator:
    """Thread-safe Snowflake id generator."""

    def __init__(self, worker_id: int = 1):
        self.worker_id = _checked(worker_id)
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> int:
        """Return the next id."""
        with self._lock:
            now = _now_ms()
            if now < self._last_ms:
                # Clock moved backwards; keep issuing from the last timestamp.
                now = self._last_ms
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & SEQUENCE_MASK
                if self._sequence == 0:
                    while now <= self._last_ms:
                        now = _now_ms()
            else:
                self._sequence = 0
            self._last_ms = now
            return (
                ((now - EPOCH_MS) << (WORKER_BITS + SEQUENCE_BITS))
                | (self.worker_id << SEQUENCE_BITS)
                | self._sequence
            )

    def reassign(self, worker_id: int) -> None:
        """Switch to another worker id, e.g. after a lease was lost."""
        with self._lock:
            self.worker_id = _checked(worker_id)


def _checked(worker_id: int) -> int:
    if not 0 <= worker_id <= MAX_WORKER_ID:
        msg = f"worker_id must be within 0..{MAX_WORKER_ID}"
        raise ValueError(msg)
    return worker_id


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def utc_now_ms() -> datetime:
    """Current UTC time truncated to millisecond precision.

    The store keeps millisecond timestamps; truncating on creation keeps the
    in-memory value equal to what a later read returns.
    """
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)
