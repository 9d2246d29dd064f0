"""Snowflake-style ID generator for prefix-tagged business IDs.

IDs look like ``req_0098765432101234567``: the prefix names the entity type,
the numeric part is a zero-padded 19-digit value, monotonically increasing
within a process so that ``ORDER BY id DESC`` gives newest-first within one
prefix. Workers sharing a database must run with distinct ID_MACHINE_ID
values.
"""

import threading
import time

from config.settings import settings
from src.tak_common.enums import IdPrefix


class SnowflakeIdGenerator:
    """Layout (63 bits used):

      - 41 bits: milliseconds since _EPOCH_MS
      - 10 bits: machine_id (0-1023)
      - 12 bits: sequence (0-4095 per millisecond)

    A clock that steps backwards is treated as standing still, so IDs never
    decrease within a process.
    """

    _EPOCH_MS = 1_700_000_000_000
    _MACHINE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, machine_id: int = 0) -> None:
        if not 0 <= machine_id < (1 << self._MACHINE_BITS):
            raise ValueError(f"machine_id must be 0-{(1 << self._MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._last_ms = -1
        self._sequence = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = max(time.time_ns() // 1_000_000, self._last_ms)
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    # Sequence exhausted for this millisecond
                    while now_ms <= self._last_ms:
                        now_ms = time.time_ns() // 1_000_000
            else:
                self._sequence = 0
            self._last_ms = now_ms
            value = (
                (now_ms - self._EPOCH_MS) << (self._MACHINE_BITS + self._SEQUENCE_BITS)
                | self._machine_id << self._SEQUENCE_BITS
                | self._sequence
            )
        # Fixed width keeps text order equal to numeric order
        return f"{value:019d}"


_default_generator = SnowflakeIdGenerator(settings.ID_MACHINE_ID)


def generate_id(prefix: IdPrefix) -> str:
    """Generate a prefix-tagged ID, e.g. ``generate_id(IdPrefix.DEAL) -> 'deal_...'``."""
    return f"{prefix.value}_{_default_generator.next_id()}"
