"""
Invocation History Buffer

Append-only, size-bounded, time-windowed log of tool invocations consumed by
the repetition detector. Both bounds are enforced on insert, oldest first.
"""

import json
import time
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class InvocationRecord:
    """
    A single recorded tool invocation.

    Attributes:
        tool_name: Name of the invoked tool
        parameters: Canonical serialization of the arguments (stable key order)
        timestamp: Seconds since the epoch at insertion time
        sequence: Monotonic insertion counter
    """

    tool_name: str
    parameters: str
    timestamp: float
    sequence: int

    @property
    def signature(self) -> tuple[str, str]:
        return (self.tool_name, self.parameters)


def normalize_parameters(parameters: Any) -> str:
    """Serialize parameters to a canonical string for comparison.

    Strings pass through unchanged; mappings are dumped with sorted keys at
    every nesting level. Values that cannot be JSON encoded fall back to str().
    """
    if isinstance(parameters, str):
        return parameters
    try:
        return json.dumps(parameters, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(parameters)


class InvocationHistory:
    """Bounded window of InvocationRecords."""

    def __init__(
        self,
        max_size: int = 20,
        time_window_ms: int = 30000,
        clock: Callable[[], float] = time.time,
    ):
        self.max_size = max_size
        self.time_window_ms = time_window_ms
        self._clock = clock
        self._records: deque[InvocationRecord] = deque()
        self._sequence = 0

    def append(self, tool_name: str, parameters: Any) -> InvocationRecord:
        """Normalize and append an invocation, then evict by age and size."""
        now = self._clock()
        self._sequence += 1
        record = InvocationRecord(
            tool_name=tool_name,
            parameters=normalize_parameters(parameters),
            timestamp=now,
            sequence=self._sequence,
        )
        self._records.append(record)
        self._evict(now)
        return record

    def _evict(self, now: float) -> None:
        cutoff = now - self.time_window_ms / 1000.0
        while self._records and self._records[0].timestamp < cutoff:
            self._records.popleft()
        while len(self._records) > self.max_size:
            self._records.popleft()

    def records(self) -> list[InvocationRecord]:
        return list(self._records)

    def tail(self, count: int) -> list[InvocationRecord]:
        if count <= 0:
            return []
        return list(self._records)[-count:]

    def clear(self) -> None:
        self._records.clear()
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[InvocationRecord]:
        return iter(list(self._records))
