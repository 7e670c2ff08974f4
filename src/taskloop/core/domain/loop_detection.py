"""
Repetition Detector

Deterministic sequence-pattern analyzer over a bounded window of tool
invocations. Flags an agent that is stalled or looping so the execution loop
can stop instead of burning iterations.

Checks run in order and short-circuit on the first positive:
1. exact_repeat        - same (tool, parameters) N times in a row at the tail
2. alternating_pattern - A, B, A, B, ... at the tail
3. parameter_cycle     - same tool oscillating over a small set of inputs
4. tool_sequence       - a 3-call sequence repeated back to back
"""

import dataclasses
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from taskloop.core.domain.history import InvocationHistory, InvocationRecord
from taskloop.core.domain.models import LoopDetectionResult

# A parameter value seen this often within the window counts as cycling.
PARAMETER_REPEAT_MINIMUM = 3
# Period-2 repeats are alternations and belong to the alternating check.
TOOL_SEQUENCE_LENGTHS = (3,)
TOOL_SEQUENCE_MIN_HISTORY = 6

CONFIDENCE = {
    "exact_repeat": 95,
    "alternating_pattern": 85,
    "tool_sequence": 80,
    "parameter_cycle": 70,
}


@dataclass(frozen=True)
class DetectorConfig:
    """
    Thresholds for the repetition detector.

    Attributes:
        max_history_size: Maximum number of records kept in the window
        exact_repeat_threshold: Consecutive identical calls that form a loop
        alternating_pattern_threshold: Length of an A,B,A,B tail that forms a loop
        parameter_cycle_threshold: Same-tool calls needed before cycling is checked
        time_window_ms: Records older than this are evicted on insert
    """

    max_history_size: int = 20
    exact_repeat_threshold: int = 3
    alternating_pattern_threshold: int = 4
    parameter_cycle_threshold: int = 5
    time_window_ms: int = 30000

    def __post_init__(self) -> None:
        if self.max_history_size < 1:
            raise ValueError("max_history_size must be >= 1")
        for name in (
            "exact_repeat_threshold",
            "alternating_pattern_threshold",
            "parameter_cycle_threshold",
        ):
            if getattr(self, name) < 2:
                raise ValueError(f"{name} must be >= 2")
        if self.time_window_ms <= 0:
            raise ValueError("time_window_ms must be > 0")


@dataclass
class DetectorStats:
    total_calls: int
    unique_tools: int
    most_used_tool: str | None
    recent_timespan_ms: int


class RepetitionDetector:
    """
    Detects repetitive tool invocation patterns.

    The detector holds no state beyond its bounded InvocationHistory, which is
    cleared on demand via reset().

    Example:
        >>> detector = RepetitionDetector()
        >>> result = detector.add_and_check("shell", {"command": "git status"})
        >>> if result.is_loop:
        ...     print(result.description)
    """

    def __init__(
        self,
        config: DetectorConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or DetectorConfig()
        self._clock = clock
        self.history = InvocationHistory(
            max_size=self.config.max_history_size,
            time_window_ms=self.config.time_window_ms,
            clock=clock,
        )
        self.logger = structlog.get_logger().bind(component="repetition_detector")

    def add_and_check(self, tool_name: str, parameters: Any) -> LoopDetectionResult:
        """Record a tool invocation and check the window for loops."""
        self.record(tool_name, parameters)
        return self.check()

    def record(self, tool_name: str, parameters: Any) -> InvocationRecord:
        """Record a tool invocation without checking."""
        return self.history.append(tool_name, parameters)

    def check(self) -> LoopDetectionResult:
        """Run all pattern checks over the current window."""
        records = self.history.records()
        if len(records) < 2:
            return LoopDetectionResult(is_loop=False)

        for detect in (
            self._detect_exact_repeat,
            self._detect_alternating_pattern,
            self._detect_parameter_cycle,
            self._detect_tool_sequence,
        ):
            result = detect(records)
            if result.is_loop:
                self.logger.warning(
                    "loop_detected",
                    loop_type=result.loop_type,
                    loop_length=result.loop_length,
                    description=result.description,
                )
                return result

        return LoopDetectionResult(is_loop=False)

    def _detect_exact_repeat(self, records: list[InvocationRecord]) -> LoopDetectionResult:
        threshold = self.config.exact_repeat_threshold
        if len(records) < threshold:
            return LoopDetectionResult(is_loop=False)

        last = records[-1]
        repeat_count = 1
        for record in reversed(records[:-1]):
            if record.signature != last.signature:
                break
            repeat_count += 1

        if repeat_count < threshold:
            return LoopDetectionResult(is_loop=False)

        return LoopDetectionResult(
            is_loop=True,
            confidence=CONFIDENCE["exact_repeat"],
            loop_type="exact_repeat",
            loop_length=repeat_count,
            loop_start=len(records) - repeat_count,
            description=(
                f"Exact repeat: tool '{last.tool_name}' was called {repeat_count} times "
                "in a row with identical parameters"
            ),
            suggestion=(
                "Stop repeating the call. Inspect the previous result or try a "
                "different tool or parameters."
            ),
        )

    def _detect_alternating_pattern(self, records: list[InvocationRecord]) -> LoopDetectionResult:
        threshold = self.config.alternating_pattern_threshold
        if len(records) < threshold:
            return LoopDetectionResult(is_loop=False)

        tail = records[-threshold:]
        first, second = tail[0].signature, tail[1].signature
        if first == second:
            return LoopDetectionResult(is_loop=False)

        for index, record in enumerate(tail):
            expected = first if index % 2 == 0 else second
            if record.signature != expected:
                return LoopDetectionResult(is_loop=False)

        return LoopDetectionResult(
            is_loop=True,
            confidence=CONFIDENCE["alternating_pattern"],
            loop_type="alternating_pattern",
            loop_length=threshold,
            loop_start=len(records) - threshold,
            description=(
                f"Alternating pattern: '{tail[0].tool_name}' and '{tail[1].tool_name}' "
                f"alternated {threshold} times with the same parameters"
            ),
            suggestion=(
                "The two calls may be undoing each other. Check their ordering or "
                "try a different tool or parameters."
            ),
        )

    def _detect_parameter_cycle(self, records: list[InvocationRecord]) -> LoopDetectionResult:
        threshold = self.config.parameter_cycle_threshold
        if len(records) < threshold:
            return LoopDetectionResult(is_loop=False)

        last = records[-1]
        same_tool = [
            r for r in records[-threshold * 2:] if r.tool_name == last.tool_name
        ]
        if len(same_tool) < threshold:
            return LoopDetectionResult(is_loop=False)

        counts = Counter(r.parameters for r in same_tool)
        # A single value is an exact repeat; a value seen once more is exploration.
        if len(counts) < 2 or counts[last.parameters] < 2:
            return LoopDetectionResult(is_loop=False)
        if max(counts.values()) < PARAMETER_REPEAT_MINIMUM:
            return LoopDetectionResult(is_loop=False)

        return LoopDetectionResult(
            is_loop=True,
            confidence=CONFIDENCE["parameter_cycle"],
            loop_type="parameter_cycle",
            loop_length=len(same_tool),
            loop_start=len(records) - len(records[-threshold * 2:]),
            description=(
                f"Parameter cycle: tool '{last.tool_name}' cycled over {len(counts)} "
                f"parameter sets in its last {len(same_tool)} calls"
            ),
            suggestion=(
                "Changing parameters is not making progress. Re-check how the "
                "parameters are chosen or try a different tool."
            ),
        )

    def _detect_tool_sequence(self, records: list[InvocationRecord]) -> LoopDetectionResult:
        if len(records) < TOOL_SEQUENCE_MIN_HISTORY:
            return LoopDetectionResult(is_loop=False)

        for length in TOOL_SEQUENCE_LENGTHS:
            recent = records[-length * 2:]
            first_half = [r.signature for r in recent[:length]]
            second_half = [r.signature for r in recent[length:]]
            if len(set(first_half)) < 2 or first_half != second_half:
                continue

            sequence = " -> ".join(r.tool_name for r in recent[:length])
            return LoopDetectionResult(
                is_loop=True,
                confidence=CONFIDENCE["tool_sequence"],
                loop_type="tool_sequence",
                loop_length=length,
                loop_start=len(records) - length * 2,
                description=f"Tool sequence loop: [{sequence}] was repeated",
                suggestion=(
                    "The same sequence of calls is repeating. Try a different "
                    "approach or ask the user for guidance."
                ),
            )

        return LoopDetectionResult(is_loop=False)

    def reset(self) -> None:
        self.history.clear()

    def get_history(self) -> list[InvocationRecord]:
        return self.history.records()

    def get_stats(self) -> DetectorStats:
        records = self.history.records()
        counts = Counter(r.tool_name for r in records)
        most_used = counts.most_common(1)[0][0] if counts else None
        timespan = int((self._clock() - records[0].timestamp) * 1000) if records else 0
        return DetectorStats(
            total_calls=len(records),
            unique_tools=len(counts),
            most_used_tool=most_used,
            recent_timespan_ms=timespan,
        )

    def get_config(self) -> DetectorConfig:
        return self.config

    def update_config(self, **changes: Any) -> DetectorConfig:
        """Replace individual thresholds; buffer bounds apply on the next insert."""
        self.config = dataclasses.replace(self.config, **changes)
        self.history.max_size = self.config.max_history_size
        self.history.time_window_ms = self.config.time_window_ms
        return self.config
