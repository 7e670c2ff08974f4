"""
Core Domain Models

This module defines the data models shared by the execution loop, the task
scheduler and the repetition detector. These models represent one run of the
decide-act-observe loop: the decisions produced by the reasoner, the actions
executed on its behalf and the outcome that ends the run.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TerminationReason(str, Enum):
    """Single outcome code ending a session's execution loop."""

    NONE = "none"
    FINISHED = "finished"
    INTERRUPTED = "interrupted"
    ERROR = "error"
    TIMEOUT = "timeout"
    WAITING_FOR_USER = "waiting_for_user"


class TurnRole(str, Enum):
    """Origin of a turn: the environment or the reasoner."""

    OBSERVATION = "observation"
    DECISION = "decision"


@dataclass(frozen=True)
class Action:
    """
    A tool invocation requested by the reasoner.

    Attributes:
        tool: Name of the tool to execute
        args: Keyword arguments passed to the tool
    """

    tool: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionResult:
    """
    Outcome of executing one Action.

    Exactly one of ``result`` or ``error`` is set after execution. Errors are
    data at this layer: a failing tool never raises into the loop.
    """

    tool: str
    args: dict[str, Any]
    result: Any = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def failed(self) -> bool:
        return self.error is not None

    def summary(self) -> str:
        """Render as ``"{tool}: {result|error}"`` for the next observation."""
        if self.failed:
            return f"{self.tool}: {self.error}"
        if isinstance(self.result, str):
            return f"{self.tool}: {self.result}"
        try:
            return f"{self.tool}: {json.dumps(self.result, ensure_ascii=False, default=str)}"
        except (TypeError, ValueError):
            return f"{self.tool}: {self.result}"


@dataclass(frozen=True)
class Decision:
    """
    Structured reasoner output for one iteration.

    If ``finished`` is true the actions are never executed, even if present.

    Attributes:
        reasoning: The reasoner's explanation for this step
        actions: Ordered tool invocations to perform (possibly empty)
        finished: Whether the goal is accomplished
        result: Final summary when finished
    """

    reasoning: str
    actions: tuple[Action, ...] = ()
    finished: bool = False
    result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reasoning": self.reasoning,
            "actions": [{"tool": a.tool, "args": a.args} for a in self.actions],
            "finished": self.finished,
            "result": self.result,
        }


@dataclass
class Turn:
    """
    One recorded exchange in the session history.

    Observation turns carry environment output; decision turns carry the
    reasoner's structured decision as well as its JSON rendering in ``content``.
    """

    role: TurnRole
    content: str
    decision: Decision | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_message(self) -> dict[str, str]:
        """Convert to a chat message for the reasoner context."""
        role = "assistant" if self.role == TurnRole.DECISION else "user"
        return {"role": role, "content": self.content}


@dataclass
class IterationRecord:
    """
    Bookkeeping for one loop iteration.

    ``interrupted`` marks an action list abandoned part-way because the
    interrupt signal was raised; actions executed before that keep their
    results.
    """

    iteration: int
    observation: str
    decision: Decision
    results: list[ActionResult] = field(default_factory=list)
    interrupted: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def has_error(self) -> bool:
        return any(r.failed for r in self.results)


@dataclass
class Session:
    """
    One run of the loop for one user goal.

    Created at task start, mutated once per iteration and discarded at the end
    of the run. ``termination_reason`` stays NONE while running and is set
    exactly once.
    """

    goal: str
    max_iterations: int
    iteration_count: int = 0
    history: list[Turn] = field(default_factory=list)
    iterations: list[IterationRecord] = field(default_factory=list)
    termination_reason: TerminationReason = TerminationReason.NONE
    error: str | None = None

    @property
    def running(self) -> bool:
        return self.termination_reason == TerminationReason.NONE

    def terminate(self, reason: TerminationReason, error: str | None = None) -> None:
        if not self.running:
            return
        self.termination_reason = reason
        self.error = error


@dataclass
class LoopDetectionResult:
    """
    Verdict of a repetition check. Not persisted, recomputed on each check.

    Attributes:
        is_loop: Whether repetitive behaviour was found
        confidence: 0..100
        description: Human-readable explanation of the pattern
        suggestion: Advice for breaking out of the pattern
        loop_type: exact_repeat | alternating_pattern | parameter_cycle |
            tool_sequence | judgement
        loop_length: Number of repetitions or sequence length
        loop_start: Index in the history window where the pattern starts
    """

    is_loop: bool
    confidence: int = 0
    description: str | None = None
    suggestion: str | None = None
    loop_type: str | None = None
    loop_length: int | None = None
    loop_start: int | None = None


@dataclass
class ContinuationDecision:
    """Whether the agent should act again without waiting for the human."""

    should_continue: bool
    reason: str
    confidence: int = 0


@dataclass
class ExecutionResult:
    """
    Result of one execution loop run.

    Attributes:
        termination_reason: The single outcome code for the run
        history: All observation/decision turns recorded during the run
        iterations: Per-iteration records (decision, executed actions)
        iteration_count: Number of iterations started
        error: Description for ERROR and TIMEOUT terminations
        final_message: Reasoner's final result when FINISHED
        duration_ms: Wall-clock duration of the run
    """

    termination_reason: TerminationReason
    history: list[Turn] = field(default_factory=list)
    iterations: list[IterationRecord] = field(default_factory=list)
    iteration_count: int = 0
    error: str | None = None
    final_message: str | None = None
    duration_ms: int = 0
