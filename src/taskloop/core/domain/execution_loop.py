"""
Execution Loop

This module implements the bounded decide-act-observe loop that drives a
session to exactly one termination reason. Each iteration:
1. Polls the interrupt signal and the iteration cap
2. Asks the reasoner for a Decision given the history and latest observation
3. Executes the decision's actions through the tool executor (unless finished)
4. Builds the next observation from the action results
5. Every K iterations asks the governor whether the agent is looping
6. Trips the consecutive-error circuit breaker
7. Asks the governor whether to keep going without the human

The loop is dependency-injected with protocol interfaces and never raises
past run(): reasoner and tool failures become iteration data.
"""

import json
import time
from typing import Any

import structlog

from taskloop.core.domain.errors import ValidationError
from taskloop.core.domain.governor import ContinuationGovernor
from taskloop.core.domain.loop_detection import RepetitionDetector
from taskloop.core.domain.models import (
    Action,
    ActionResult,
    Decision,
    ExecutionResult,
    IterationRecord,
    Session,
    TerminationReason,
    Turn,
    TurnRole,
)
from taskloop.core.domain.scheduler import TaskScheduler
from taskloop.core.interfaces.interrupt import InterruptSignalProtocol
from taskloop.core.interfaces.reasoner import ReasonerProtocol
from taskloop.core.interfaces.tools import ToolExecutorProtocol
from taskloop.core.prompts.loop_prompts import AGENT_SYSTEM_PROMPT, PLANNING_PROMPT
from taskloop.core.schemas import DecisionSchema, PlanningSchema

TOO_MANY_ERRORS = "too many consecutive errors"
NO_ACTIONS_OBSERVATION = "No actions were executed."


class ExecutionLoop:
    """
    Sequential decide-act-observe loop for one session.

    Owns the session's TaskScheduler and RepetitionDetector; create one loop
    per session. Nothing is executed concurrently: every reasoner, tool and
    governor call is awaited before the state machine advances.
    """

    DEFAULT_MAX_ITERATIONS = 50

    def __init__(
        self,
        reasoner: ReasonerProtocol,
        tool_executor: ToolExecutorProtocol,
        scheduler: TaskScheduler | None = None,
        detector: RepetitionDetector | None = None,
        governor: ContinuationGovernor | None = None,
        interrupt: InterruptSignalProtocol | None = None,
        system_prompt: str | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        loop_check_interval: int = 5,
        error_window: int = 3,
        error_threshold: int = 2,
        plan_first: bool = False,
    ):
        """
        Initialize ExecutionLoop with injected dependencies.

        Args:
            reasoner: Protocol for structured reasoner calls
            tool_executor: Protocol for executing tools by name
            scheduler: Task scheduler holding the session's plan
            detector: Repetition detector fed with every executed action
            governor: Continuation governor (built from reasoner and detector
                if not provided)
            interrupt: Polled interrupt signal; None means never interrupted
            system_prompt: Base system prompt (defaults to AGENT_SYSTEM_PROMPT)
            max_iterations: Hard cap on iterations
            loop_check_interval: Run loop detection every K iterations
            error_window: Number of trailing iterations the circuit breaker sees
            error_threshold: Iterations with errors within the window that trip it
            plan_first: Ask the reasoner for an initial plan before iterating
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if loop_check_interval < 1:
            raise ValueError("loop_check_interval must be >= 1")

        self.reasoner = reasoner
        self.tool_executor = tool_executor
        self.scheduler = scheduler or TaskScheduler()
        self.detector = detector or RepetitionDetector()
        self.governor = governor or ContinuationGovernor(reasoner, self.detector)
        self.interrupt = interrupt
        self.system_prompt = system_prompt or AGENT_SYSTEM_PROMPT
        self.max_iterations = max_iterations
        self.loop_check_interval = loop_check_interval
        self.error_window = error_window
        self.error_threshold = error_threshold
        self.plan_first = plan_first
        self.logger = structlog.get_logger().bind(component="execution_loop")

    async def run(
        self, goal: str, session_history: list[dict[str, str]] | None = None
    ) -> ExecutionResult:
        """
        Run the loop for a goal until it terminates.

        Args:
            goal: The user's goal
            session_history: Prior conversation messages ('role'/'content')
                included in every reasoner call

        Returns:
            ExecutionResult with exactly one termination reason and the
            accumulated history. Never raises.
        """
        start_time = time.time()
        session = Session(goal=goal, max_iterations=self.max_iterations)
        prior_messages = [m for m in (session_history or []) if m.get("role") != "system"]
        self.detector.reset()

        self.logger.info("loop_start", goal=goal[:100], max_iterations=self.max_iterations)

        try:
            if self.plan_first:
                await self._initialize_planning(goal)
            await self._run_iterations(session, prior_messages)
        except Exception as e:
            self.logger.error("loop_internal_error", error=str(e), iteration=session.iteration_count)
            session.terminate(TerminationReason.ERROR, f"Internal error: {e}")

        result = self._build_result(session, start_time)
        log = self.logger.error if result.termination_reason == TerminationReason.ERROR else self.logger.info
        log(
            "loop_complete",
            reason=result.termination_reason.value,
            iterations=result.iteration_count,
            error=result.error,
            duration_ms=result.duration_ms,
        )
        return result

    async def _run_iterations(
        self, session: Session, prior_messages: list[dict[str, str]]
    ) -> None:
        observation = f"Task: {session.goal}"

        while session.running:
            if self._interrupted():
                self.logger.info("loop_interrupted", iteration=session.iteration_count)
                session.terminate(TerminationReason.INTERRUPTED)
                break

            if session.iteration_count >= session.max_iterations:
                session.terminate(
                    TerminationReason.TIMEOUT,
                    f"Exceeded maximum iterations ({session.max_iterations})",
                )
                break

            session.iteration_count += 1
            iteration = session.iteration_count
            self.logger.info("loop_iteration", iteration=iteration, max_iterations=session.max_iterations)

            record = await self._execute_iteration(session, iteration, observation, prior_messages)
            session.iterations.append(record)

            if record.decision.finished:
                if record.has_error:
                    session.terminate(TerminationReason.ERROR, record.results[0].error)
                else:
                    session.terminate(TerminationReason.FINISHED)
                break

            if record.interrupted:
                self.logger.info("actions_abandoned", iteration=iteration, executed=len(record.results))
                session.terminate(TerminationReason.INTERRUPTED)
                break

            observation = self._build_observation(record.results)

            if iteration % self.loop_check_interval == 0:
                loop_result = await self.governor.detect_loop(session.history)
                if loop_result.is_loop:
                    session.terminate(
                        TerminationReason.ERROR,
                        loop_result.description or "Repetitive behavior detected",
                    )
                    break

            if self._too_many_errors(session):
                self.logger.error("circuit_breaker_tripped", iteration=iteration)
                session.terminate(TerminationReason.ERROR, TOO_MANY_ERRORS)
                break

            continuation = await self.governor.should_continue(
                record.decision.reasoning, observation
            )
            if not continuation.should_continue:
                self.logger.info("waiting_for_user", iteration=iteration, reason=continuation.reason)
                session.terminate(TerminationReason.WAITING_FOR_USER)
                break

    async def _execute_iteration(
        self,
        session: Session,
        iteration: int,
        observation: str,
        prior_messages: list[dict[str, str]],
    ) -> IterationRecord:
        """Run one decide-act step; any failure becomes a synthetic failed iteration."""
        observed = False
        try:
            messages = self._build_messages(session, observation, prior_messages)
            response = await self.reasoner.generate(messages, DecisionSchema)
            decision = response.to_decision()

            session.history.append(Turn(role=TurnRole.OBSERVATION, content=f"Observation: {observation}"))
            observed = True
            session.history.append(
                Turn(role=TurnRole.DECISION, content=self._render_decision(decision), decision=decision)
            )
            self.logger.debug(
                "decision_received",
                iteration=iteration,
                finished=decision.finished,
                actions=[a.tool for a in decision.actions],
            )

            record = IterationRecord(iteration=iteration, observation=observation, decision=decision)
            if decision.finished:
                return record

            for action in decision.actions:
                if self._interrupted():
                    record.interrupted = True
                    break
                result = await self._execute_action(action)
                self.detector.record(action.tool, action.args)
                record.results.append(result)
            return record

        except Exception as e:
            self.logger.error("iteration_failed", iteration=iteration, error=str(e))
            record = self._failed_iteration(iteration, observation, str(e) or type(e).__name__)
            if not observed:
                session.history.append(
                    Turn(role=TurnRole.OBSERVATION, content=f"Observation: {observation}")
                )
            session.history.append(
                Turn(
                    role=TurnRole.DECISION,
                    content=self._render_decision(record.decision),
                    decision=record.decision,
                )
            )
            return record

    async def _execute_action(self, action: Action) -> ActionResult:
        """Execute one action, converting any raised failure into an error result."""
        start = time.time()
        self.logger.info("tool_execution_start", tool=action.tool)
        try:
            output = await self.tool_executor.execute(action.tool, action.args)
        except Exception as e:
            duration_ms = int((time.time() - start) * 1000)
            self.logger.warning("tool_failed", tool=action.tool, error=str(e))
            return ActionResult(
                tool=action.tool,
                args=action.args,
                error=str(e) or type(e).__name__,
                duration_ms=duration_ms,
            )

        duration_ms = int((time.time() - start) * 1000)
        self.logger.info("tool_execution_end", tool=action.tool, duration_ms=duration_ms)
        return ActionResult(tool=action.tool, args=action.args, result=output, duration_ms=duration_ms)

    def _failed_iteration(self, iteration: int, observation: str, error: str) -> IterationRecord:
        decision = Decision(
            reasoning="error occurred",
            actions=(Action(tool="error"),),
            finished=True,
        )
        return IterationRecord(
            iteration=iteration,
            observation=observation,
            decision=decision,
            results=[ActionResult(tool="error", args={}, error=error)],
        )

    def _build_messages(
        self,
        session: Session,
        observation: str,
        prior_messages: list[dict[str, str]],
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self._build_system_prompt()}]
        messages.extend(prior_messages)
        messages.extend(turn.to_message() for turn in session.history)
        messages.append({"role": "user", "content": f"Current observation: {observation}"})
        return messages

    def _build_system_prompt(self) -> str:
        """Base system prompt plus the current plan, if one exists."""
        if self.scheduler.plan is None:
            return self.system_prompt
        return (
            f"{self.system_prompt}\n\n## CURRENT PLAN STATUS\n"
            "The following plan is currently active. Use it to guide your next steps.\n\n"
            f"{self.scheduler.to_markdown()}"
        )

    @staticmethod
    def _render_decision(decision: Decision) -> str:
        return json.dumps(decision.to_dict(), ensure_ascii=False, indent=2, default=str)

    @staticmethod
    def _build_observation(results: list[ActionResult]) -> str:
        if not results:
            return NO_ACTIONS_OBSERVATION
        return "; ".join(r.summary() for r in results)

    def _too_many_errors(self, session: Session) -> bool:
        recent = session.iterations[-self.error_window:]
        return sum(1 for record in recent if record.has_error) >= self.error_threshold

    def _interrupted(self) -> bool:
        return self.interrupt is not None and self.interrupt.is_interrupted()

    async def _initialize_planning(self, goal: str) -> None:
        """Ask the reasoner for an initial plan; proceed without one on any failure."""
        messages = [
            {"role": "system", "content": PLANNING_PROMPT},
            {"role": "user", "content": goal},
        ]
        try:
            planning = await self.reasoner.generate(messages, PlanningSchema)
        except Exception as e:
            self.logger.warning("planning_failed_proceeding_directly", error=str(e))
            return

        if not planning.needs_planning or not planning.todos:
            self.logger.info("planning_skipped", needs_planning=planning.needs_planning)
            return

        self.scheduler.create_plan(planning.analysis)
        todo_ids: list[str | None] = []
        for planned in planning.todos:
            dependencies = [
                todo_ids[position - 1]
                for position in planned.depends_on
                if 1 <= position <= len(todo_ids) and todo_ids[position - 1]
            ]
            try:
                todo_id = self.scheduler.add_todo(
                    title=planned.title,
                    description=planned.description,
                    priority=planned.priority,
                    estimated_effort=planned.estimated_effort,
                    dependencies=dependencies,
                    context=planned.context,
                )
            except ValidationError as e:
                self.logger.warning("planned_todo_rejected", title=planned.title[:80], error=str(e))
                todo_id = None
            todo_ids.append(todo_id)

        self.logger.info("planning_completed", todos=len(self.scheduler.todos))

    def _build_result(self, session: Session, start_time: float) -> ExecutionResult:
        final_message: str | None = None
        if session.termination_reason == TerminationReason.FINISHED and session.iterations:
            final_message = session.iterations[-1].decision.result

        error = session.error
        if session.termination_reason in (
            TerminationReason.WAITING_FOR_USER,
            TerminationReason.INTERRUPTED,
            TerminationReason.FINISHED,
        ):
            error = None

        return ExecutionResult(
            termination_reason=session.termination_reason,
            history=list(session.history),
            iterations=list(session.iterations),
            iteration_count=session.iteration_count,
            error=error,
            final_message=final_message,
            duration_ms=int((time.time() - start_time) * 1000),
        )

    def describe_state(self) -> dict[str, Any]:
        """Snapshot of plan progress and detector statistics for callers."""
        progress = self.scheduler.get_progress()
        stats = self.detector.get_stats()
        return {
            "plan": self.scheduler.plan.summary if self.scheduler.plan else None,
            "progress": progress.to_dict(),
            "detector": {
                "total_calls": stats.total_calls,
                "unique_tools": stats.unique_tools,
                "most_used_tool": stats.most_used_tool,
            },
        }
