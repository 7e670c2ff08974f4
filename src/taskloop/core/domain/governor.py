"""
Continuation Governor

Answers two independent questions for the execution loop:
- "is the agent stuck?" via the deterministic repetition detector, optionally
  backed by a soft judgement from the reasoner
- "should the agent act again without waiting for the human?" via the reasoner

Both judgements fail safe: a failed continuation check means "do not
continue" and a failed soft loop judgement means "no loop".
"""

import structlog

from taskloop.core.domain.loop_detection import RepetitionDetector
from taskloop.core.domain.models import (
    ContinuationDecision,
    LoopDetectionResult,
    Turn,
    TurnRole,
)
from taskloop.core.interfaces.reasoner import ReasonerProtocol
from taskloop.core.prompts.loop_prompts import CONTINUATION_PROMPT, LOOP_JUDGEMENT_PROMPT
from taskloop.core.schemas import ContinuationSchema, LoopJudgementSchema

JUDGEMENT_MIN_TURNS = 8
JUDGEMENT_MIN_DECISIONS = 3
JUDGEMENT_WINDOW = 4


class ContinuationGovernor:
    def __init__(
        self,
        reasoner: ReasonerProtocol,
        detector: RepetitionDetector,
        soft_loop_check: bool = False,
    ):
        self.reasoner = reasoner
        self.detector = detector
        self.soft_loop_check = soft_loop_check
        self.logger = structlog.get_logger().bind(component="continuation_governor")

    async def detect_loop(self, history: list[Turn]) -> LoopDetectionResult:
        """Check the invocation window, then optionally ask the reasoner."""
        result = self.detector.check()
        if result.is_loop or not self.soft_loop_check:
            return result
        return await self._judge_loop(history)

    async def _judge_loop(self, history: list[Turn]) -> LoopDetectionResult:
        if len(history) < JUDGEMENT_MIN_TURNS:
            return LoopDetectionResult(is_loop=False)

        decisions = [t for t in history if t.role == TurnRole.DECISION][-JUDGEMENT_WINDOW:]
        if len(decisions) < JUDGEMENT_MIN_DECISIONS:
            return LoopDetectionResult(is_loop=False)

        history_text = "\n---\n".join(
            f"Response {i}: {turn.content}" for i, turn in enumerate(decisions, start=1)
        )
        messages = [
            {"role": "system", "content": LOOP_JUDGEMENT_PROMPT},
            {"role": "user", "content": f"Recent assistant responses:\n{history_text}"},
        ]
        try:
            judgement = await self.reasoner.generate(messages, LoopJudgementSchema)
            result = judgement.to_result()
        except Exception as e:
            self.logger.warning("loop_judgement_failed", error=str(e))
            return LoopDetectionResult(
                is_loop=False, confidence=0, description="Loop judgement failed"
            )

        self.logger.info(
            "loop_judgement", is_loop=result.is_loop, confidence=result.confidence
        )
        return result

    async def should_continue(
        self, last_reasoning: str, observation: str
    ) -> ContinuationDecision:
        """
        Decide whether the agent should act again without human input.

        Args:
            last_reasoning: Reasoning text of the last decision
            observation: The latest observation built from executed actions

        Returns:
            ContinuationDecision; any failure yields should_continue=False.
        """
        messages = [
            {"role": "system", "content": CONTINUATION_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Last assistant response:\n{last_reasoning}\n\n"
                    f"Latest observation:\n{observation}"
                ),
            },
        ]
        try:
            response = await self.reasoner.generate(messages, ContinuationSchema)
            decision = response.to_decision()
        except Exception as e:
            self.logger.warning("continuation_check_failed", error=str(e))
            return ContinuationDecision(
                should_continue=False,
                reason=f"Continuation check failed: {e}",
                confidence=0,
            )

        self.logger.debug(
            "continuation_decided",
            should_continue=decision.should_continue,
            reason=decision.reason[:100],
        )
        return decision
