"""
Reasoner Response Schemas

Pydantic models describing the structured output the reasoner must produce
for each kind of call. Each schema converts into the corresponding domain
model.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from taskloop.core.domain.models import (
    Action,
    ContinuationDecision,
    Decision,
    LoopDetectionResult,
)


class ActionSchema(BaseModel):
    tool: str = Field(..., min_length=1, description="Name of the tool to be invoked")
    args: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


class DecisionSchema(BaseModel):
    """One iteration's decision."""

    reasoning: str = Field(..., description="Why these actions were chosen")
    actions: list[ActionSchema] = Field(
        default_factory=list, description="Tools to invoke, in order. Empty when finished."
    )
    finished: bool = Field(False, description="True when the task is complete")
    result: str | None = Field(None, description="Final result summary when finished")

    def to_decision(self) -> Decision:
        return Decision(
            reasoning=self.reasoning,
            actions=tuple(Action(tool=a.tool, args=dict(a.args)) for a in self.actions),
            finished=self.finished,
            result=self.result,
        )


class PlannedTodo(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    priority: Literal["high", "medium", "low"] = "medium"
    estimated_effort: int = Field(3, ge=1, le=10)
    depends_on: list[int] = Field(
        default_factory=list,
        description="1-based positions of earlier todos in this list that must complete first",
    )
    context: Any = None


class PlanningSchema(BaseModel):
    analysis: str = Field(..., description="Analysis of the task complexity and requirements")
    approach: str = Field("", description="Overall approach to solve this task")
    todos: list[PlannedTodo] = Field(default_factory=list)
    needs_planning: bool = Field(
        True, description="Whether this task requires structured planning with todos"
    )


class ContinuationSchema(BaseModel):
    should_continue: bool
    reason: str = ""
    confidence: int = Field(0, ge=0, le=100)

    def to_decision(self) -> ContinuationDecision:
        return ContinuationDecision(
            should_continue=self.should_continue,
            reason=self.reason,
            confidence=self.confidence,
        )


class LoopJudgementSchema(BaseModel):
    is_loop: bool
    confidence: int = Field(0, ge=0, le=100)
    description: str | None = None

    def to_result(self) -> LoopDetectionResult:
        return LoopDetectionResult(
            is_loop=self.is_loop,
            confidence=self.confidence,
            description=self.description,
            loop_type="judgement" if self.is_loop else None,
        )
