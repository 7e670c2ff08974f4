"""
Application Layer - Loop Factory

Wires the core domain objects (scheduler, detector, governor, execution loop)
with infrastructure adapters (LiteLLM reasoner, tool registry, interrupt
service) based on LoopSettings.

Each call to create_loop() builds fresh per-session state: a new scheduler,
a new detector and a registry holding a todo_manager bound to that scheduler.
"""

import structlog

from taskloop.application.settings import LoopSettings
from taskloop.core.domain.execution_loop import ExecutionLoop
from taskloop.core.domain.governor import ContinuationGovernor
from taskloop.core.domain.loop_detection import RepetitionDetector
from taskloop.core.domain.scheduler import TaskScheduler
from taskloop.core.interfaces.interrupt import InterruptSignalProtocol
from taskloop.core.interfaces.reasoner import ReasonerProtocol
from taskloop.core.interfaces.tools import ToolProtocol
from taskloop.core.prompts.loop_prompts import AGENT_SYSTEM_PROMPT
from taskloop.core.tools.todo_tool import TodoManagerTool
from taskloop.infrastructure.llm.litellm_reasoner import LiteLLMReasoner
from taskloop.infrastructure.tools.registry import ToolRegistry


class LoopFactory:
    """
    Factory for creating execution loops with dependency injection.
    """

    def __init__(self, settings: LoopSettings | None = None):
        self.settings = settings or LoopSettings()
        self.logger = structlog.get_logger().bind(component="loop_factory")

    def create_reasoner(self) -> ReasonerProtocol:
        return LiteLLMReasoner(model=self.settings.model, temperature=self.settings.temperature)

    def create_loop(
        self,
        reasoner: ReasonerProtocol | None = None,
        tools: list[ToolProtocol] | None = None,
        interrupt: InterruptSignalProtocol | None = None,
    ) -> ExecutionLoop:
        """
        Create an execution loop for one session.

        Args:
            reasoner: Reasoner to use; a LiteLLMReasoner from settings if None
            tools: Extra tools registered next to todo_manager
            interrupt: Interrupt signal polled by the loop

        Returns:
            ExecutionLoop ready to run()
        """
        settings = self.settings
        reasoner = reasoner or self.create_reasoner()

        scheduler = TaskScheduler()
        detector = RepetitionDetector(settings.detector_config())
        governor = ContinuationGovernor(
            reasoner, detector, soft_loop_check=settings.soft_loop_check
        )

        registry = ToolRegistry([TodoManagerTool(scheduler)])
        for tool in tools or []:
            registry.register(tool)

        system_prompt = f"{AGENT_SYSTEM_PROMPT}\n## AVAILABLE TOOLS\n\n{registry.describe()}"

        self.logger.info(
            "loop_created",
            model=settings.model,
            tools=sorted(registry.tools),
            max_iterations=settings.max_iterations,
            plan_first=settings.plan_first,
        )

        return ExecutionLoop(
            reasoner=reasoner,
            tool_executor=registry,
            scheduler=scheduler,
            detector=detector,
            governor=governor,
            interrupt=interrupt,
            system_prompt=system_prompt,
            max_iterations=settings.max_iterations,
            loop_check_interval=settings.loop_check_interval,
            error_window=settings.error_window,
            error_threshold=settings.error_threshold,
            plan_first=settings.plan_first,
        )
