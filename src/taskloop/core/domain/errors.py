"""
Domain Errors

Scheduler misuse (ValidationError, NotFoundError) is raised to the caller.
Tool and reasoner failures (ToolExecutionError, ReasonerError) are raised by
adapters and absorbed by the execution loop into iteration data.
"""


class TaskloopError(Exception):
    """Base class for all taskloop errors."""


class ValidationError(TaskloopError):
    """Invalid input to the task scheduler (e.g. empty title)."""


class NotFoundError(TaskloopError):
    """Unknown todo id."""

    def __init__(self, todo_id: str):
        super().__init__(f"Todo with ID {todo_id} not found")
        self.todo_id = todo_id


class ToolExecutionError(TaskloopError):
    """A tool could not be resolved or raised during execution."""

    def __init__(self, tool: str, message: str):
        super().__init__(message)
        self.tool = tool


class ReasonerError(TaskloopError):
    """The reasoner call failed or returned output not matching the schema."""
