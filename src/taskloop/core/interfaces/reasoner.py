"""
Reasoner Protocol

The reasoner is the external oracle (an LLM) that turns conversation context
into a structured response. Implementations must always return an instance of
the requested output shape, or raise ReasonerError.
"""

from typing import Protocol, TypeVar

from pydantic import BaseModel

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class ReasonerProtocol(Protocol):
    """Protocol for structured reasoner calls."""

    async def generate(
        self, messages: list[dict[str, str]], output_schema: type[SchemaT]
    ) -> SchemaT:
        """
        Generate a structured response.

        Args:
            messages: Ordered chat messages with 'role' and 'content'
            output_schema: Pydantic model describing the required shape

        Returns:
            A validated instance of ``output_schema``

        Raises:
            ReasonerError: If the call fails or the output does not validate
        """
        ...
