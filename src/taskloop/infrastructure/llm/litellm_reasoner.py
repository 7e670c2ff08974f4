"""
LiteLLM Reasoner

ReasonerProtocol implementation backed by LiteLLM. Every call asks the model
for a JSON object and validates it against the requested pydantic schema.
Transport failures, empty replies and schema violations all surface as
ReasonerError after the retry policy is exhausted.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import litellm
import structlog
from pydantic import BaseModel, ValidationError

from taskloop.core.domain.errors import ReasonerError


@dataclass
class RetryPolicy:
    """Retry policy for transient LLM failures."""

    max_attempts: int = 3
    backoff_multiplier: float = 2.0
    timeout: int = 60
    retry_on_errors: list[str] = field(
        default_factory=lambda: ["RateLimitError", "Timeout", "APIConnectionError"]
    )


class LiteLLMReasoner:
    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        retry_policy: RetryPolicy | None = None,
        **params: Any,
    ):
        self.model = model
        self.temperature = temperature
        self.retry_policy = retry_policy or RetryPolicy()
        self.params = params
        self.logger = structlog.get_logger().bind(component="litellm_reasoner")

    async def generate(
        self, messages: list[dict[str, Any]], output_schema: type[BaseModel]
    ) -> BaseModel:
        """
        Ask the model for a structured response.

        Args:
            messages: Chat messages with 'role' and 'content'
            output_schema: Pydantic model the JSON reply must satisfy

        Returns:
            An instance of ``output_schema``

        Raises:
            ReasonerError: If the call fails or the reply does not validate
        """
        content = await self._complete(messages)
        if not content or not content.strip():
            raise ReasonerError("Reasoner returned an empty response")

        try:
            return output_schema.model_validate_json(_strip_code_fence(content))
        except ValidationError as e:
            self.logger.warning(
                "reasoner_invalid_response",
                schema=output_schema.__name__,
                error=str(e)[:200],
            )
            raise ReasonerError(
                f"Reasoner response does not match {output_schema.__name__}: {e}"
            ) from e

    async def _complete(self, messages: list[dict[str, Any]]) -> str | None:
        for attempt in range(self.retry_policy.max_attempts):
            try:
                start_time = time.time()
                response = await litellm.acompletion(
                    model=self.model,
                    messages=messages,
                    temperature=self.temperature,
                    response_format={"type": "json_object"},
                    timeout=self.retry_policy.timeout,
                    **self.params,
                )
                content = response.choices[0].message.content
                self.logger.debug(
                    "reasoner_completion_success",
                    model=self.model,
                    latency_ms=int((time.time() - start_time) * 1000),
                )
                return content

            except Exception as e:
                error_type = type(e).__name__
                error_msg = str(e)

                should_retry = attempt < self.retry_policy.max_attempts - 1 and any(
                    err_type in error_type or err_type in error_msg
                    for err_type in self.retry_policy.retry_on_errors
                )
                if not should_retry:
                    self.logger.error(
                        "reasoner_completion_failed",
                        model=self.model,
                        error_type=error_type,
                        error=error_msg[:200],
                        attempts=attempt + 1,
                    )
                    raise ReasonerError(f"LLM call failed: {error_msg}") from e

                backoff_time = self.retry_policy.backoff_multiplier**attempt
                self.logger.warning(
                    "reasoner_completion_retry",
                    model=self.model,
                    error_type=error_type,
                    attempt=attempt + 1,
                    backoff_seconds=backoff_time,
                )
                await asyncio.sleep(backoff_time)

        raise ReasonerError("Max retries exceeded")


def _strip_code_fence(content: str) -> str:
    # Some providers wrap JSON mode output in a markdown fence anyway
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
