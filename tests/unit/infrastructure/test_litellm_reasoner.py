"""Unit tests for the LiteLLM reasoner adapter."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from taskloop.core.domain.errors import ReasonerError
from taskloop.core.schemas import ContinuationSchema, DecisionSchema
from taskloop.infrastructure.llm.litellm_reasoner import LiteLLMReasoner, RetryPolicy


class FakeLLMResponse:
    def __init__(self, content):
        self.choices = [SimpleNamespace(message=SimpleNamespace(content=content))]


MESSAGES = [{"role": "user", "content": "Decide"}]


@pytest.fixture
def reasoner():
    return LiteLLMReasoner(model="gpt-4o-mini", retry_policy=RetryPolicy(max_attempts=1))


class TestLiteLLMReasoner:
    @pytest.mark.asyncio
    async def test_validates_json_reply(self, reasoner):
        content = '{"reasoning": "read it", "actions": [{"tool": "read", "args": {"path": "a"}}]}'
        with patch("litellm.acompletion", new=AsyncMock(return_value=FakeLLMResponse(content))) as mock_completion:
            result = await reasoner.generate(MESSAGES, DecisionSchema)

        assert isinstance(result, DecisionSchema)
        assert result.actions[0].tool == "read"
        kwargs = mock_completion.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == MESSAGES
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_strips_code_fence(self, reasoner):
        content = '```json\n{"should_continue": true, "reason": "next step"}\n```'
        with patch("litellm.acompletion", new=AsyncMock(return_value=FakeLLMResponse(content))):
            result = await reasoner.generate(MESSAGES, ContinuationSchema)

        assert result.should_continue is True

    @pytest.mark.asyncio
    async def test_schema_mismatch_raises(self, reasoner):
        with patch("litellm.acompletion", new=AsyncMock(return_value=FakeLLMResponse('{"foo": 1}'))):
            with pytest.raises(ReasonerError, match="DecisionSchema"):
                await reasoner.generate(MESSAGES, DecisionSchema)

    @pytest.mark.asyncio
    async def test_non_json_raises(self, reasoner):
        with patch("litellm.acompletion", new=AsyncMock(return_value=FakeLLMResponse("Sure! Here you go"))):
            with pytest.raises(ReasonerError):
                await reasoner.generate(MESSAGES, DecisionSchema)

    @pytest.mark.asyncio
    async def test_empty_reply_raises(self, reasoner):
        with patch("litellm.acompletion", new=AsyncMock(return_value=FakeLLMResponse(None))):
            with pytest.raises(ReasonerError, match="empty"):
                await reasoner.generate(MESSAGES, DecisionSchema)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, reasoner):
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("connection reset"))):
            with pytest.raises(ReasonerError, match="connection reset"):
                await reasoner.generate(MESSAGES, DecisionSchema)

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        reasoner = LiteLLMReasoner(retry_policy=RetryPolicy(max_attempts=2))
        completion = AsyncMock(
            side_effect=[
                Exception("RateLimitError: slow down"),
                FakeLLMResponse('{"should_continue": false}'),
            ]
        )
        with patch("litellm.acompletion", new=completion), patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            result = await reasoner.generate(MESSAGES, ContinuationSchema)

        assert result.should_continue is False
        assert completion.await_count == 2
        mock_sleep.assert_awaited_once_with(1.0)
