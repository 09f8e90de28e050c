"""Tests for the LiteLLM-backed completion client."""

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from cryptosentinel.agents.llm_client import LiteLLMClient
from cryptosentinel.exceptions import LLMCompletionError


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestModelId:
    """Provider prefixing."""

    @pytest.mark.parametrize("model,provider,expected", [
        ("gpt-4o-mini", "openai", "gpt-4o-mini"),
        ("claude-3-5-sonnet-20241022", "anthropic", "anthropic/claude-3-5-sonnet-20241022"),
        ("openrouter/meta-llama/llama-3-70b", "openrouter", "openrouter/meta-llama/llama-3-70b"),
        ("local-model", "custom", "local-model"),
    ])
    def test_model_id(self, model, provider, expected):
        assert LiteLLMClient(model=model, provider=provider).model_id == expected


class TestComplete:
    """Calls into litellm.acompletion."""

    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        client = LiteLLMClient(model="gpt-4o-mini", api_key="sk-test", system_prompt="You are an analyst.")

        with patch('litellm.acompletion', new_callable=AsyncMock, return_value=completion("answer")) as mock_call:
            assert await client.complete("question") == "answer"

        kwargs = mock_call.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["messages"] == [
            {"role": "system", "content": "You are an analyst."},
            {"role": "user", "content": "question"},
        ]

    @pytest.mark.asyncio
    async def test_backend_error_wrapped(self):
        client = LiteLLMClient()

        with patch('litellm.acompletion', new_callable=AsyncMock, side_effect=RuntimeError("401 Unauthorized")):
            with pytest.raises(LLMCompletionError):
                await client.complete("question")

    @pytest.mark.asyncio
    async def test_empty_content_is_error(self):
        client = LiteLLMClient()

        with patch('litellm.acompletion', new_callable=AsyncMock, return_value=completion(None)):
            with pytest.raises(LLMCompletionError):
                await client.complete("question")
