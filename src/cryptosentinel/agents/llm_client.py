"""
LLM completion boundary.

The rest of the package only ever sees ``LLMClient.complete(prompt) -> str``.
``LiteLLMClient`` is the production implementation; tests pass any object with
an async ``complete`` method.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import litellm
from loguru import logger

from ..exceptions import LLMCompletionError


class LLMClient(ABC):
    """Narrow text-completion interface."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the model's text answer for ``prompt``.

        Raises:
            LLMCompletionError: The backend failed or returned no text
        """


class LiteLLMClient(LLMClient):
    """``LLMClient`` backed by ``litellm.acompletion``."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        provider: str = "openai",
        temperature: float = 0.0,
        max_tokens: Optional[int] = 2000,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 60.0,
        system_prompt: Optional[str] = None,
    ):
        self.model_id = model if provider in ("openai", "custom") or "/" in model else f"{provider}/{model}"
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key
        self.api_base = api_base
        self.timeout = timeout
        self.system_prompt = system_prompt

    @classmethod
    def from_config(cls, llm_config: Any, system_prompt: Optional[str] = None) -> "LiteLLMClient":
        """Build a client from an ``LLMConfig``."""
        return cls(
            model=llm_config.model,
            provider=llm_config.provider,
            temperature=llm_config.temperature,
            max_tokens=llm_config.max_tokens,
            api_key=llm_config.api_key,
            api_base=llm_config.api_base,
            timeout=llm_config.timeout,
            system_prompt=system_prompt,
        )

    async def complete(self, prompt: str) -> str:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {
            "model": self.model_id,
            "messages": messages,
            "temperature": self.temperature,
            "timeout": self.timeout,
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        logger.debug(f"Requesting completion from {self.model_id} ({len(prompt)} chars)")
        try:
            response = await litellm.acompletion(**kwargs)
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"LiteLLM call to {self.model_id} failed: {e}")
            raise LLMCompletionError(self.model_id, e) from e

        if not content:
            raise LLMCompletionError(self.model_id, ValueError("empty completion"))
        return content
