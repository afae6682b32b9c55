"""Thin async wrapper around the Anthropic SDK.

The rest of the code only sees a ``TextGenerator``: an awaitable callable
taking a system and a user prompt plus sampling parameters. Anything with that
shape can stand in for the hosted model.
"""

import json
from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import Any

import structlog
from anthropic import AsyncAnthropic

from feedback_hub.config import settings

logger = structlog.get_logger()

TextGenerator = Callable[..., Awaitable[Any]]


class AnthropicTextGenerator:
    def __init__(self, api_key: str, model: str, timeout: float) -> None:
        self.model = model
        self._client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=1)

    async def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> dict:
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return {
            "response": text,
            "model": response.model,
            "stop_reason": response.stop_reason,
        }


@lru_cache
def get_text_generator() -> TextGenerator:
    """FastAPI dependency; override it to swap the model out."""
    return AnthropicTextGenerator(
        api_key=settings.ANTHROPIC_API_KEY,
        model=settings.LLM_MODEL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )


def extract_response_text(result: Any) -> str:
    """Pull the generated text out of whatever the generator returned.

    A ``response`` field wins; plain strings pass through; anything else is
    serialised whole.
    """
    if isinstance(result, dict):
        if result.get("response"):
            return str(result["response"])
    elif getattr(result, "response", None):
        return str(result.response)
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)
