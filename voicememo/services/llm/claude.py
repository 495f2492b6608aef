"""Anthropic Claude as the correction model.

A submission makes a single best-effort correction call, so nothing here
retries. The pipeline decides what a failure means.
"""

import logging

from anthropic import APIConnectionError, APITimeoutError, AsyncAnthropic, RateLimitError

from voicememo.core.config import get_settings
from voicememo.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)


def _translate(exc: Exception) -> Exception:
    # APITimeoutError subclasses APIConnectionError, so it is checked first.
    if isinstance(exc, APITimeoutError):
        return TimeoutError(f"Claude request timed out: {exc}")
    if isinstance(exc, APIConnectionError):
        return ConnectionError(f"Failed to connect to Claude: {exc}")
    if isinstance(exc, RateLimitError):
        return ConnectionError(f"Claude rate limit reached: {exc}")
    return RuntimeError(f"Claude API error: {exc}")


class ClaudeLLM(BaseLLM):
    name = "claude"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> None:
        settings = get_settings()
        self._model = model or settings.claude_model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = AsyncAnthropic(api_key=api_key or settings.claude_api_key)

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        request: dict = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system

        try:
            reply = await self._client.messages.create(**request)
        except Exception as exc:
            error = _translate(exc)
            logger.warning("Claude call failed (%s): %s", type(exc).__name__, exc)
            raise error from exc

        return "".join(block.text for block in reply.content if hasattr(block, "text"))
