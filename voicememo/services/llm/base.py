"""Common interface of the language models used for transcript correction."""

from abc import ABC, abstractmethod


class BaseLLM(ABC):
    """A chat model reduced to one call: prompt in, completion text out.

    Implementations translate their SDK failures so that callers only see
    ``ConnectionError`` / ``TimeoutError`` for transport trouble and
    ``RuntimeError`` for everything else.
    """

    name: str = "llm"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Return the model's reply to ``prompt``."""
