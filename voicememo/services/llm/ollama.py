"""A local Ollama server as the correction model."""

import logging

import httpx
from ollama import AsyncClient, ResponseError

from voicememo.core.config import get_settings
from voicememo.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)


class OllamaLLM(BaseLLM):
    """Chat completion against ``ollama serve``.

    Args:
        base_url: Server URL, ``settings.ollama_base_url`` when omitted.
        model: Pulled model tag, e.g. "llama3.2".
        temperature: Default sampling temperature.
    """

    name = "ollama"

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        temperature: float = 0.3,
    ) -> None:
        settings = get_settings()
        self._host = base_url or settings.ollama_base_url
        self._model = model or settings.ollama_model
        self._temperature = temperature
        self._client = AsyncClient(host=self._host)

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})

        options: dict = {"temperature": self._temperature if temperature is None else temperature}
        if max_tokens:
            options["num_predict"] = max_tokens

        try:
            reply = await self._client.chat(model=self._model, messages=messages, options=options)
        except (TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("Ollama at %s timed out", self._host)
            raise TimeoutError(f"Ollama request timed out ({self._host})") from exc
        except (ConnectionError, httpx.TransportError) as exc:
            logger.warning("Ollama at %s unreachable: %s", self._host, exc)
            raise ConnectionError(f"Failed to connect to Ollama at {self._host}: {exc}") from exc
        except ResponseError as exc:
            logger.error("Ollama rejected the request: %s", exc)
            raise RuntimeError(f"Ollama error: {exc}") from exc

        return reply.message.content
