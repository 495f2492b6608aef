"""Language-model providers used by the transcript enhancer."""

from importlib import import_module

from .base import BaseLLM

__all__ = ["BaseLLM", "create_llm"]

# provider name -> (module, class); imported on demand so that only the
# selected SDK has to be installed.
_PROVIDERS: dict[str, tuple[str, str]] = {
    "claude": (".claude", "ClaudeLLM"),
    "ollama": (".ollama", "OllamaLLM"),
}


def create_llm(provider: str, **kwargs) -> BaseLLM:
    """Build the LLM named by ``provider`` ("claude" or "ollama").

    Raises:
        ValueError: If ``provider`` is not registered.
    """
    try:
        module_name, class_name = _PROVIDERS[provider]
    except KeyError:
        raise ValueError(f"Unknown LLM provider: {provider}") from None
    cls = getattr(import_module(module_name, __name__), class_name)
    return cls(**kwargs)
