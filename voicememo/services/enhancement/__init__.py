"""
Enhancement module - transcript correction and title generation.

Factory function for creating enhancer instances based on provider configuration.
"""

from .base import BaseEnhancer

__all__ = ["BaseEnhancer", "create_enhancer"]


def create_enhancer(provider: str, **kwargs) -> BaseEnhancer:
    """
    Factory function to create an enhancer instance based on provider.

    Args:
        provider: Enhancer provider name ("llm" or "http")
        **kwargs: Provider-specific configuration. For "llm", ``llm`` may be
            a ready ``BaseLLM``; otherwise one is built from ``llm_provider``.

    Returns:
        BaseEnhancer implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "llm":
        from voicememo.services.llm import create_llm

        from .llm_enhancer import LLMEnhancer

        llm = kwargs.pop("llm", None)
        if llm is None:
            llm = create_llm(kwargs.pop("llm_provider", "ollama"), **kwargs)
        return LLMEnhancer(llm)
    elif provider == "http":
        from .remote import HttpEnhancer

        return HttpEnhancer(**kwargs)
    else:
        raise ValueError(f"Unknown enhancer provider: {provider}")
