"""
Storage module - durable object stores for finished recordings.

Factory function for creating store instances based on provider configuration.
"""

from .base import BaseObjectStore

__all__ = ["BaseObjectStore", "create_object_store"]


def create_object_store(provider: str, **kwargs) -> BaseObjectStore:
    """
    Factory function to create an object store based on provider.

    Args:
        provider: Store provider name ("local" or "http")
        **kwargs: Provider-specific configuration

    Returns:
        BaseObjectStore implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "local":
        from .local import LocalObjectStore

        return LocalObjectStore(**kwargs)
    elif provider == "http":
        from .remote import HttpObjectStore

        return HttpObjectStore(**kwargs)
    else:
        raise ValueError(f"Unknown storage provider: {provider}")
