"""Abstract base class for transcript enhancement (correction + title)."""

from abc import ABC, abstractmethod

from voicememo.core.models import EnhancementResult


class BaseEnhancer(ABC):
    """Interface for services that clean up a raw transcript and title it."""

    @abstractmethod
    async def enhance(self, raw_text: str) -> EnhancementResult:
        """Correct grammar/punctuation of ``raw_text`` and generate a short title.

        Raises:
            EnhancementFailedError: The text could not be enhanced.
        """
