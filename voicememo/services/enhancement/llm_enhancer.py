"""
LLM-backed transcript enhancement.

Asks the configured LLM to fix grammar, punctuation and obvious STT
mishearings without changing the speaker's meaning or voice, and to propose
a short title. The model must answer with a single JSON object.
"""

import json
import logging

from voicememo.core.exceptions import EnhancementFailedError
from voicememo.core.models import EnhancementResult
from voicememo.core.utils import strip_code_fences
from voicememo.services.enhancement.base import BaseEnhancer
from voicememo.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an editor for transcribed personal memories. "
    "Given a raw speech-to-text transcript, correct it and give it a title.\n\n"
    "Rules:\n"
    "- Output ONLY valid JSON, no markdown fences or extra text.\n"
    '- Format: {"corrected_text": "...", "title": "..."}\n'
    "- corrected_text: the transcript with grammar, punctuation and capitalization "
    "fixed and likely mishearings repaired. Keep the speaker's words, meaning and "
    "first-person voice; do not add new details.\n"
    "- title: 2-6 words summarizing the memory, no trailing punctuation.\n"
    "- Preserve the original language of the transcript."
)

MAX_TITLE_LENGTH = 80


class LLMEnhancer(BaseEnhancer):
    """Enhances transcripts with any ``BaseLLM`` provider."""

    def __init__(self, llm: BaseLLM) -> None:
        self._llm = llm

    async def enhance(self, raw_text: str) -> EnhancementResult:
        if not raw_text or not raw_text.strip():
            raise EnhancementFailedError(detail="Nothing to enhance: transcript is empty")

        prompt = f"Transcript:\n{raw_text}"
        try:
            raw_response = await self._llm.generate(prompt, system=SYSTEM_PROMPT)
        except Exception as exc:
            raise EnhancementFailedError(detail=f"LLM call failed: {exc}") from exc

        try:
            data = json.loads(strip_code_fences(raw_response))
        except json.JSONDecodeError as exc:
            raise EnhancementFailedError(
                detail=f"Invalid JSON from LLM: {raw_response[:200]}"
            ) from exc

        if not isinstance(data, dict):
            raise EnhancementFailedError(detail="LLM response is not a JSON object")

        corrected = str(data.get("corrected_text") or "").strip()
        title = str(data.get("title") or "").strip()
        if not corrected or not title:
            raise EnhancementFailedError(
                detail=f"LLM response missing corrected_text/title: {raw_response[:200]}"
            )

        logger.debug("Enhanced transcript (%d -> %d chars)", len(raw_text), len(corrected))
        return EnhancementResult(corrected_text=corrected, title=title[:MAX_TITLE_LENGTH])
