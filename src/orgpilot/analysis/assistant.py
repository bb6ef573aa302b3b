"""
Org assistant.

Record summaries and free-form questions about the org's metadata, answered
by the generative model. Neither feature may break the view that hosts it:
every failure becomes a readable fallback message.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from ..config import CHAT_HISTORY_TURNS
from ..core.types import ChatTurn, Record, SObject
from ..services.base import TextGenerator
from ..services.generation import build_chat_instruction, build_summary_prompt

logger = logging.getLogger(__name__)

CHAT_EMPTY_REPLY = "I couldn't generate a response."
CHAT_UNAVAILABLE = (
    "I apologize, but I'm having trouble connecting to the AI service right now. "
    "Please ensure your API key is valid."
)
SUMMARY_EMPTY_REPLY = "Could not generate summary."
SUMMARY_UNAVAILABLE = "Failed to generate AI summary."


def recent_turns(history: Sequence[ChatTurn], limit: int = CHAT_HISTORY_TURNS) -> List[ChatTurn]:
    return list(history)[-limit:] if limit > 0 else []


class OrgAssistant:
    """
    Text features backed by a ``TextGenerator``.

    A missing generator (no API key configured) behaves like a failing one.

    Example:
        ```python
        assistant = OrgAssistant(GeminiDiagramGenerator.from_settings(settings))
        summary = await assistant.summarize_record("Account", bundle.record, bundle.related_data)
        ```
    """

    def __init__(self, generator: Optional[TextGenerator]):
        self.generator = generator

    async def chat(
        self,
        message: str,
        history: Sequence[ChatTurn],
        entities: Iterable[SObject],
        org_name: str,
    ) -> str:
        """Answer a question with the catalogue as context and the last turns as history."""
        if self.generator is None:
            return CHAT_UNAVAILABLE

        try:
            reply = await self.generator.complete(
                message,
                system_instruction=build_chat_instruction(org_name, entities),
                history=recent_turns(history),
            )
        except Exception as e:
            logger.warning(f"Chat request failed: {e}")
            return CHAT_UNAVAILABLE
        return reply or CHAT_EMPTY_REPLY

    async def summarize_record(
        self,
        entity_name: str,
        record: Record,
        related: Optional[Dict[str, List[Record]]] = None,
    ) -> str:
        if self.generator is None:
            return SUMMARY_UNAVAILABLE

        try:
            reply = await self.generator.complete(build_summary_prompt(entity_name, record, related))
        except Exception as e:
            logger.warning(f"Summary for {entity_name} failed: {e}")
            return SUMMARY_UNAVAILABLE
        return reply or SUMMARY_EMPTY_REPLY
