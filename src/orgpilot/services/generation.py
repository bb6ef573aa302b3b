"""
Generative model client.

Wraps the generative model behind the ``DiagramGenerator`` and
``TextGenerator`` contracts. Diagram output is untrusted: this module only
decodes it, the graph builder validates it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx

from ..config import DEFAULT_GEMINI_CHAT_MODEL, DEFAULT_GEMINI_MODEL, Settings
from ..core.exceptions import GenerationError
from ..core.types import ChatTurn, Record, SObject, strip_attributes

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

PROMPT_TEMPLATE = """
You are a Salesforce Business Architect using UPN (Universal Process Notation).

Context - Available Objects: {objects}

User Requirement: "{requirement}"

Task: Create a UPN process map JSON.

Rules:
1. 'upn-activity' nodes must have:
   - label (Verb + Noun, e.g. "Create Order")
   - outcome (Verifiable result, e.g. "Order Created")
   - resources (Who does it? e.g. "Sales Rep", "Salesforce")
2. 'start' and 'end' nodes for boundaries.
3. Connect logically.

Return STRICT JSON:
{{
  "title": "Process Title",
  "description": "Process Description",
  "nodes": [
     {{
       "id": "n1",
       "type": "upn-activity",
       "data": {{
         "label": "Validate Account",
         "outcome": "Account Verified",
         "resources": [{{"resourceId": "sys-sf", "rasci": {{"r":true,"a":false,"s":false,"c":false,"i":false}}}}]
       }}
     }}
  ],
  "edges": [{{"id": "e1", "source": "n1", "target": "n2", "label": "optional"}}]
}}
"""


CHAT_INSTRUCTION_TEMPLATE = """
You are the orgpilot assistant for a Salesforce Org named '{org_name}'.

Metadata Summary:
{objects}

You help users understand their org metadata, suggest improvements, and explain relationships.
Keep answers concise and professional.
"""

SUMMARY_PROMPT_TEMPLATE = """
Analyze this Salesforce {entity_name} record and its related data.

**Record Data:**
{record}

**Related Records (Sub-queries):**
{related}

Please provide a comprehensive summary including:
1. **Business Summary**: A narrative description of what this record represents. If related Opportunities or Cases exist, mention them (e.g. "Has 3 open cases and active deals").
2. **Key Decisions/Timeline**: Infer progress based on CreatedDate, LastModifiedDate, and specific status fields.
3. **Technical Aspects**: Highlight missing fields, data quality, or specific system attributes.

Format the output in clear Markdown with headers. Keep it concise but insightful.
"""


def build_generation_prompt(requirement: str, entity_names: Iterable[str]) -> str:
    """Embed the requirement and the org's entity names in the generation prompt."""
    return PROMPT_TEMPLATE.format(objects=", ".join(entity_names), requirement=requirement)


def build_chat_instruction(org_name: str, entities: Iterable[SObject]) -> str:
    """System instruction listing every catalogue entity."""
    objects = "\n".join(
        f"- Object: {e.label} ({e.api_name}), Custom: {'true' if e.is_custom else 'false'}"
        for e in entities
    )
    return CHAT_INSTRUCTION_TEMPLATE.format(org_name=org_name, objects=objects)


def build_summary_prompt(entity_name: str, record: Record, related: Optional[Dict[str, List[Record]]] = None) -> str:
    related_rows = {
        name: [strip_attributes(r) for r in rows]
        for name, rows in (related or {}).items()
    }
    return SUMMARY_PROMPT_TEMPLATE.format(
        entity_name=entity_name,
        record=json.dumps(strip_attributes(record), indent=2, default=str),
        related=json.dumps(related_rows, indent=2, default=str),
    )


class GeminiDiagramGenerator:
    """
    Generator backed by the Gemini ``generateContent`` REST endpoint.

    ``generate`` returns the decoded JSON object, or None when the model
    produced no text or text that is not a JSON object. ``complete`` returns
    plain text for the assistant features and uses the lighter chat model.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        chat_model: str = DEFAULT_GEMINI_CHAT_MODEL,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise GenerationError("API Key not found in environment variables")
        self.api_key = api_key
        self.model = model
        self.chat_model = chat_model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "GeminiDiagramGenerator":
        return cls(
            settings.gemini_api_key,
            model=settings.gemini_model,
            chat_model=settings.gemini_chat_model,
            **kwargs,
        )

    async def _post(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = GEMINI_ENDPOINT.format(model=model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationError(f"Generation request to {model} failed: {e}") from e

    async def generate(self, prompt: str) -> Optional[Dict[str, Any]]:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        text = self._extract_text(await self._post(self.model, payload))
        if not text:
            return None

        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Generator returned text that is not valid JSON")
            return None

        if not isinstance(decoded, dict):
            logger.warning("Generator returned JSON that is not an object")
            return None
        return decoded

    async def complete(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        history: Sequence[ChatTurn] = (),
    ) -> str:
        """
        Plain-text completion, optionally continuing a conversation.

        Returns an empty string when the model produced no text.

        Raises:
            GenerationError: If the request fails.
        """
        contents = [{"role": turn.role.value, "parts": [{"text": turn.content}]} for turn in history]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        payload: Dict[str, Any] = {"contents": contents}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return self._extract_text(await self._post(self.chat_model, payload))

    @staticmethod
    def _extract_text(body: Dict[str, Any]) -> str:
        for candidate in body.get("candidates") or []:
            parts = (candidate.get("content") or {}).get("parts") or []
            text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
            if text.strip():
                return text
        return ""
