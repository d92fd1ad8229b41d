"""Chat model client and the world-update reply contract."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import anthropic

from lorekeeper.config import Settings
from lorekeeper.models.world import ENTITY_TYPES, RELATIONSHIP_TYPES

logger = logging.getLogger(__name__)

WORLD_SYSTEM_PROMPT = f"""\
You are the narrator and world keeper of a persistent fictional world. Reply to
the user in character, and record every change your reply makes to the world.

Return ONLY valid JSON (no markdown fences) with this exact schema:
{{
  "assistant_reply": "string shown to the user",
  "world_updates": {{
    "new_entities": [{{"type": "string", "name": "string", "temp_id": "string", "...": "any extra fields"}}],
    "updated_entities": [{{"id": "string", "name": "string", "type": "string", "set": {{}}, "append": {{}}}}],
    "new_relationships": [{{"type": "string", "from_entity_id": "string", "from_entity_name": "string",
                            "to_entity_id": "string", "to_entity_name": "string",
                            "relation": "string", "role": "string", "notes": "string"}}],
    "updated_relationships": [],
    "new_events": [{{"name": "string", "summary": "string", "time": "string", "importance": 3,
                     "status": "string", "notes": "string",
                     "participants": [{{"entity_id": "string", "entity_name": "string", "role": "string"}}],
                     "location_id": "string", "location_name": "string"}}],
    "world_facts": [{{"key": "string", "value": "string", "notes": "string"}}]
  }}
}}

Entity type must be one of: {", ".join(ENTITY_TYPES)}
Relationship type must be one of: {", ".join(RELATIONSHIP_TYPES)}

Rules:
- Give every new entity a name. Give it a short temp_id (e.g. "t1") when other
  items in the same reply refer to it, and refer to it by that temp_id.
- Refer to entities that already exist by their exact name.
- Leave a list empty when nothing of that kind changed; never omit a list.
- Use the knowledge graph and conversation memory below as established canon.
"""


class ModelUnavailableError(RuntimeError):
    """No chat model credential is configured."""


@dataclass
class ModelReply:
    """Raw text of one model turn."""

    text: str
    usage: dict[str, Any] = field(default_factory=dict)


def build_system_prompt(context_block: str) -> str:
    return f"{WORLD_SYSTEM_PROMPT}\n<context>\n{context_block}\n</context>"


class ChatModel:
    """Anthropic Messages API wrapper for chat turns."""

    def __init__(self, settings: Settings, client: Any = None) -> None:
        if client is None:
            if not settings.llm_api_key:
                raise ModelUnavailableError(
                    "Chat model is not configured. Set LOREKEEPER_LLM_API_KEY."
                )
            client = anthropic.AsyncAnthropic(api_key=settings.llm_api_key)
        self._client = client
        self._settings = settings

    async def complete(self, system: str, messages: list[dict[str, str]]) -> ModelReply:
        """Run one turn. Only user/assistant messages are forwarded."""
        conversation = [
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m.get("role") in ("user", "assistant") and m.get("content")
        ]
        message = await self._client.messages.create(
            model=self._settings.llm_model,
            max_tokens=self._settings.llm_max_tokens,
            temperature=self._settings.llm_temperature,
            system=system,
            messages=conversation,
        )
        text = "".join(
            block.text for block in message.content if getattr(block, "type", "text") == "text"
        )
        usage = {
            "input_tokens": message.usage.input_tokens,
            "output_tokens": message.usage.output_tokens,
        }
        logger.debug("Model reply: %d chars, usage=%s", len(text), usage)
        return ModelReply(text=text, usage=usage)
