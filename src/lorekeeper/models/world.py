"""World-update payload emitted by the chat model."""

from __future__ import annotations

from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, StrictInt

EntityType = Literal[
    "Character",
    "Faction",
    "Location",
    "Item",
    "Event",
    "Concept",
    "WorldFact",
]

RelationshipType = Literal[
    "REL_CHARACTER_CHARACTER",
    "REL_CHARACTER_FACTION",
    "REL_CHARACTER_LOCATION",
    "REL_FACTION_FACTION",
    "REL_ITEM_CHARACTER",
    "REL_ITEM_LOCATION",
    "REL_EVENT_PARTICIPANT",
    "REL_EVENT_LOCATION",
    "REL_EVENT_EVENT",
    "REL_CONCEPT_RELATED_TO",
]

ENTITY_TYPES: tuple[str, ...] = get_args(EntityType)
RELATIONSHIP_TYPES: tuple[str, ...] = get_args(RelationshipType)


class _OpenRecord(BaseModel):
    """Record whose unknown keys are kept and written through to the graph."""

    model_config = ConfigDict(extra="allow")


class NewEntity(_OpenRecord):
    type: EntityType
    name: str | None = None
    temp_id: str | None = None
    id: str | None = None


class UpdatedEntity(_OpenRecord):
    """Delta against an existing entity, addressed by id and/or name."""

    id: str | None = None
    name: str | None = None
    type: EntityType | None = None
    set: dict[str, Any] | None = None
    append: dict[str, Any] | None = None


class Relationship(_OpenRecord):
    """Directed edge. Endpoints are stable/temp ids or plain names."""

    type: RelationshipType
    from_entity_id: str | None = None
    to_entity_id: str | None = None
    from_entity_name: str | None = None
    to_entity_name: str | None = None
    relation: str | None = None
    role: str | None = None
    notes: str | None = None


class EventParticipant(BaseModel):
    entity_id: str | None = None
    entity_name: str | None = None
    role: str | None = None


class NewEvent(_OpenRecord):
    name: str
    summary: str | None = None
    time: str | None = None
    importance: StrictInt | None = None
    status: str | None = None
    notes: str | None = None
    participants: list[EventParticipant] | None = None
    location_id: str | None = None
    location_name: str | None = None


class WorldFact(_OpenRecord):
    key: str
    value: str
    notes: str | None = None


class WorldUpdates(BaseModel):
    """The six change lists. Each one defaults to empty when omitted."""

    new_entities: list[NewEntity] = Field(default_factory=list)
    updated_entities: list[UpdatedEntity] = Field(default_factory=list)
    new_relationships: list[Relationship] = Field(default_factory=list)
    updated_relationships: list[Relationship] = Field(default_factory=list)
    new_events: list[NewEvent] = Field(default_factory=list)
    world_facts: list[WorldFact] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(self.counts().values())

    def counts(self) -> dict[str, int]:
        """Per-list item counts, for logging and message metadata."""
        return {
            "new_entities": len(self.new_entities),
            "updated_entities": len(self.updated_entities),
            "new_relationships": len(self.new_relationships),
            "updated_relationships": len(self.updated_relationships),
            "new_events": len(self.new_events),
            "world_facts": len(self.world_facts),
        }


class WorldUpdatePayload(BaseModel):
    assistant_reply: str
    world_updates: WorldUpdates
