"""World ontology: the entity and edge types registered on every graph scope."""

from __future__ import annotations

from typing import Any

from lorekeeper.models.graph import GraphScope


def _text(description: str) -> dict[str, str]:
    return {"type": "Text", "description": description}


def _integer(description: str) -> dict[str, str]:
    return {"type": "Int", "description": description}


_RELATION_FIELDS = {
    "relation": _text("Relation type"),
    "notes": _text("Notes"),
}

WORLD_ENTITY_TYPES: dict[str, dict[str, Any]] = {
    "Character": {
        "description": "World characters, creatures, or agents.",
        "fields": {
            "aliases": _text("Aliases or alternative names"),
            "kind": _text("Species or type"),
            "role": _text("Role or occupation"),
            "factions": _text("Faction identifiers or names"),
            "personality_tags": _text("Personality tags"),
            "goals": _text("Goals or motivations"),
            "secrets": _text("Hidden information"),
            "status": _text("Status such as alive/dead/missing"),
            "location_id": _text("Current location identifier"),
            "notes": _text("Additional notes"),
        },
    },
    "Faction": {
        "description": "Organizations, factions, nations, or groups.",
        "fields": {
            "kind": _text("Faction type"),
            "ideology": _text("Ideology or belief"),
            "goals": _text("Goals"),
            "strength": _text("Strength estimate"),
            "notes": _text("Additional notes"),
        },
    },
    "Location": {
        "description": "Places in the world.",
        "fields": {
            "kind": _text("Location type"),
            "parent_location_id": _text("Parent location identifier"),
            "description": _text("Description"),
            "tags": _text("Tags"),
        },
    },
    "Item": {
        "description": "Items, artifacts, devices, or relics.",
        "fields": {
            "kind": _text("Item type"),
            "properties": _text("Properties or traits"),
            "current_owner_id": _text("Current owner identifier"),
            "location_id": _text("Location identifier if not owned"),
            "notes": _text("Additional notes"),
        },
    },
    "Event": {
        "description": "Important events.",
        "fields": {
            "summary_text": _text("Event summary"),
            "time": _text("World time"),
            "importance": _integer("Importance 1-5"),
            "status": _text("Event status"),
            "notes": _text("Additional notes"),
        },
    },
    "Concept": {
        "description": "Abstract concepts, rules, or myths.",
        "fields": {
            "kind": _text("Concept type"),
            "summary_text": _text("Summary"),
            "notes": _text("Additional notes"),
        },
    },
    "WorldFact": {
        "description": "Key-value style world facts.",
        "fields": {
            "key": _text("Fact key"),
            "value": _text("Fact value"),
            "notes": _text("Additional notes"),
        },
    },
}

WORLD_EDGE_TYPES: dict[str, dict[str, Any]] = {
    "REL_CHARACTER_CHARACTER": {
        "description": "Relations between characters.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Character", "Character")],
    },
    "REL_CHARACTER_FACTION": {
        "description": "Relations between characters and factions.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Character", "Faction")],
    },
    "REL_CHARACTER_LOCATION": {
        "description": "Relations between characters and locations.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Character", "Location")],
    },
    "REL_FACTION_FACTION": {
        "description": "Relations between factions.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Faction", "Faction")],
    },
    "REL_ITEM_CHARACTER": {
        "description": "Relations between items and characters.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Item", "Character")],
    },
    "REL_ITEM_LOCATION": {
        "description": "Relations between items and locations.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Item", "Location")],
    },
    "REL_EVENT_PARTICIPANT": {
        "description": "Event participants and their roles.",
        "fields": {"role": _text("Role in event"), "notes": _text("Notes")},
        "source_targets": [("Character", "Event"), ("Faction", "Event")],
    },
    "REL_EVENT_LOCATION": {
        "description": "Event location relation.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Event", "Location")],
    },
    "REL_EVENT_EVENT": {
        "description": "Causal relations between events.",
        "fields": _RELATION_FIELDS,
        "source_targets": [("Event", "Event")],
    },
    "REL_CONCEPT_RELATED_TO": {
        "description": "Relations involving concepts.",
        "fields": _RELATION_FIELDS,
        "source_targets": [
            ("Concept", "Character"),
            ("Concept", "Faction"),
            ("Concept", "Event"),
            ("Concept", "Concept"),
        ],
    },
}


def _properties(fields: dict[str, dict[str, str]]) -> list[dict[str, str]]:
    return [{"name": name, **spec} for name, spec in fields.items()]


def build_ontology_request(scope: GraphScope) -> dict[str, Any]:
    """Request body registering the world ontology on one scope."""
    entity_types = [
        {"name": name, "description": spec["description"], "properties": _properties(spec["fields"])}
        for name, spec in WORLD_ENTITY_TYPES.items()
    ]
    edge_types = [
        {
            "name": name,
            "description": spec["description"],
            "properties": _properties(spec["fields"]),
            "source_targets": [
                {"source": source, "target": target} for source, target in spec["source_targets"]
            ],
        }
        for name, spec in WORLD_EDGE_TYPES.items()
    ]
    body: dict[str, Any] = {"entity_types": entity_types, "edge_types": edge_types}
    if scope.graph_id:
        body["graph_ids"] = [scope.graph_id]
    else:
        body["user_ids"] = [scope.user_id]
    return body
