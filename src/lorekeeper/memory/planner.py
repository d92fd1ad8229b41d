"""Turn a world-update payload into ordered graph writes and apply them.

Writes go out one at a time. There is no retry and no rollback: the first
failing call aborts the rest of the pass and propagates, leaving earlier writes
in place. Re-applying a payload can therefore repeat writes that already
landed; duplicate suppression is left to the graph service's own entity and
edge deduplication.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from lorekeeper.memory.resolver import TempIdMap
from lorekeeper.models.graph import GraphScope
from lorekeeper.models.world import WorldUpdatePayload, WorldUpdates

if TYPE_CHECKING:
    from lorekeeper.memory.gateway import ZepGateway

logger = logging.getLogger(__name__)

SOURCE_NEW_ENTITY = "world_update:new_entity"
SOURCE_UPDATED_ENTITY = "world_update:updated_entity"
SOURCE_NEW_EVENT = "world_update:new_event"
SOURCE_WORLD_FACT = "world_update:world_fact"
SOURCE_RELATIONSHIP = "world_update:relationship"

DEFAULT_PARTICIPANT_ROLE = "participant"
EVENT_LOCATION_FACT = "OCCURRED_AT"
DEFAULT_RELATION_FACT = "RELATED"


@dataclass
class AddData:
    """Upsert-style JSON episode write."""

    data: str
    source_description: str
    type: str = "json"

    @property
    def record(self) -> dict[str, Any]:
        return json.loads(self.data)


@dataclass
class AddFactTriple:
    """Named edge between two nodes addressed by name."""

    fact: str
    fact_name: str
    source_node_name: str
    target_node_name: str


GraphWrite = AddData | AddFactTriple


# ── Field normalization ─────────────────────────────────────────────


def _replace_summary_key(fields: dict[str, Any]) -> dict[str, Any]:
    if "summary" not in fields:
        return fields
    output = dict(fields)
    output["summary_text"] = output.pop("summary")
    return output


def normalize_entity_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Rename ``summary`` to ``summary_text`` at the top level and in set/append.

    The graph schema reserves ``summary`` for its own generated node summary.
    """
    normalized = _replace_summary_key(payload)
    for key in ("set", "append"):
        nested = normalized.get(key)
        if isinstance(nested, dict):
            if normalized is payload:
                normalized = dict(payload)
            normalized[key] = _replace_summary_key(nested)
    return normalized


def _json_write(record: dict[str, Any], source_description: str) -> AddData:
    return AddData(
        data=json.dumps(record, ensure_ascii=False),
        source_description=source_description,
    )


# ── Planning ────────────────────────────────────────────────────────


def plan_world_updates(updates: WorldUpdates) -> list[GraphWrite]:
    """Build the ordered write list for one payload.

    Phase one reads only ``new_entities`` to build the temp id map; phase two
    walks everything else, so a relationship may reference an entity that
    appears after it in the raw payload.
    """
    temp_ids = TempIdMap.from_entities(updates.new_entities)
    writes: list[GraphWrite] = []

    for entity in updates.new_entities:
        fields = normalize_entity_payload(entity.model_dump(exclude_unset=True))
        writes.append(_json_write({"entity_type": entity.type, **fields}, SOURCE_NEW_ENTITY))

    for entity in updates.updated_entities:
        fields = normalize_entity_payload(entity.model_dump(exclude_unset=True))
        record = {"entity_type": entity.type, **fields} if entity.type else fields
        writes.append(_json_write(record, SOURCE_UPDATED_ENTITY))

    for event in updates.new_events:
        fields = normalize_entity_payload(event.model_dump(exclude_unset=True))
        writes.append(_json_write({"entity_type": "Event", **fields}, SOURCE_NEW_EVENT))

        for participant in event.participants or []:
            participant_name = temp_ids.resolve(participant.entity_name, participant.entity_id)
            if not participant_name:
                logger.debug(
                    "Skipping unresolved participant %r of event %r",
                    participant.entity_id,
                    event.name,
                )
                continue
            writes.append(AddFactTriple(
                fact=participant.role or DEFAULT_PARTICIPANT_ROLE,
                fact_name="REL_EVENT_PARTICIPANT",
                source_node_name=participant_name,
                target_node_name=event.name,
            ))

        location_name = temp_ids.resolve(event.location_name, event.location_id)
        if location_name:
            writes.append(AddFactTriple(
                fact=EVENT_LOCATION_FACT,
                fact_name="REL_EVENT_LOCATION",
                source_node_name=event.name,
                target_node_name=location_name,
            ))

    for fact in updates.world_facts:
        writes.append(_json_write(
            {"entity_type": "WorldFact", **fact.model_dump(exclude_unset=True)},
            SOURCE_WORLD_FACT,
        ))

    for relation in [*updates.new_relationships, *updates.updated_relationships]:
        source_name = temp_ids.resolve(relation.from_entity_name, relation.from_entity_id)
        target_name = temp_ids.resolve(relation.to_entity_name, relation.to_entity_id)

        if source_name and target_name:
            writes.append(AddFactTriple(
                fact=relation.relation or relation.role or relation.notes or DEFAULT_RELATION_FACT,
                fact_name=relation.type,
                source_node_name=source_name,
                target_node_name=target_name,
            ))
        else:
            # Unlinked: keep the whole record so it can be inspected later.
            logger.info(
                "Relationship %s has an unresolved endpoint; storing raw record",
                relation.type,
            )
            writes.append(_json_write(
                {"relationship_type": relation.type, **relation.model_dump(exclude_unset=True)},
                SOURCE_RELATIONSHIP,
            ))

    return writes


# ── Execution ───────────────────────────────────────────────────────


async def execute_write(
    gateway: ZepGateway,
    write: GraphWrite,
    scope: GraphScope,
    created_at: str,
) -> None:
    """Send one planned write to the graph service."""
    if isinstance(write, AddFactTriple):
        await gateway.add_fact_triple(
            fact=write.fact,
            fact_name=write.fact_name,
            source_node_name=write.source_node_name,
            target_node_name=write.target_node_name,
            scope=scope,
            created_at=created_at,
        )
        return
    await gateway.add_data(
        write.data,
        scope=scope,
        data_type=write.type,
        source_description=write.source_description,
        created_at=created_at,
    )


async def apply_world_updates(
    gateway: ZepGateway,
    payload: WorldUpdatePayload | WorldUpdates,
    scope: GraphScope,
    created_at: str | None = None,
) -> list[GraphWrite]:
    """Plan and execute all writes for a payload, in order. Returns the plan."""
    updates = payload.world_updates if isinstance(payload, WorldUpdatePayload) else payload
    timestamp = created_at or datetime.now(timezone.utc).isoformat()
    writes = plan_world_updates(updates)

    for write in writes:
        await execute_write(gateway, write, scope, timestamp)

    logger.info(
        "Applied %d world-update writes to %s (%s)",
        len(writes),
        scope.cache_key,
        ", ".join(f"{k}={v}" for k, v in updates.counts().items() if v),
    )
    return writes


def describe_writes(writes: list[GraphWrite]) -> list[dict[str, Any]]:
    """Serializable view of a plan, tagged by write kind."""
    described = []
    for write in writes:
        kind = "fact_triple" if isinstance(write, AddFactTriple) else "add_data"
        described.append({"kind": kind, **asdict(write)})
    return described
