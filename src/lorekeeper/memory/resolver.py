"""Payload-scoped temp id resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from lorekeeper.models.world import NewEntity

logger = logging.getLogger(__name__)


class TempIdMap:
    """Maps ``temp_id`` to entity name for a single payload.

    Built from ``new_entities`` before any relationship or event is looked at,
    then thrown away with the payload.
    """

    def __init__(self, names_by_temp_id: dict[str, str] | None = None) -> None:
        self._names = dict(names_by_temp_id or {})

    @classmethod
    def from_entities(cls, entities: Iterable[NewEntity]) -> TempIdMap:
        names: dict[str, str] = {}
        for entity in entities:
            if entity.temp_id and entity.name:
                names[entity.temp_id] = entity.name
            elif entity.temp_id:
                logger.warning(
                    "Entity with temp_id %r has no name; references to it cannot be linked",
                    entity.temp_id,
                )
        return cls(names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, temp_id: object) -> bool:
        return temp_id in self._names

    def get(self, temp_id: str | None) -> str | None:
        if not temp_id:
            return None
        return self._names.get(temp_id)

    def resolve(self, name: str | None, temp_id: str | None) -> str | None:
        """Resolve an endpoint. A direct name always wins over the temp id."""
        if name:
            return name
        return self.get(temp_id)
