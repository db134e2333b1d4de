"""
Dirty Tracker - Computes the entities that need to be pushed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...core.domain.entities import Entity, utcnow
from ...core.domain.enums import EntityType
from ...core.ports.entity_repository import EntityRepositoryPort
from .sequencer import DependencySequencer


@dataclass(frozen=True)
class DirtySnapshot:
    """Point-in-time view of dirty entities, per type, in traversal order."""

    entities: dict[EntityType, tuple[Entity, ...]] = field(default_factory=dict)
    taken_at: Optional[datetime] = None

    def for_type(self, entity_type: EntityType) -> tuple[Entity, ...]:
        return self.entities.get(entity_type, ())

    def counts(self) -> dict[EntityType, int]:
        return {t: len(items) for t, items in self.entities.items() if items}

    @property
    def total(self) -> int:
        return sum(len(items) for items in self.entities.values())

    @property
    def is_empty(self) -> bool:
        return self.total == 0


class DirtyTracker:
    """
    Reads each entity collection once and keeps the entities that are dirty
    or have never been synced.
    """

    def __init__(
        self,
        repository: EntityRepositoryPort,
        sequencer: Optional[DependencySequencer] = None,
    ):
        self.repository = repository
        self.sequencer = sequencer or DependencySequencer()
        self.logger = logging.getLogger("DirtyTracker")

    def snapshot(self) -> DirtySnapshot:
        """Take the snapshot. Has no side effects."""
        entities: dict[EntityType, tuple[Entity, ...]] = {}

        for entity_type in self.sequencer.type_order():
            # One read per type: the repository hands out copies
            dirty = [e for e in self.repository.list_all(entity_type) if e.needs_sync]
            entities[entity_type] = tuple(self.sequencer.order_entities(dirty))
            if dirty:
                self.logger.debug(f"{len(dirty)} dirty {entity_type.value} entities")

        return DirtySnapshot(entities=entities, taken_at=utcnow())
