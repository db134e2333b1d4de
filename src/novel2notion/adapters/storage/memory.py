"""
In-Memory Repository - EntityRepositoryPort backed by dictionaries.

Used directly in tests and as the base of the JSON file repository.
"""

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Optional

from ...core.domain.entities import Entity
from ...core.domain.enums import EntityType
from ...core.ports.entity_repository import EntityRepositoryPort, EntityNotFoundError, RepositoryError


class InMemoryEntityRepository(EntityRepositoryPort):
    """
    Thread-safe in-memory entity storage.

    All reads return deep copies, so a list taken by the sync engine is a
    point-in-time view that later mutations cannot alter.
    """

    READONLY_FIELDS = frozenset({"id", "created_at", "updated_at", "synced_at", "is_dirty"})

    def __init__(self, entities: Optional[list[Entity]] = None):
        self._lock = threading.RLock()
        self._store: dict[EntityType, dict[str, Entity]] = {t: {} for t in EntityType}
        self.logger = logging.getLogger("EntityRepository")

        for entity in entities or []:
            self._store[entity.entity_type][entity.id] = copy.deepcopy(entity)

    # -------------------------------------------------------------------------
    # EntityRepositoryPort Implementation
    # -------------------------------------------------------------------------

    def list_all(self, entity_type: EntityType) -> list[Entity]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._store[entity_type].values()]

    def get(self, entity_type: EntityType, entity_id: str) -> Optional[Entity]:
        with self._lock:
            entity = self._store[entity_type].get(entity_id)
            return copy.deepcopy(entity) if entity else None

    def create(self, entity: Entity) -> Entity:
        with self._lock:
            if entity.id in self._store[entity.entity_type]:
                raise RepositoryError(
                    f"{entity.entity_type.value} {entity.id} already exists",
                    entity_id=entity.id,
                )
            stored = copy.deepcopy(entity)
            stored.is_dirty = True
            stored.synced_at = None
            self._store[entity.entity_type][entity.id] = stored
            self._persist()
            self.logger.debug(f"Created {entity.entity_type.value} {entity.id}")
            return copy.deepcopy(stored)

    def update(self, entity_type: EntityType, entity_id: str, **changes: Any) -> Entity:
        with self._lock:
            stored = self._store[entity_type].get(entity_id)
            if stored is None:
                raise EntityNotFoundError(
                    f"{entity_type.value} {entity_id} not found",
                    entity_id=entity_id,
                )
            for key, value in changes.items():
                if key in self.READONLY_FIELDS:
                    raise RepositoryError(f"Field '{key}' cannot be updated directly", entity_id)
                if not hasattr(stored, key):
                    raise RepositoryError(
                        f"{entity_type.value} has no field '{key}'", entity_id
                    )
                setattr(stored, key, copy.deepcopy(value))
            stored.touch()
            self._persist()
            return copy.deepcopy(stored)

    def delete(self, entity_type: EntityType, entity_id: str) -> bool:
        with self._lock:
            if self._store[entity_type].pop(entity_id, None) is None:
                return False
            self._persist()
            self.logger.debug(f"Deleted {entity_type.value} {entity_id}")
            return True

    def mark_synced(
        self,
        entity_type: EntityType,
        entity_id: str,
        version: datetime,
        synced_at: datetime,
    ) -> bool:
        with self._lock:
            stored = self._store[entity_type].get(entity_id)
            if stored is None or stored.updated_at != version:
                return False
            stored.mark_synced(synced_at)
            self._persist()
            return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def count(self, entity_type: Optional[EntityType] = None) -> int:
        with self._lock:
            if entity_type:
                return len(self._store[entity_type])
            return sum(len(v) for v in self._store.values())

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""
