"""
Remote Mapper - Durable table from local identity to remote node id.

This table is what makes repeated runs idempotent: an entity with an entry
is updated, one without is created. Entries are only ever written after the
remote side acknowledged a create.
"""

import copy
import logging
import threading
from datetime import datetime
from typing import Optional

from ...core.domain.enums import EntityType
from ...core.ports.entity_repository import EntityRepositoryPort
from ...core.ports.mapping_store import MappingStorePort


class RemoteMapper:
    """
    Mapping of (entity type, local id) to remote id, plus structural containers.

    All mutations go through one lock (single writer). Lookups read a dict
    and may run concurrently with other lookups.
    """

    def __init__(self, store: Optional[MappingStorePort] = None):
        self.store = store
        self.logger = logging.getLogger("RemoteMapper")
        self._lock = threading.RLock()
        self._entities: dict[EntityType, dict[str, str]] = {t: {} for t in EntityType}
        self._containers: dict[str, str] = {}
        self._load()

    # -------------------------------------------------------------------------
    # Entity Mappings
    # -------------------------------------------------------------------------

    def lookup(self, entity_type: EntityType, local_id: str) -> Optional[str]:
        """Remote id of a local entity, or None if it was never created."""
        return self._entities[entity_type].get(local_id)

    def record(self, entity_type: EntityType, local_id: str, remote_id: str) -> None:
        """
        Record an acknowledged create.

        Raises:
            ValueError: If the entity is already mapped to another node
        """
        with self._lock:
            existing = self._entities[entity_type].get(local_id)
            if existing == remote_id:
                return
            if existing is not None:
                raise ValueError(
                    f"{entity_type.value} {local_id} already mapped to {existing}"
                )
            self._entities[entity_type][local_id] = remote_id
            self._save()
            self.logger.debug(f"Mapped {entity_type.value} {local_id} -> {remote_id}")

    def commit(
        self,
        repository: EntityRepositoryPort,
        entity_type: EntityType,
        local_id: str,
        remote_id: str,
        version: datetime,
        synced_at: datetime,
        record: bool = False,
    ) -> bool:
        """
        Record the mapping (for creates) and mark the entity synced, as one
        step under the writer lock.

        The mapping is written first: if marking fails or the process dies in
        between, the next run updates the node instead of creating another.

        Returns:
            True if the entity was marked synced, False if it changed since
            ``version`` (it stays dirty)
        """
        with self._lock:
            if record:
                self.record(entity_type, local_id, remote_id)
            return repository.mark_synced(entity_type, local_id, version, synced_at)

    def forget(self, entity_type: EntityType, local_id: str) -> Optional[str]:
        """Drop a mapping. Returns the remote id that was mapped."""
        with self._lock:
            remote_id = self._entities[entity_type].pop(local_id, None)
            if remote_id is not None:
                self._save()
            return remote_id

    def entries(self, entity_type: EntityType) -> dict[str, str]:
        """Copy of all mappings of one type (local id -> remote id)."""
        with self._lock:
            return dict(self._entities[entity_type])

    def count(self, entity_type: Optional[EntityType] = None) -> int:
        with self._lock:
            if entity_type:
                return len(self._entities[entity_type])
            return sum(len(m) for m in self._entities.values())

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    def lookup_container(self, key: str) -> Optional[str]:
        return self._containers.get(key)

    def record_container(self, key: str, remote_id: str) -> None:
        with self._lock:
            self._containers[key] = remote_id
            self._save()

    def forget_container(self, key: str) -> Optional[str]:
        with self._lock:
            remote_id = self._containers.pop(key, None)
            if remote_id is not None:
                self._save()
            return remote_id

    def forget_containers(self, prefix: str) -> int:
        """Drop every container whose key starts with ``prefix``."""
        with self._lock:
            keys = [k for k in self._containers if k.startswith(prefix)]
            for key in keys:
                del self._containers[key]
            if keys:
                self._save()
            return len(keys)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        if self.store is None:
            return
        document = self.store.load()
        for type_key, mapping in document.get("entities", {}).items():
            try:
                entity_type = EntityType.from_string(type_key)
            except ValueError:
                self.logger.warning(f"Ignoring mappings of unknown type '{type_key}'")
                continue
            self._entities[entity_type].update(mapping)
        self._containers.update(document.get("containers", {}))
        self.logger.debug(f"Loaded {self.count()} mappings")

    def _save(self) -> None:
        if self.store is None:
            return
        self.store.save({
            "entities": {
                t.value: copy.copy(m) for t, m in self._entities.items() if m
            },
            "containers": dict(self._containers),
        })
