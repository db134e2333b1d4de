"""
Entity Repository Port - Abstract interface for local entity storage.

Implementations must hand out copies: callers may hold on to returned
entities while the stored versions keep changing.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from ..domain.entities import Entity
from ..domain.enums import EntityType


class RepositoryError(Exception):
    """Base exception for local storage errors."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        super().__init__(message)
        self.entity_id = entity_id


class EntityNotFoundError(RepositoryError):
    """The requested entity does not exist."""


class EntityRepositoryPort(ABC):
    """
    Abstract interface for local entity storage.

    Every mutation through ``create``/``update`` leaves the entity dirty;
    only ``mark_synced`` clears the flag, and only for an unchanged version.
    """

    @abstractmethod
    def list_all(self, entity_type: EntityType) -> list[Entity]:
        """Fetch copies of all entities of a type, read at one point in time."""
        ...

    @abstractmethod
    def get(self, entity_type: EntityType, entity_id: str) -> Optional[Entity]:
        """Fetch a copy of one entity, or None."""
        ...

    @abstractmethod
    def create(self, entity: Entity) -> Entity:
        """Store a new entity (born dirty, never synced)."""
        ...

    @abstractmethod
    def update(self, entity_type: EntityType, entity_id: str, **changes: Any) -> Entity:
        """
        Apply field changes, refresh ``updated_at`` and mark dirty.

        Raises:
            EntityNotFoundError: If the entity does not exist
        """
        ...

    @abstractmethod
    def delete(self, entity_type: EntityType, entity_id: str) -> bool:
        """Delete an entity. Returns False if it did not exist."""
        ...

    @abstractmethod
    def mark_synced(
        self,
        entity_type: EntityType,
        entity_id: str,
        version: datetime,
        synced_at: datetime,
    ) -> bool:
        """
        Mark an entity synced if it is still at ``version``.

        Args:
            entity_type: Type of the entity
            entity_id: Local identifier
            version: The ``updated_at`` value that was pushed
            synced_at: Time of the acknowledged write

        Returns:
            False if the entity changed (or vanished) since ``version``
        """
        ...
