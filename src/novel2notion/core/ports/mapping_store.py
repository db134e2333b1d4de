"""
Mapping Store Port - Durable backing for the remote identity mapping.
"""

from abc import ABC, abstractmethod
from typing import Any


class MappingStoreError(Exception):
    """The mapping could not be loaded or saved."""


class MappingStorePort(ABC):
    """Loads and saves the whole mapping document."""

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """
        Load the mapping document.

        Returns:
            ``{"entities": {type: {local_id: remote_id}}, "containers": {key: remote_id}}``
            (empty dict when nothing was stored yet)
        """
        ...

    @abstractmethod
    def save(self, document: dict[str, Any]) -> None:
        """Persist the mapping document atomically."""
        ...
