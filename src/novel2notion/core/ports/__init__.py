"""
Ports - Abstract interfaces for external dependencies.

Ports define the contracts that adapters must implement.
This enables dependency inversion and easy testing.
"""

from .entity_repository import EntityRepositoryPort, RepositoryError, EntityNotFoundError
from .mapping_store import MappingStorePort, MappingStoreError
from .workspace import (
    WorkspacePort,
    WorkspaceError,
    AuthenticationError,
    PermissionError,
    NotFoundError,
    ValidationError,
    RateLimitError,
    TransientError,
    RetryExhaustedError,
    PartialCreateError,
    ClientConstructionError,
    EntityPayload,
)
from .config_provider import ConfigProviderPort, AppConfig, WorkspaceConfig, SyncConfig

__all__ = [
    "EntityRepositoryPort",
    "RepositoryError",
    "EntityNotFoundError",
    "MappingStorePort",
    "MappingStoreError",
    "WorkspacePort",
    "WorkspaceError",
    "AuthenticationError",
    "PermissionError",
    "NotFoundError",
    "ValidationError",
    "RateLimitError",
    "TransientError",
    "RetryExhaustedError",
    "PartialCreateError",
    "ClientConstructionError",
    "EntityPayload",
    "ConfigProviderPort",
    "AppConfig",
    "WorkspaceConfig",
    "SyncConfig",
]
