"""
Workspace Port - Abstract interface for the remote document workspace.

The sync engine only ever talks to the remote system through this port.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ..domain.entities import Entity
from ..domain.enums import EntityType


# =============================================================================
# Exceptions
# =============================================================================

class WorkspaceError(Exception):
    """Base exception for remote workspace errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        endpoint: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint
        self.cause = cause


class AuthenticationError(WorkspaceError):
    """Credentials were rejected (401)."""


class PermissionError(WorkspaceError):
    """The integration has no access to the resource (403)."""


class NotFoundError(WorkspaceError):
    """The resource does not exist or is not shared (404)."""


class ValidationError(WorkspaceError):
    """The request was rejected as invalid (other 4xx)."""


class RateLimitError(WorkspaceError):
    """Too many requests (429)."""

    retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class TransientError(WorkspaceError):
    """Server-side (5xx) or transport failure."""

    retryable = True


class RetryExhaustedError(WorkspaceError):
    """A retryable failure persisted through every attempt."""

    def __init__(self, message: str, attempts: int, last_error: WorkspaceError):
        super().__init__(
            message,
            status=last_error.status,
            endpoint=last_error.endpoint,
            cause=last_error,
        )
        self.attempts = attempts
        self.last_error = last_error


class PartialCreateError(WorkspaceError):
    """A page was created but its body could not be written in full.

    The page exists remotely under ``remote_id``; callers must record it so
    a later attempt updates that page instead of creating another one.
    """

    def __init__(self, message: str, remote_id: str, cause: WorkspaceError):
        super().__init__(message, status=cause.status, endpoint=cause.endpoint, cause=cause)
        self.remote_id = remote_id
        self.retryable = cause.retryable


class ClientConstructionError(WorkspaceError):
    """An authenticated workspace client could not be built or prepared."""


# =============================================================================
# Payload
# =============================================================================

@dataclass(frozen=True)
class EntityPayload:
    """
    Everything the adapter needs to write one entity.

    Attributes:
        entity: Snapshot of the entity being pushed
        parents: Parent reference field -> remote id (e.g. ``work_id``)
        references: Reference list field -> remote ids that are mapped
    """

    entity: Entity
    parents: dict[str, str] = field(default_factory=dict)
    references: dict[str, list[str]] = field(default_factory=dict)

    @property
    def entity_type(self) -> EntityType:
        return self.entity.entity_type


# =============================================================================
# Port
# =============================================================================

class WorkspacePort(ABC):
    """Abstract interface for the remote workspace."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the workspace name."""
        ...

    @property
    @abstractmethod
    def rate_budget(self) -> int:
        """Number of requests that may be in flight without waiting."""
        ...

    @abstractmethod
    def test_connection(self) -> bool:
        """Check that the credentials work."""
        ...

    @abstractmethod
    def prepare(self) -> None:
        """
        Make sure the root structure exists before entities are pushed.

        Raises:
            ClientConstructionError: If the workspace cannot be used
        """
        ...

    @abstractmethod
    def create(self, entity_type: EntityType, payload: EntityPayload) -> str:
        """Create the remote node for an entity. Returns its remote id."""
        ...

    @abstractmethod
    def update(self, remote_id: str, payload: EntityPayload) -> None:
        """Overwrite an existing remote node with the entity's state."""
        ...

    @abstractmethod
    def archive(self, remote_id: str) -> None:
        """Archive a remote node whose local entity was deleted."""
        ...
