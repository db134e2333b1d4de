"""
Entity Commands - Push and archive operations for single entities.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from ...core.domain.entities import utcnow
from ...core.domain.enums import EntityType
from ...core.ports.entity_repository import EntityRepositoryPort
from ...core.ports.workspace import EntityPayload, NotFoundError, PartialCreateError, WorkspacePort
from .base import Command, CommandResult

if TYPE_CHECKING:
    from ..sync.mapper import RemoteMapper


@dataclass(frozen=True)
class PushOutcome:
    """What a push did on the remote side."""

    remote_id: str
    created: bool


def placeholder_remote_id(entity_type: EntityType, local_id: str) -> str:
    """Stand-in remote id for nodes that a dry run would create."""
    return f"dry-run:{entity_type.value}:{local_id}"


class PushEntityCommand(Command):
    """
    Create or update the remote node of one entity, then commit.

    With a known ``remote_id`` the node is updated; otherwise it is created
    and the new mapping is recorded in the same commit that marks the entity
    synced.
    """

    def __init__(
        self,
        workspace: WorkspacePort,
        mapper: "RemoteMapper",
        repository: EntityRepositoryPort,
        payload: EntityPayload,
        remote_id: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
        dry_run: bool = False,
    ):
        super().__init__(dry_run=dry_run)
        self.workspace = workspace
        self.mapper = mapper
        self.repository = repository
        self.payload = payload
        self.remote_id = remote_id
        self.clock = clock

    @property
    def entity(self):
        return self.payload.entity

    @property
    def description(self) -> str:
        verb = "update" if self.remote_id else "create"
        return f"{verb} {self.entity.entity_type.value} '{self.entity.display_name()}'"

    def context(self) -> str:
        return (
            f"type={self.entity.entity_type.value} id={self.entity.id} "
            f"remote_id={self.remote_id or '-'}"
        )

    def validate(self) -> Optional[str]:
        if not self.entity.id:
            return "Entity has no id"
        return None

    def _execute(self) -> CommandResult:
        entity = self.entity
        created = self.remote_id is None

        if created:
            try:
                remote_id = self.workspace.create(entity.entity_type, self.payload)
            except PartialCreateError as e:
                # Keep the node so the next run updates it; the entity stays dirty
                self.mapper.record(entity.entity_type, entity.id, e.remote_id)
                raise
            self.logger.info(f"Created {entity.entity_type.value} {entity.id} -> {remote_id}")
        else:
            remote_id = self.remote_id
            self.workspace.update(remote_id, self.payload)
            self.logger.debug(f"Updated {entity.entity_type.value} {entity.id} ({remote_id})")

        outcome = PushOutcome(remote_id=remote_id, created=created)
        marked = self.mapper.commit(
            self.repository,
            entity.entity_type,
            entity.id,
            remote_id,
            version=entity.updated_at,
            synced_at=self.clock(),
            record=created,
        )
        if not marked:
            self.logger.info(
                f"{entity.entity_type.value} {entity.id} changed during sync; left dirty"
            )
            return CommandResult.skip("changed locally during sync", data=outcome)

        return CommandResult.ok(outcome)

    def _dry_run_result(self) -> CommandResult:
        remote_id = self.remote_id or placeholder_remote_id(
            self.entity.entity_type, self.entity.id
        )
        return CommandResult.ok(
            PushOutcome(remote_id=remote_id, created=self.remote_id is None),
            dry_run=True,
        )


class ArchiveNodeCommand(Command):
    """
    Retire the remote node of a locally deleted entity and drop its mapping.

    With ``archive=False`` the node is left in place (orphaned) and only the
    mapping is dropped.
    """

    def __init__(
        self,
        workspace: WorkspacePort,
        mapper: "RemoteMapper",
        entity_type: EntityType,
        local_id: str,
        remote_id: str,
        archive: bool = True,
        dry_run: bool = False,
    ):
        super().__init__(dry_run=dry_run)
        self.workspace = workspace
        self.mapper = mapper
        self.entity_type = entity_type
        self.local_id = local_id
        self.remote_id = remote_id
        self.archive = archive

    @property
    def description(self) -> str:
        verb = "archive" if self.archive else "unlink"
        return f"{verb} remote {self.entity_type.value} {self.remote_id} (deleted locally)"

    def context(self) -> str:
        return f"type={self.entity_type.value} id={self.local_id} remote_id={self.remote_id}"

    def _execute(self) -> CommandResult:
        if self.archive:
            try:
                self.workspace.archive(self.remote_id)
            except NotFoundError:
                self.logger.info(f"Remote node {self.remote_id} already gone")

        self.mapper.forget(self.entity_type, self.local_id)
        self.mapper.forget_containers(f"{self.remote_id}/")
        return CommandResult.ok(self.remote_id)

    def _dry_run_result(self) -> CommandResult:
        return CommandResult.ok(self.remote_id, dry_run=True)
