"""
Sync Orchestrator - Coordinates the synchronization process.

This is the main entry point for sync operations.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

from ...core.domain.entities import Entity, utcnow
from ...core.domain.enums import EntityType
from ...core.domain.events import EventBus, SyncStarted, SyncSucceeded, SyncFailed
from ...core.ports.config_provider import SyncConfig, WorkspaceConfig
from ...core.ports.entity_repository import EntityRepositoryPort, RepositoryError
from ...core.ports.workspace import (
    ClientConstructionError,
    EntityPayload,
    WorkspaceError,
    WorkspacePort,
)
from ..commands import (
    ArchiveNodeCommand,
    CommandBatch,
    CommandResult,
    FailureKind,
    PushEntityCommand,
    PushOutcome,
)
from .dirty_tracker import DirtySnapshot, DirtyTracker
from .mapper import RemoteMapper
from .sequencer import DependencySequencer, EntityDescriptor


WorkspaceFactory = Callable[[WorkspaceConfig, SyncConfig], WorkspacePort]


class SyncStatus(Enum):
    """How a run ended."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
    NOT_CONFIGURED = "not_configured"
    ALREADY_RUNNING = "already_running"


class OrchestratorState(Enum):
    """Lifecycle of the orchestrator."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass
class FailedEntity:
    """An entity that did not reach the workspace in this run."""

    entity_type: EntityType
    entity_id: str
    reason: str
    kind: FailureKind = FailureKind.TERMINAL
    remote_id: Optional[str] = None
    name: str = ""

    def __str__(self) -> str:
        label = f"{self.entity_type.value} '{self.name}'" if self.name else self.entity_type.value
        return f"{label} ({self.entity_id}): {self.reason} [{self.kind.value}]"


@dataclass
class TypeSummary:
    """Per-type counts."""

    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0


@dataclass
class SyncResult:
    """Result of a sync run."""

    status: SyncStatus = SyncStatus.COMPLETED
    dry_run: bool = False
    run_id: str = ""

    # Counts
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    archived: int = 0

    # Details
    failures: list[FailedEntity] = field(default_factory=list)
    by_type: dict[EntityType, TypeSummary] = field(default_factory=dict)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.COMPLETED and self.failed == 0

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + self.failed

    def counts(self) -> dict[str, int]:
        return {"succeeded": self.succeeded, "failed": self.failed, "skipped": self.skipped}

    def summary(self) -> str:
        text = f"{self.succeeded} synced, {self.skipped} skipped, {self.failed} failed"
        if self.archived:
            text += f", {self.archived} archived"
        return text

    def add_failure(self, failure: FailedEntity) -> None:
        self.failures.append(failure)
        self.failed += 1
        self.by_type.setdefault(failure.entity_type, TypeSummary()).failed += 1


@dataclass
class RunContext:
    """
    State owned by one run. Created when the run starts and discarded when
    it ends; the orchestrator holds at most one.
    """

    run_id: str
    dry_run: bool
    result: SyncResult
    cancel_event: threading.Event = field(default_factory=threading.Event)
    # Dry-run only: remote ids that would have been created earlier in the run
    planned: dict[tuple[EntityType, str], str] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class SyncOrchestrator:
    """
    Orchestrates the synchronization between local storage and the workspace.

    Phases:
    1. Snapshot dirty entities
    2. Build and prepare the workspace client
    3. Push each entity type in dependency order (type barrier between types)
    4. Archive remote nodes of locally deleted entities
    5. Report one outcome event
    """

    def __init__(
        self,
        repository: EntityRepositoryPort,
        mapper: RemoteMapper,
        workspace_factory: WorkspaceFactory,
        workspace_config: WorkspaceConfig,
        config: SyncConfig,
        event_bus: Optional[EventBus] = None,
        sequencer: Optional[DependencySequencer] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the orchestrator.

        Args:
            repository: Local entity storage
            mapper: Local id -> remote id mapping
            workspace_factory: Builds an authenticated workspace adapter
            workspace_config: Remote credentials
            config: Sync configuration
            event_bus: Optional event bus for progress events
            sequencer: Optional custom dependency sequencer
            clock: Source of ``synced_at`` timestamps
        """
        self.repository = repository
        self.mapper = mapper
        self.workspace_factory = workspace_factory
        self.workspace_config = workspace_config
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.sequencer = sequencer or DependencySequencer()
        self.dirty_tracker = DirtyTracker(repository, self.sequencer)
        self.clock = clock
        self.logger = logging.getLogger("SyncOrchestrator")

        self._run_lock = threading.Lock()
        self._context: Optional[RunContext] = None
        self._state = OrchestratorState.IDLE

    # -------------------------------------------------------------------------
    # Main Entry Points
    # -------------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == OrchestratorState.RUNNING

    def cancel(self) -> bool:
        """
        Ask the current run to stop at the next type barrier.

        Returns:
            False if no run is in progress
        """
        context = self._context
        if context is None:
            return False
        context.cancel_event.set()
        self.logger.info("Cancellation requested; stopping at the next type barrier")
        return True

    def run(
        self,
        progress_callback: Optional[Callable[[str, int, int], None]] = None,
    ) -> SyncResult:
        """
        Run one synchronization.

        Args:
            progress_callback: Optional callback(phase, current, total)

        Returns:
            SyncResult with counts and per-entity failures
        """
        dry_run = self.config.dry_run

        if not self.workspace_config.is_configured:
            self.logger.debug("Workspace credentials not configured; sync skipped")
            return SyncResult(status=SyncStatus.NOT_CONFIGURED, dry_run=dry_run)

        if not self._run_lock.acquire(blocking=False):
            self.logger.warning("A sync run is already in progress")
            return SyncResult(status=SyncStatus.ALREADY_RUNNING, dry_run=dry_run)

        context = RunContext(
            run_id=uuid4().hex[:12],
            dry_run=dry_run,
            result=SyncResult(dry_run=dry_run, started_at=self.clock()),
        )
        context.result.run_id = context.run_id

        try:
            self._context = context
            self._state = OrchestratorState.RUNNING
            self.event_bus.publish(SyncStarted(run_id=context.run_id, dry_run=dry_run))

            self._run(context, progress_callback)
        except Exception as e:
            self.logger.exception(f"Sync run {context.run_id} aborted by an unexpected error")
            context.result.status = SyncStatus.ABORTED
            context.result.error = f"Unexpected error: {type(e).__name__}: {e}"
        finally:
            context.result.finished_at = self.clock()
            self._state = OrchestratorState(context.result.status.value)
            self._context = None
            self._run_lock.release()

        self._publish_outcome(context.result)
        return context.result

    # -------------------------------------------------------------------------
    # Run Phases
    # -------------------------------------------------------------------------

    def _run(
        self,
        context: RunContext,
        progress_callback: Optional[Callable[[str, int, int], None]],
    ) -> None:
        result = context.result

        # Phase 1: Snapshot
        try:
            snapshot = self.dirty_tracker.snapshot()
            orphans = self._find_orphans()
        except RepositoryError as e:
            self.logger.error(f"Cannot read local state: {e}")
            result.status = SyncStatus.ABORTED
            result.error = f"Cannot read local state: {e}"
            return

        if snapshot.is_empty and not orphans:
            self.logger.info("No local changes to sync")
            return

        self._log_snapshot(snapshot, orphans)

        # Phase 2: Workspace client
        try:
            workspace = self._build_workspace()
        except ClientConstructionError as e:
            self.logger.error(f"Sync aborted: {e}")
            result.status = SyncStatus.ABORTED
            result.error = str(e)
            return

        # Phase 3: Push, one type at a time
        descriptors = self.sequencer.descriptors()
        total_phases = len(descriptors) + 1
        for index, descriptor in enumerate(descriptors, start=1):
            if context.cancelled:
                self._mark_cancelled(context, descriptor.entity_type)
                return

            entities = snapshot.for_type(descriptor.entity_type)
            if not entities:
                continue

            self._report_progress(progress_callback, descriptor.entity_type.label, index, total_phases)
            self._process_type(context, workspace, descriptor, entities)

        if context.cancelled:
            self._mark_cancelled(context, None)
            return

        # Phase 4: Deleted entities
        self._report_progress(progress_callback, "Deleted entities", total_phases, total_phases)
        self._prune(context, workspace)

        self.logger.info(f"Sync finished: {result.summary()}")

    def _build_workspace(self) -> WorkspacePort:
        try:
            workspace = self.workspace_factory(self.workspace_config, self.config)
            workspace.prepare()
        except ClientConstructionError:
            raise
        except WorkspaceError as e:
            raise ClientConstructionError(f"Cannot prepare workspace: {e}", cause=e)
        except Exception as e:
            raise ClientConstructionError(f"Cannot build workspace client: {e}", cause=e)
        return workspace

    def _process_type(
        self,
        context: RunContext,
        workspace: WorkspacePort,
        descriptor: EntityDescriptor,
        entities: tuple[Entity, ...],
    ) -> None:
        """Push every entity of one type; returns only when all are settled."""
        entity_type = descriptor.entity_type
        pool_size = max(1, min(self.config.concurrency, workspace.rate_budget, len(entities)))
        self.logger.info(
            f"Syncing {len(entities)} {entity_type.label.lower()} with {pool_size} worker(s)"
        )

        with ThreadPoolExecutor(
            max_workers=pool_size,
            thread_name_prefix=f"sync-{entity_type.value}",
        ) as pool:
            futures = [
                pool.submit(self._push_entity, context, workspace, descriptor, entity)
                for entity in entities
            ]
            outcomes = [future.result() for future in futures]

        # Recorded after the barrier, in traversal order
        for entity, outcome in zip(entities, outcomes):
            self._record(context, entity, outcome)

    def _push_entity(
        self,
        context: RunContext,
        workspace: WorkspacePort,
        descriptor: EntityDescriptor,
        entity: Entity,
    ) -> CommandResult:
        """Resolve parents and push one entity. Runs on a worker thread."""
        parents: dict[str, str] = {}
        for ref in descriptor.parent_refs:
            local_parent = getattr(entity, ref.field, None)
            if not local_parent:
                if ref.required:
                    return CommandResult.fail(
                        f"{ref.field} is not set", kind=FailureKind.PARENT_UNAVAILABLE
                    )
                continue

            remote_parent = self._resolve(context, ref.entity_type, local_parent)
            if remote_parent is None:
                return CommandResult.fail(
                    f"parent {ref.entity_type.value} {local_parent} is not in the workspace",
                    kind=FailureKind.PARENT_UNAVAILABLE,
                )
            parents[ref.field] = remote_parent

        references: dict[str, list[str]] = {}
        for ref in descriptor.reference_lists:
            resolved = []
            for local_ref in getattr(entity, ref.field, None) or []:
                remote_ref = self._resolve(context, ref.entity_type, local_ref)
                if remote_ref is None:
                    self.logger.warning(
                        f"{entity.entity_type.value} {entity.id}: {ref.entity_type.value} "
                        f"{local_ref} is not in the workspace; reference omitted"
                    )
                    continue
                resolved.append(remote_ref)
            references[ref.field] = resolved

        command = PushEntityCommand(
            workspace=workspace,
            mapper=self.mapper,
            repository=self.repository,
            payload=EntityPayload(entity=entity, parents=parents, references=references),
            remote_id=self._resolve(context, entity.entity_type, entity.id),
            clock=self.clock,
            dry_run=context.dry_run,
        )
        return command.execute()

    def _record(self, context: RunContext, entity: Entity, outcome: CommandResult) -> None:
        result = context.result
        entity_type = entity.entity_type
        summary = result.by_type.setdefault(entity_type, TypeSummary())

        if not outcome.success:
            result.add_failure(FailedEntity(
                entity_type=entity_type,
                entity_id=entity.id,
                reason=outcome.error or "unknown error",
                kind=outcome.failure_kind or FailureKind.TERMINAL,
                remote_id=self.mapper.lookup(entity_type, entity.id),
                name=entity.display_name(),
            ))
            return

        push: Optional[PushOutcome] = outcome.data
        if push is not None:
            if push.created:
                result.created += 1
                summary.created += 1
                if context.dry_run:
                    context.planned[(entity_type, entity.id)] = push.remote_id
            else:
                result.updated += 1
                summary.updated += 1

        if outcome.skipped:
            result.skipped += 1
            summary.skipped += 1
        else:
            result.succeeded += 1
            summary.succeeded += 1

    def _resolve(self, context: RunContext, entity_type: EntityType, local_id: str) -> Optional[str]:
        remote_id = self.mapper.lookup(entity_type, local_id)
        if remote_id is None and context.dry_run:
            remote_id = context.planned.get((entity_type, local_id))
        return remote_id

    # -------------------------------------------------------------------------
    # Deleted Entities
    # -------------------------------------------------------------------------

    def _find_orphans(self) -> list[tuple[EntityType, str, str]]:
        """Mappings whose local entity no longer exists, children first."""
        orphans = []
        for entity_type in reversed(self.sequencer.type_order()):
            mapped = self.mapper.entries(entity_type)
            if not mapped:
                continue
            existing = {e.id for e in self.repository.list_all(entity_type)}
            for local_id, remote_id in sorted(mapped.items()):
                if local_id not in existing:
                    orphans.append((entity_type, local_id, remote_id))
        return orphans

    def _prune(self, context: RunContext, workspace: WorkspacePort) -> None:
        result = context.result
        orphans = self._find_orphans()
        if not orphans:
            return

        self.logger.info(f"{len(orphans)} remote node(s) belong to deleted entities")
        batch = CommandBatch(stop_on_error=False)
        for entity_type, local_id, remote_id in orphans:
            batch.add(ArchiveNodeCommand(
                workspace=workspace,
                mapper=self.mapper,
                entity_type=entity_type,
                local_id=local_id,
                remote_id=remote_id,
                archive=self.config.archive_deleted,
                dry_run=context.dry_run,
            ))
        batch.execute_all()

        for (entity_type, local_id, remote_id), outcome in zip(orphans, batch.results):
            if outcome.success:
                result.archived += 1
            else:
                result.add_failure(FailedEntity(
                    entity_type=entity_type,
                    entity_id=local_id,
                    reason=outcome.error or "unknown error",
                    kind=outcome.failure_kind or FailureKind.TERMINAL,
                    remote_id=remote_id,
                ))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _mark_cancelled(self, context: RunContext, next_type: Optional[EntityType]) -> None:
        context.result.status = SyncStatus.CANCELLED
        context.result.error = "Sync cancelled"
        where = f"before {next_type.value}" if next_type else "before deleting"
        self.logger.info(f"Sync cancelled {where}: {context.result.summary()}")

    def _publish_outcome(self, result: SyncResult) -> None:
        if result.status == SyncStatus.COMPLETED and result.failed == 0:
            self.event_bus.publish(SyncSucceeded(
                run_id=result.run_id,
                summary=result.summary(),
                succeeded=result.succeeded,
                skipped=result.skipped,
            ))
            return

        message = result.error or f"{result.failed} of {result.total} entities failed to sync"
        self.event_bus.publish(SyncFailed(
            run_id=result.run_id,
            message=message,
            failed=result.failed,
        ))

    def _log_snapshot(self, snapshot: DirtySnapshot, orphans: list) -> None:
        counts = ", ".join(f"{t.value}={n}" for t, n in snapshot.counts().items())
        self.logger.info(
            f"{snapshot.total} dirty entities ({counts or 'none'}), {len(orphans)} deleted"
        )

    def _report_progress(
        self,
        callback: Optional[Callable],
        phase: str,
        current: int,
        total: int,
    ) -> None:
        """Report progress to callback if provided."""
        if callback:
            callback(phase, current, total)
        self.logger.debug(f"Phase {current}/{total}: {phase}")
