"""Shared fixtures and fakes for the sync engine tests."""

import itertools
import threading
from typing import Callable, Optional

import pytest

from novel2notion.application.sync import RemoteMapper, SyncOrchestrator
from novel2notion.adapters.storage import InMemoryEntityRepository
from novel2notion.core.domain import EventBus
from novel2notion.core.domain.enums import EntityType
from novel2notion.core.ports.config_provider import SyncConfig, WorkspaceConfig
from novel2notion.core.ports.workspace import EntityPayload, WorkspacePort


class FakeWorkspace(WorkspacePort):
    """
    In-memory workspace that records every call.

    ``failures`` maps a local entity id (or a remote id for archive) to the
    exception the corresponding call raises.
    """

    def __init__(self, rate_budget: int = 3):
        self._budget = rate_budget
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self.on_create: Optional[Callable[[EntityPayload], None]] = None
        self.prepared = 0
        self.archived: list[str] = []
        self.active = 0
        self.max_active = 0

    @property
    def name(self) -> str:
        return "Fake"

    @property
    def rate_budget(self) -> int:
        return self._budget

    def test_connection(self) -> bool:
        return True

    def prepare(self) -> None:
        self.prepared += 1

    def create(self, entity_type: EntityType, payload: EntityPayload) -> str:
        self._enter()
        try:
            self._maybe_fail(payload.entity.id)
            if self.on_create:
                self.on_create(payload)
            with self._lock:
                remote_id = f"page-{next(self._ids)}"
                self.calls.append(("create", entity_type, payload.entity.id, remote_id, payload))
            return remote_id
        finally:
            self._leave()

    def update(self, remote_id: str, payload: EntityPayload) -> None:
        self._enter()
        try:
            self._maybe_fail(payload.entity.id)
            with self._lock:
                self.calls.append(("update", payload.entity_type, payload.entity.id, remote_id, payload))
        finally:
            self._leave()

    def archive(self, remote_id: str) -> None:
        self._maybe_fail(remote_id)
        with self._lock:
            self.archived.append(remote_id)

    # Helpers

    def ops(self, op: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == op]

    def touched(self, local_id: str) -> list[tuple]:
        return [c for c in self.calls if c[2] == local_id]

    def payload_for(self, local_id: str) -> EntityPayload:
        return self.touched(local_id)[-1][4]

    def _maybe_fail(self, key: str) -> None:
        error = self.failures.get(key)
        if error is not None:
            raise error

    def _enter(self) -> None:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def _leave(self) -> None:
        with self._lock:
            self.active -= 1


@pytest.fixture
def repository():
    return InMemoryEntityRepository()


@pytest.fixture
def mapper():
    return RemoteMapper()


@pytest.fixture
def workspace():
    return FakeWorkspace()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def workspace_config():
    return WorkspaceConfig(api_key="secret-token", root_page_id="root-page")


@pytest.fixture
def sync_config():
    return SyncConfig(dry_run=False, concurrency=3)


@pytest.fixture
def orchestrator(repository, mapper, workspace, workspace_config, sync_config, event_bus):
    return SyncOrchestrator(
        repository=repository,
        mapper=mapper,
        workspace_factory=lambda config, sync: workspace,
        workspace_config=workspace_config,
        config=sync_config,
        event_bus=event_bus,
    )
