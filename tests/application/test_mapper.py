"""Tests for the remote mapper."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from novel2notion.adapters.storage import InMemoryEntityRepository, JsonMappingStore
from novel2notion.application.sync import RemoteMapper
from novel2notion.core.domain import Work
from novel2notion.core.domain.enums import EntityType
from novel2notion.core.ports.mapping_store import MappingStorePort


SYNCED_AT = datetime(2024, 5, 2, tzinfo=timezone.utc)


class MemoryStore(MappingStorePort):
    def __init__(self, document=None):
        self.document = document or {}
        self.saves = 0

    def load(self):
        return self.document

    def save(self, document):
        self.document = document
        self.saves += 1


class TestEntityMappings:
    """Tests for entity id mappings."""

    def test_record_and_lookup(self):
        mapper = RemoteMapper()

        mapper.record(EntityType.WORK, "w1", "page-1")

        assert mapper.lookup(EntityType.WORK, "w1") == "page-1"
        assert mapper.lookup(EntityType.CHARACTER, "w1") is None
        assert mapper.count() == 1

    def test_record_same_id_twice_is_harmless(self):
        mapper = RemoteMapper()
        mapper.record(EntityType.WORK, "w1", "page-1")

        mapper.record(EntityType.WORK, "w1", "page-1")

        assert mapper.count(EntityType.WORK) == 1

    def test_record_conflict_rejected(self):
        mapper = RemoteMapper()
        mapper.record(EntityType.WORK, "w1", "page-1")

        with pytest.raises(ValueError, match="already mapped"):
            mapper.record(EntityType.WORK, "w1", "page-2")

        assert mapper.lookup(EntityType.WORK, "w1") == "page-1"

    def test_forget(self):
        mapper = RemoteMapper()
        mapper.record(EntityType.WORK, "w1", "page-1")

        assert mapper.forget(EntityType.WORK, "w1") == "page-1"
        assert mapper.forget(EntityType.WORK, "w1") is None
        assert mapper.entries(EntityType.WORK) == {}


class TestCommit:
    """Tests for the mapping + mark-synced commit."""

    def test_records_then_marks(self):
        repository = InMemoryEntityRepository()
        work = repository.create(Work(id="w1", title="W1"))
        mapper = RemoteMapper()

        marked = mapper.commit(
            repository, EntityType.WORK, "w1", "page-1",
            version=work.updated_at, synced_at=SYNCED_AT, record=True,
        )

        assert marked
        assert mapper.lookup(EntityType.WORK, "w1") == "page-1"
        assert not repository.get(EntityType.WORK, "w1").needs_sync

    def test_mapping_kept_when_marking_fails(self):
        repository = Mock()
        repository.mark_synced.return_value = False
        mapper = RemoteMapper()

        marked = mapper.commit(
            repository, EntityType.WORK, "w1", "page-1",
            version=SYNCED_AT, synced_at=SYNCED_AT, record=True,
        )

        assert not marked
        assert mapper.lookup(EntityType.WORK, "w1") == "page-1"

    def test_update_commit_does_not_record(self):
        repository = Mock()
        repository.mark_synced.return_value = True
        mapper = RemoteMapper()

        mapper.commit(repository, EntityType.WORK, "w1", "page-1", version=SYNCED_AT, synced_at=SYNCED_AT)

        assert mapper.count() == 0
        repository.mark_synced.assert_called_once_with(EntityType.WORK, "w1", SYNCED_AT, SYNCED_AT)


class TestContainers:
    """Tests for database and group page ids."""

    def test_record_lookup_forget(self):
        mapper = RemoteMapper()
        mapper.record_container("works", "db-1")

        assert mapper.lookup_container("works") == "db-1"
        assert mapper.forget_container("works") == "db-1"
        assert mapper.lookup_container("works") is None

    def test_forget_by_prefix(self):
        mapper = RemoteMapper()
        mapper.record_container("page-1/characters", "g1")
        mapper.record_container("page-1/serial", "g2")
        mapper.record_container("page-10/serial", "g3")

        assert mapper.forget_containers("page-1/") == 2
        assert mapper.lookup_container("page-10/serial") == "g3"


class TestPersistence:
    """Tests for loading and saving through a mapping store."""

    def test_every_mutation_saved(self):
        store = MemoryStore()
        mapper = RemoteMapper(store)

        mapper.record(EntityType.WORK, "w1", "page-1")
        mapper.record_container("works", "db-1")

        assert store.saves == 2
        assert store.document == {
            "entities": {"work": {"w1": "page-1"}},
            "containers": {"works": "db-1"},
        }

    def test_loaded_from_store(self):
        store = MemoryStore({
            "entities": {"work": {"w1": "page-1"}, "unknown": {"x": "y"}},
            "containers": {"works": "db-1"},
        })

        mapper = RemoteMapper(store)

        assert mapper.lookup(EntityType.WORK, "w1") == "page-1"
        assert mapper.lookup_container("works") == "db-1"
        assert mapper.count() == 1

    def test_survives_restart_with_json_store(self, tmp_path):
        path = tmp_path / "mapping.json"
        RemoteMapper(JsonMappingStore(path)).record(EntityType.CHARACTER, "c1", "page-7")

        reloaded = RemoteMapper(JsonMappingStore(path))

        assert reloaded.lookup(EntityType.CHARACTER, "c1") == "page-7"
