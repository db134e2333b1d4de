"""Tests for the Notion adapter."""

import json
from unittest.mock import Mock

import pytest
import requests

from novel2notion.adapters.notion import NotionAdapter, NotionApiClient, notion_workspace_factory
from novel2notion.adapters.storage import InMemoryEntityRepository
from novel2notion.application.commands import FailureKind, PushEntityCommand
from novel2notion.application.sync import RemoteMapper
from novel2notion.core.domain import Chapter, Character, Episode, Synopsis, Tag, Work
from novel2notion.core.domain.enums import EntityType
from novel2notion.core.ports.config_provider import SyncConfig, WorkspaceConfig
from novel2notion.core.ports.workspace import (
    ClientConstructionError,
    EntityPayload,
    NotFoundError,
    PermissionError,
    WorkspaceError,
)


@pytest.fixture
def config():
    return WorkspaceConfig(api_key="secret-token", root_page_id="root-page")


@pytest.fixture
def containers():
    return RemoteMapper()


@pytest.fixture
def client():
    client = Mock()
    client.retrieve_page.return_value = {"id": "root-page"}
    ids = iter(f"new-{i}" for i in range(1, 100))
    client.create_database.side_effect = lambda parent, title, props: {"id": next(ids)}
    client.create_page.side_effect = lambda parent, props, children=None: {"id": next(ids)}
    client.iter_children.return_value = iter([])
    return client


@pytest.fixture
def adapter(config, containers, client):
    return NotionAdapter(config, containers, client=client)


class TestConstruction:
    """Tests for adapter construction."""

    def test_requires_root_page(self, containers, client):
        with pytest.raises(ClientConstructionError, match="root page"):
            NotionAdapter(WorkspaceConfig(api_key="k"), containers, client=client)

    def test_rate_budget_from_limiter(self, adapter, client):
        client.limiter.budget = 3

        assert adapter.rate_budget == 3
        assert adapter.name == "Notion"

    def test_factory_builds_configured_client(self, config, containers):
        session = Mock()
        sync = SyncConfig(dry_run=True, requests_per_second=2.0, max_attempts=2)

        adapter = notion_workspace_factory(containers, session_factory=lambda: session)(config, sync)

        assert adapter.client.dry_run
        assert adapter.client.retry_policy.max_attempts == 2
        assert adapter.rate_budget == 2


class TestPrepare:
    """Tests for prepare()."""

    def test_creates_missing_databases(self, adapter, client, containers):
        adapter.prepare()

        titles = [c.args[1] for c in client.create_database.call_args_list]
        assert titles == ["Works", "Tag Categories", "Tags"]
        assert containers.lookup_container("works") == "new-1"
        tags_schema = client.create_database.call_args_list[2].args[2]
        assert tags_schema["Category"]["relation"]["database_id"] == "new-2"

    def test_reuses_existing_databases(self, adapter, client, containers):
        for key in ("works", "tag_categories", "tags"):
            containers.record_container(key, f"db-{key}")
        client.retrieve_database.side_effect = lambda db: {
            "id": db,
            "properties": {
                "Name": {"type": "title"},
                "Title": {"type": "title"},
                "Order": {}, "New": {}, "Category": {}, "Tags": {}, "Created": {}, "Updated": {},
            },
        }

        adapter.prepare()

        client.create_database.assert_not_called()
        client.update_database.assert_not_called()

    def test_adds_missing_properties(self, adapter, client, containers):
        containers.record_container("tag_categories", "db-cats")
        client.retrieve_database.return_value = {
            "id": "db-cats",
            "properties": {"Label": {"type": "title"}},
        }

        adapter.prepare()

        client.update_database.assert_any_call("db-cats", {"Order": {"number": {}}})

    def test_recreates_archived_database(self, adapter, client, containers):
        containers.record_container("works", "db-old")
        client.retrieve_database.return_value = {"id": "db-old", "archived": True}

        adapter.prepare()

        assert containers.lookup_container("works") == "new-1"

    def test_recreates_deleted_database(self, adapter, client, containers):
        containers.record_container("works", "db-old")
        client.retrieve_database.side_effect = NotFoundError("gone", status=404)

        adapter.prepare()

        assert containers.lookup_container("works") != "db-old"

    @pytest.mark.parametrize("error", [
        NotFoundError("missing", status=404),
        PermissionError("denied", status=403),
    ])
    def test_root_page_not_shared(self, adapter, client, error):
        client.retrieve_page.side_effect = error

        with pytest.raises(ClientConstructionError, match="not shared"):
            adapter.prepare()

    def test_dry_run_creates_nothing(self, config, containers, client):
        adapter = NotionAdapter(config, containers, dry_run=True, client=client)

        adapter.prepare()

        client.create_database.assert_not_called()
        assert containers.lookup_container("works") is None
        assert adapter._database_id("works") == "dry-run:database:works"


class TestCreate:
    """Tests for create()."""

    @pytest.fixture
    def prepared(self, adapter, client):
        adapter.prepare()
        client.create_page.reset_mock()
        return adapter

    def test_work_goes_into_works_database(self, prepared, client):
        remote_id = prepared.create(EntityType.WORK, EntityPayload(Work(id="w1", title="Moon")))

        parent, props, _ = client.create_page.call_args.args
        assert parent == {"database_id": "new-1"}
        assert props["Title"]["title"][0]["text"]["content"] == "Moon"
        assert remote_id.startswith("new-")

    def test_tag_relation(self, prepared, client):
        payload = EntityPayload(Tag(id="t1", name="fantasy"), parents={"category_id": "page-cat"})

        prepared.create(EntityType.TAG, payload)

        parent, props, _ = client.create_page.call_args.args
        assert parent == {"database_id": "new-3"}
        assert props["Category"] == {"relation": [{"id": "page-cat"}]}

    def test_character_under_group_page(self, prepared, client, containers):
        payload = EntityPayload(Character(id="c1", work_id="w1", name="Ann"), parents={"work_id": "page-w1"})

        prepared.create(EntityType.CHARACTER, payload)
        prepared.create(EntityType.CHARACTER, payload)

        calls = client.create_page.call_args_list
        # One group page, then two character pages under it
        assert calls[0].args[0] == {"page_id": "page-w1"}
        group_id = containers.lookup_container("page-w1/characters")
        assert [c.args[0] for c in calls[1:]] == [{"page_id": group_id}] * 2

    def test_synopsis_under_work_page(self, prepared, client):
        payload = EntityPayload(Synopsis(id="s1", work_id="w1"), parents={"work_id": "page-w1"})

        prepared.create(EntityType.SYNOPSIS, payload)

        assert client.create_page.call_args.args[0] == {"page_id": "page-w1"}

    def test_episode_under_chapter(self, prepared, client):
        payload = EntityPayload(
            Episode(id="e1", work_id="w1", chapter_id="ch1", episode_number=1),
            parents={"work_id": "page-w1", "chapter_id": "page-ch1"},
        )

        prepared.create(EntityType.EPISODE, payload)

        assert client.create_page.call_args.args[0] == {"page_id": "page-ch1"}

    def test_episode_without_chapter_under_serial(self, prepared, client, containers):
        payload = EntityPayload(Episode(id="e1", work_id="w1"), parents={"work_id": "page-w1"})

        prepared.create(EntityType.EPISODE, payload)

        serial = containers.lookup_container("page-w1/serial")
        assert client.create_page.call_args.args[0] == {"page_id": serial}

    def test_missing_work_parent(self, prepared):
        payload = EntityPayload(Chapter(id="ch1", work_id="w1"))

        with pytest.raises(WorkspaceError, match="no remote work_id"):
            prepared.create(EntityType.CHAPTER, payload)

    def test_deleted_group_page_is_recreated(self, prepared, client, containers):
        containers.record_container("page-w1/characters", "stale-group")
        created = []

        def create_page(parent, props, children=None):
            if parent == {"page_id": "stale-group"}:
                raise NotFoundError("gone", status=404)
            created.append(parent)
            return {"id": f"fresh-{len(created)}"}

        client.create_page.side_effect = create_page
        payload = EntityPayload(Character(id="c1", work_id="w1", name="Ann"), parents={"work_id": "page-w1"})

        remote_id = prepared.create(EntityType.CHARACTER, payload)

        assert containers.lookup_container("page-w1/characters") == "fresh-1"
        assert created == [{"page_id": "page-w1"}, {"page_id": "fresh-1"}]
        assert remote_id == "fresh-2"

    def test_not_found_without_group_propagates(self, prepared, client):
        client.create_page.side_effect = NotFoundError("gone", status=404)

        with pytest.raises(NotFoundError):
            prepared.create(EntityType.WORK, EntityPayload(Work(id="w1", title="Moon")))

    def test_database_needed_before_prepare(self, adapter):
        with pytest.raises(WorkspaceError, match="prepare"):
            adapter.create(EntityType.WORK, EntityPayload(Work(id="w1", title="Moon")))


class TestUpdateAndArchive:
    """Tests for update() and archive()."""

    def test_update_replaces_body_but_keeps_subpages(self, adapter, client):
        client.iter_children.return_value = iter([
            {"id": "b1", "type": "paragraph"},
            {"id": "b2", "type": "child_page"},
            {"id": "b3", "type": "heading_1"},
            {"id": "b4", "type": "child_database"},
        ])
        payload = EntityPayload(Work(id="w1", title="Moon", description="New text"))

        adapter.update("page-w1", payload)

        assert client.update_page.call_args.args[0] == "page-w1"
        assert "Title" in client.update_page.call_args.kwargs["properties"]
        assert [c.args[0] for c in client.delete_block.call_args_list] == ["b1", "b3"]
        page_id, blocks = client.append_children.call_args.args
        assert page_id == "page-w1"
        assert blocks[0]["paragraph"]["rich_text"][0]["text"]["content"] == "New text"

    def test_update_with_empty_body(self, adapter, client):
        adapter.update("page-c1", EntityPayload(Chapter(id="ch1", title="One")))

        client.append_children.assert_not_called()

    def test_archive(self, adapter, client):
        adapter.archive("page-1")

        client.update_page.assert_called_once_with("page-1", archived=True)


def api_response(status=200, body=None):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body or {}).encode("utf-8")
    response.reason = "OK" if status < 400 else "Error"
    response.encoding = "utf-8"
    return response


class TestLongBodyCreate:
    """Creates whose body needs more than one request."""

    @pytest.fixture
    def requests_made(self):
        return []

    @pytest.fixture
    def session(self, requests_made):
        failing_appends = [api_response(400, {"message": "block rejected"})]

        def respond(method, url, **kwargs):
            path = url.split("/v1/", 1)[1]
            requests_made.append((method, path))
            if method == "POST" and path == "pages":
                return api_response(200, {"id": "page-1"})
            if method == "PATCH" and path == "blocks/page-1/children" and failing_appends:
                return failing_appends.pop()
            if method == "GET":
                return api_response(200, {"results": [], "has_more": False})
            return api_response(200, {"id": "page-1"})

        session = Mock()
        session.request.side_effect = respond
        return session

    @pytest.fixture
    def long_adapter(self, config, containers, session):
        limiter = Mock()
        limiter.acquire.return_value = 0.0
        client = NotionApiClient(config, limiter=limiter, session=session, sleep=lambda s: None)
        containers.record_container("works", "db-works")
        return NotionAdapter(config, containers, client=client)

    def push(self, adapter, mapper, repository):
        work = repository.get(EntityType.WORK, "w1")
        return PushEntityCommand(
            workspace=adapter,
            mapper=mapper,
            repository=repository,
            payload=EntityPayload(work),
            remote_id=mapper.lookup(EntityType.WORK, "w1"),
        ).execute()

    def test_failed_append_does_not_duplicate_page(self, long_adapter, containers, requests_made):
        repository = InMemoryEntityRepository()
        description = "\n".join(f"Line {i}" for i in range(150))
        repository.create(Work(id="w1", title="Moon", description=description))

        first = self.push(long_adapter, containers, repository)

        assert not first.success
        assert first.failure_kind == FailureKind.TERMINAL
        assert containers.lookup(EntityType.WORK, "w1") == "page-1"
        assert repository.get(EntityType.WORK, "w1").needs_sync

        second = self.push(long_adapter, containers, repository)

        assert second.success
        assert not second.data.created
        assert requests_made.count(("POST", "pages")) == 1
        assert ("PATCH", "pages/page-1") in requests_made
        assert not repository.get(EntityType.WORK, "w1").needs_sync
