"""
Notion Adapter - Implements WorkspacePort for Notion.

This is the main entry point for Notion integration.

Remote layout under the root page:

    Works (database)            one row per work
      <work page>
        Synopsis
        Characters / <character pages>
        Settings / <setting pages>
        Serial / <chapter pages> / <episode pages>
    Tag Categories (database)
    Tags (database)             Category relation -> Tag Categories
"""

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Optional

from ...core.domain.enums import EntityType
from ...core.ports.config_provider import SyncConfig, WorkspaceConfig
from ...core.ports.workspace import (
    AuthenticationError,
    ClientConstructionError,
    EntityPayload,
    NotFoundError,
    PermissionError,
    WorkspaceError,
    WorkspacePort,
)
from ..formatters.blocks import DATABASE_TITLE_PROPERTIES, NotionBlockFormatter
from .client import NotionApiClient
from .rate_limit import RateLimiter
from .retry import RetryPolicy

if TYPE_CHECKING:
    from ...application.sync.mapper import RemoteMapper


# Databases created under the root page: key -> (title, entity type stored)
DATABASES: dict[str, tuple[str, EntityType]] = {
    "works": ("Works", EntityType.WORK),
    "tag_categories": ("Tag Categories", EntityType.TAG_CATEGORY),
    "tags": ("Tags", EntityType.TAG),
}

# Group pages created lazily under each work page: key -> title
GROUP_PAGES: dict[str, str] = {
    "characters": "Characters",
    "settings": "Settings",
    "serial": "Serial",
}

# Child blocks that are pages of their own and survive body replacement
PRESERVED_BLOCK_TYPES = frozenset({"child_page", "child_database"})


class NotionAdapter(WorkspacePort):
    """
    Notion implementation of the WorkspacePort.

    Translates between domain entities and Notion pages. Database and group
    page ids are kept in the mapper's container table so they survive runs.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        containers: "RemoteMapper",
        dry_run: bool = False,
        formatter: Optional[NotionBlockFormatter] = None,
        client: Optional[NotionApiClient] = None,
    ):
        """
        Initialize the Notion adapter.

        Args:
            config: Workspace configuration
            containers: Store for database and group page ids
            dry_run: If True, prepare() only verifies
            formatter: Optional custom block formatter
            client: Optional pre-built API client
        """
        if not config.root_page_id:
            raise ClientConstructionError("Notion root page id is not set")

        self.config = config
        self.containers = containers
        self._dry_run = dry_run
        self.formatter = formatter or NotionBlockFormatter()
        self.logger = logging.getLogger("NotionAdapter")

        self._client = client or NotionApiClient(config, dry_run=dry_run)
        self._container_lock = threading.Lock()
        self._databases: dict[str, str] = {}
        self._title_properties: dict[EntityType, str] = dict(DATABASE_TITLE_PROPERTIES)

    # -------------------------------------------------------------------------
    # WorkspacePort Implementation - Properties
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "Notion"

    @property
    def rate_budget(self) -> int:
        return self._client.limiter.budget

    @property
    def client(self) -> NotionApiClient:
        return self._client

    def test_connection(self) -> bool:
        return self._client.test_connection()

    # -------------------------------------------------------------------------
    # WorkspacePort Implementation - Bootstrap
    # -------------------------------------------------------------------------

    def prepare(self) -> None:
        """Verify the root page and make sure the three databases exist."""
        root = self.config.root_page_id
        try:
            self._client.retrieve_page(root)
        except (NotFoundError, PermissionError) as e:
            raise ClientConstructionError(
                f"Root page {root} is not shared with the integration", cause=e
            )
        except AuthenticationError as e:
            raise ClientConstructionError(str(e), cause=e)

        self._ensure_database("works", self._works_schema())
        self._ensure_database("tag_categories", self._tag_categories_schema())
        self._ensure_database("tags", self._tags_schema())

    def _ensure_database(self, key: str, schema: dict[str, Any]) -> str:
        title, entity_type = DATABASES[key]
        database_id = self.containers.lookup_container(key)

        if database_id:
            try:
                database = self._client.retrieve_database(database_id)
            except NotFoundError:
                database = None

            if database and not database.get("archived") and not database.get("in_trash"):
                self._remember_title_property(entity_type, database)
                self._patch_missing_properties(database_id, database, schema)
                self._databases[key] = database_id
                return database_id

            self.logger.warning(f"Database '{title}' ({database_id}) is gone; recreating it")

        if self._dry_run:
            self.logger.info(f"[DRY-RUN] Would create database '{title}'")
            placeholder = f"dry-run:database:{key}"
            self._databases[key] = placeholder
            return placeholder

        created = self._client.create_database(self.config.root_page_id, title, schema)
        database_id = self._require_id(created, f"database '{title}'")
        self.containers.record_container(key, database_id)
        self._databases[key] = database_id
        self.logger.info(f"Created database '{title}' ({database_id})")
        return database_id

    def _patch_missing_properties(
        self,
        database_id: str,
        database: dict[str, Any],
        schema: dict[str, Any],
    ) -> None:
        existing = database.get("properties", {})
        missing = {
            name: definition for name, definition in schema.items()
            if "title" not in definition and name not in existing
        }
        if not missing:
            return
        if self._dry_run:
            self.logger.info(f"[DRY-RUN] Would add properties {sorted(missing)} to {database_id}")
            return
        self.logger.info(f"Adding properties {sorted(missing)} to database {database_id}")
        self._client.update_database(database_id, missing)

    def _remember_title_property(self, entity_type: EntityType, database: dict[str, Any]) -> None:
        for name, prop in database.get("properties", {}).items():
            if prop.get("type") == "title":
                self._title_properties[entity_type] = name
                return

    def _works_schema(self) -> dict[str, Any]:
        return {
            "Title": {"title": {}},
            "Category": {"select": {}},
            "Tags": {"multi_select": {}},
            "Created": {"date": {}},
            "Updated": {"date": {}},
        }

    def _tag_categories_schema(self) -> dict[str, Any]:
        return {
            "Name": {"title": {}},
            "Order": {"number": {}},
        }

    def _tags_schema(self) -> dict[str, Any]:
        return {
            "Name": {"title": {}},
            "Order": {"number": {}},
            "New": {"checkbox": {}},
            "Category": {"relation": {
                "database_id": self._databases.get("tag_categories")
                or self.containers.lookup_container("tag_categories"),
                "single_property": {},
            }},
        }

    # -------------------------------------------------------------------------
    # WorkspacePort Implementation - Write Operations
    # -------------------------------------------------------------------------

    def create(self, entity_type: EntityType, payload: EntityPayload) -> str:
        properties = self.formatter.properties(payload, self._title_properties.get(entity_type))
        children = self.formatter.children(payload)

        parent, group_key = self._parent_for(entity_type, payload)
        try:
            page = self._client.create_page(parent, properties, children)
        except NotFoundError:
            if group_key is None:
                raise
            # The group page was deleted remotely; build a fresh one and retry once
            self.logger.warning(f"Group page {group_key} is gone; recreating it")
            self.containers.forget_container(group_key)
            parent, _ = self._parent_for(entity_type, payload)
            page = self._client.create_page(parent, properties, children)

        return self._require_id(page, f"{entity_type.value} {payload.entity.id}")

    def update(self, remote_id: str, payload: EntityPayload) -> None:
        properties = self.formatter.properties(
            payload, self._title_properties.get(payload.entity_type)
        )
        self._client.update_page(remote_id, properties=properties)
        self._replace_children(remote_id, self.formatter.children(payload))

    def archive(self, remote_id: str) -> None:
        self._client.update_page(remote_id, archived=True)
        self.logger.info(f"Archived page {remote_id}")

    def _replace_children(self, page_id: str, children: list[dict]) -> None:
        """Swap the page body, leaving nested pages and databases alone."""
        stale = [
            block["id"] for block in self._client.iter_children(page_id)
            if block.get("type") not in PRESERVED_BLOCK_TYPES
        ]
        for block_id in stale:
            self._client.delete_block(block_id)
        if children:
            self._client.append_children(page_id, children)

    # -------------------------------------------------------------------------
    # Parents and Containers
    # -------------------------------------------------------------------------

    def _parent_for(
        self,
        entity_type: EntityType,
        payload: EntityPayload,
    ) -> tuple[dict[str, str], Optional[str]]:
        """
        Notion parent object for a new page.

        Returns:
            (parent, container key of the group page used, or None)
        """
        if entity_type == EntityType.WORK:
            return {"database_id": self._database_id("works")}, None
        if entity_type == EntityType.TAG_CATEGORY:
            return {"database_id": self._database_id("tag_categories")}, None
        if entity_type == EntityType.TAG:
            return {"database_id": self._database_id("tags")}, None

        work_page = self._required_parent(payload, "work_id")

        if entity_type == EntityType.SYNOPSIS:
            return {"page_id": work_page}, None

        if entity_type == EntityType.EPISODE and payload.parents.get("chapter_id"):
            return {"page_id": payload.parents["chapter_id"]}, None

        group = {
            EntityType.CHARACTER: "characters",
            EntityType.SETTING: "settings",
            EntityType.CHAPTER: "serial",
            EntityType.EPISODE: "serial",
        }[entity_type]
        key = f"{work_page}/{group}"
        return {"page_id": self._group_page(work_page, group)}, key

    def _group_page(self, work_page: str, group: str) -> str:
        key = f"{work_page}/{group}"
        existing = self.containers.lookup_container(key)
        if existing:
            return existing

        # Serialized so two workers never create the same group page
        with self._container_lock:
            existing = self.containers.lookup_container(key)
            if existing:
                return existing

            title = GROUP_PAGES[group]
            page = self._client.create_page(
                {"page_id": work_page},
                {"title": {"title": self.formatter.rich_text(title)}},
            )
            page_id = self._require_id(page, f"group page '{title}'")
            self.containers.record_container(key, page_id)
            self.logger.debug(f"Created group page '{title}' under {work_page}")
            return page_id

    def _database_id(self, key: str) -> str:
        database_id = self._databases.get(key) or self.containers.lookup_container(key)
        if not database_id:
            raise WorkspaceError(f"Database '{key}' does not exist; prepare() has not run")
        return database_id

    @staticmethod
    def _required_parent(payload: EntityPayload, field_name: str) -> str:
        remote_id = payload.parents.get(field_name)
        if not remote_id:
            raise WorkspaceError(
                f"{payload.entity_type.value} {payload.entity.id} has no remote {field_name}"
            )
        return remote_id

    @staticmethod
    def _require_id(response: dict[str, Any], what: str) -> str:
        remote_id = response.get("id")
        if not remote_id:
            raise WorkspaceError(f"Notion returned no id for {what}")
        return remote_id


def notion_workspace_factory(
    containers: "RemoteMapper",
    session_factory: Optional[Callable[[], Any]] = None,
) -> Callable[[WorkspaceConfig, SyncConfig], NotionAdapter]:
    """
    Build the factory the orchestrator uses to construct a NotionAdapter.

    Args:
        containers: Store for database and group page ids
        session_factory: Optional callable returning a requests session
    """

    def factory(config: WorkspaceConfig, sync: SyncConfig) -> NotionAdapter:
        client = NotionApiClient(
            config,
            limiter=RateLimiter(requests_per_second=sync.requests_per_second),
            retry_policy=RetryPolicy(
                max_attempts=sync.max_attempts,
                backoff_base=sync.backoff_base,
                backoff_max=sync.backoff_max,
            ),
            dry_run=sync.dry_run,
            session=session_factory() if session_factory else None,
        )
        return NotionAdapter(config, containers, dry_run=sync.dry_run, client=client)

    return factory
