"""
Adapters - Concrete implementations of ports.

This module contains implementations for:
- Workspace: Notion
- Formatters: Notion properties and blocks
- Storage: In-memory and JSON file repositories, JSON mapping store
- Config: Environment variables
"""

from .notion import NotionAdapter, NotionApiClient, notion_workspace_factory
from .formatters import NotionBlockFormatter
from .storage import InMemoryEntityRepository, JsonFileEntityRepository, JsonMappingStore
from .config import EnvironmentConfigProvider

__all__ = [
    "NotionAdapter",
    "NotionApiClient",
    "notion_workspace_factory",
    "NotionBlockFormatter",
    "InMemoryEntityRepository",
    "JsonFileEntityRepository",
    "JsonMappingStore",
    "EnvironmentConfigProvider",
]
