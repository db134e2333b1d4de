"""
Config Provider Port - Abstract interface for configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


DEFAULT_API_URL = "https://api.notion.com/v1"
DEFAULT_NOTION_VERSION = "2022-06-28"


@dataclass
class WorkspaceConfig:
    """Credentials and endpoint of the remote workspace."""

    api_key: str = ""
    root_page_id: str = ""
    api_url: str = DEFAULT_API_URL
    notion_version: str = DEFAULT_NOTION_VERSION
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        """Both the credential and the root container are present."""
        return bool(self.api_key and self.root_page_id)


@dataclass
class SyncConfig:
    """Behaviour of a sync run."""

    dry_run: bool = True
    concurrency: int = 3
    requests_per_second: float = 3.0
    max_attempts: int = 4
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    archive_deleted: bool = True
    verbose: bool = False


@dataclass
class AppConfig:
    """Complete application configuration."""

    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    data_path: Path = Path("novel2notion.json")
    mapping_path: Path = Path("novel2notion.mapping.json")


class ConfigProviderPort(ABC):
    """Abstract interface for configuration providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def load(self) -> AppConfig:
        """Load complete configuration."""
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def validate(self) -> list[str]:
        """Validate configuration. Returns a list of problems (empty if valid)."""
        ...

    def describe(self, key: str) -> Optional[str]:
        """Optional human description of a key."""
        return None
