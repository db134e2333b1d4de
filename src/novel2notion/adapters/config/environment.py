"""
Environment Config Provider - Load configuration from environment variables.

Supports:
- Environment variables (NOTION_API_KEY, NOTION_ROOT_PAGE_ID, ...)
- .env files
- Command line argument overrides
"""

import os
import re
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

from ...core.ports.config_provider import (
    ConfigProviderPort,
    AppConfig,
    WorkspaceConfig,
    SyncConfig,
    DEFAULT_API_URL,
    DEFAULT_NOTION_VERSION,
)


ENV_MAPPING = {
    "NOTION_API_KEY": "api_key",
    "NOTION_ROOT_PAGE_ID": "root_page_id",
    "NOTION_API_URL": "api_url",
    "NOTION_VERSION": "notion_version",
    "NOVEL2NOTION_CONCURRENCY": "concurrency",
    "NOVEL2NOTION_RATE_LIMIT": "requests_per_second",
    "NOVEL2NOTION_MAX_ATTEMPTS": "max_attempts",
    "NOVEL2NOTION_TIMEOUT": "timeout",
    "NOVEL2NOTION_ARCHIVE_DELETED": "archive_deleted",
    "NOVEL2NOTION_DATA": "data_path",
    "NOVEL2NOTION_MAPPING": "mapping_path",
    "NOVEL2NOTION_VERBOSE": "verbose",
}

CLI_MAPPING = {
    "data": "data_path",
    "mapping": "mapping_path",
    "concurrency": "concurrency",
    "execute": "execute",
    "verbose": "verbose",
    "api_url": "api_url",
    "root_page": "root_page_id",
}

DESCRIPTIONS = {
    "api_key": "Notion integration token (NOTION_API_KEY)",
    "root_page_id": "Page that holds the synced databases (NOTION_ROOT_PAGE_ID)",
    "api_url": "Notion API base URL or relay endpoint (NOTION_API_URL)",
    "notion_version": "Value of the Notion-Version header (NOTION_VERSION)",
    "concurrency": "Parallel requests per entity type (NOVEL2NOTION_CONCURRENCY)",
    "requests_per_second": "Request rate budget (NOVEL2NOTION_RATE_LIMIT)",
    "max_attempts": "Attempts per request before giving up (NOVEL2NOTION_MAX_ATTEMPTS)",
    "timeout": "HTTP timeout in seconds (NOVEL2NOTION_TIMEOUT)",
    "archive_deleted": "Archive pages of deleted entities (NOVEL2NOTION_ARCHIVE_DELETED)",
    "data_path": "Local entity store (NOVEL2NOTION_DATA)",
    "mapping_path": "Local id to page id mapping file (NOVEL2NOTION_MAPPING)",
}

_PAGE_ID = re.compile(r"([0-9a-f]{32})$", re.IGNORECASE)


def normalize_page_id(value: str) -> str:
    """Accept a bare id, a dashed UUID, or a Notion page URL."""
    value = (value or "").strip()
    if not value:
        return ""
    tail = value.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1].replace("-", "")
    match = _PAGE_ID.search(tail)
    return match.group(1).lower() if match else value


class EnvironmentConfigProvider(ConfigProviderPort):
    """
    Configuration provider that loads from environment variables and .env files.
    """

    def __init__(
        self,
        env_file: Optional[Path] = None,
        cli_overrides: Optional[dict[str, Any]] = None,
        environ: Optional[dict[str, str]] = None,
    ):
        """
        Initialize the config provider.

        Args:
            env_file: Path to .env file (auto-detected if not specified)
            cli_overrides: Command line argument overrides
            environ: Environment to read (defaults to os.environ)
        """
        self._values: dict[str, Any] = {}
        self._env_file = env_file
        self._cli_overrides = cli_overrides or {}
        self._environ = os.environ if environ is None else environ

        # Load configuration
        self._load_env_file()
        self._load_environment()
        self._apply_cli_overrides()

    # -------------------------------------------------------------------------
    # ConfigProviderPort Implementation
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "Environment"

    def load(self) -> AppConfig:
        """Load complete configuration. Missing credentials are not an error here."""
        workspace = WorkspaceConfig(
            api_key=str(self.get("api_key", "") or ""),
            root_page_id=normalize_page_id(str(self.get("root_page_id", "") or "")),
            api_url=str(self.get("api_url") or DEFAULT_API_URL),
            notion_version=str(self.get("notion_version") or DEFAULT_NOTION_VERSION),
            timeout=self._get_float("timeout", 30.0),
        )

        sync = SyncConfig(
            dry_run=not self._get_bool("execute", False),
            concurrency=self._get_int("concurrency", 3),
            requests_per_second=self._get_float("requests_per_second", 3.0),
            max_attempts=self._get_int("max_attempts", 4),
            archive_deleted=self._get_bool("archive_deleted", True),
            verbose=self._get_bool("verbose", False),
        )

        config = AppConfig(workspace=workspace, sync=sync)
        if self.get("data_path"):
            config.data_path = Path(self.get("data_path"))
        if self.get("mapping_path"):
            config.mapping_path = Path(self.get("mapping_path"))
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        # Normalize key
        key = key.lower().replace("-", "_")

        # Check CLI overrides first
        if self._cli_overrides.get(key) is not None:
            return self._cli_overrides[key]

        # Check loaded values
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value."""
        key = key.lower().replace("-", "_")
        self._values[key] = value

    def validate(self) -> list[str]:
        """Validate configuration."""
        errors = []

        if not self.get("api_key"):
            errors.append("Missing NOTION_API_KEY - set in environment or .env file")
        if not self.get("root_page_id"):
            errors.append("Missing NOTION_ROOT_PAGE_ID - set in environment or .env file")

        api_url = self.get("api_url")
        if api_url:
            parsed = urlparse(str(api_url))
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"NOTION_API_URL is not an http(s) URL: {api_url}")

        for key, kind in (
            ("concurrency", int),
            ("max_attempts", int),
            ("requests_per_second", float),
            ("timeout", float),
        ):
            raw = self.get(key)
            if raw is None:
                continue
            try:
                value = kind(raw)
            except (TypeError, ValueError):
                errors.append(f"{key} must be a number, got {raw!r}")
                continue
            if value <= 0:
                errors.append(f"{key} must be positive, got {raw!r}")

        return errors

    def describe(self, key: str) -> Optional[str]:
        return DESCRIPTIONS.get(key)

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _get_int(self, key: str, default: int) -> int:
        try:
            value = int(self.get(key, default))
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    def _get_float(self, key: str, default: float) -> float:
        try:
            value = float(self.get(key, default))
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    def _get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "1", "yes", "on")

    def _load_env_file(self) -> None:
        """Load values from .env file."""
        env_file = self._find_env_file()
        if not env_file:
            return

        for line in env_file.read_text().splitlines():
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            # Parse key=value
            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export "):].strip()
            value = value.strip().strip('"').strip("'")

            config_key = ENV_MAPPING.get(key.upper())
            if config_key:
                self._values[config_key] = value

    def _find_env_file(self) -> Optional[Path]:
        """Find .env file."""
        if self._env_file:
            return self._env_file if self._env_file.exists() else None

        # Check current directory
        cwd_env = Path.cwd() / ".env"
        if cwd_env.exists():
            return cwd_env

        return None

    def _load_environment(self) -> None:
        """Load values from environment variables."""
        for env_key, config_key in ENV_MAPPING.items():
            raw_value = self._environ.get(env_key)
            if raw_value is not None:
                self._values[config_key] = raw_value

    def _apply_cli_overrides(self) -> None:
        """Apply CLI argument overrides."""
        for cli_key, config_key in CLI_MAPPING.items():
            if self._cli_overrides.get(cli_key) is not None:
                self._values[config_key] = self._cli_overrides[cli_key]
