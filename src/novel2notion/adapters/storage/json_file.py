"""
JSON File Storage - Durable repository and mapping store on local files.

Files are rewritten atomically (temp file + rename) so a crash never
leaves a half-written document behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from ...core.domain.entities import entity_from_dict
from ...core.domain.enums import EntityType
from ...core.ports.entity_repository import RepositoryError
from ...core.ports.mapping_store import MappingStorePort, MappingStoreError
from .memory import InMemoryEntityRepository


def write_json_atomic(path: Path, document: Any) -> None:
    """Write JSON to ``path`` via a temp file in the same directory."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(document, fh, ensure_ascii=False, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def read_json(path: Path) -> Any:
    """Read a JSON document, returning None if the file does not exist."""
    path = Path(path)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


class JsonFileEntityRepository(InMemoryEntityRepository):
    """
    Entity repository persisted to a single JSON file.

    Layout: ``{"work": [{...}, ...], "character": [...], ...}``
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        try:
            document = read_json(self.path)
        except json.JSONDecodeError as e:
            raise RepositoryError(f"Corrupt data file {self.path}: {e}")
        if not document:
            return

        for type_key, items in document.items():
            try:
                entity_type = EntityType.from_string(type_key)
            except ValueError:
                self.logger.warning(f"Ignoring unknown entity collection '{type_key}'")
                continue
            for item in items:
                entity = entity_from_dict(entity_type, item)
                self._store[entity_type][entity.id] = entity

        self.logger.debug(f"Loaded {self.count()} entities from {self.path}")

    def _persist(self) -> None:
        document = {
            entity_type.value: [e.to_dict() for e in entities.values()]
            for entity_type, entities in self._store.items()
        }
        write_json_atomic(self.path, document)


class JsonMappingStore(MappingStorePort):
    """Mapping store persisted to a JSON file."""

    FORMAT_VERSION = 1

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger("JsonMappingStore")

    def load(self) -> dict[str, Any]:
        try:
            document = read_json(self.path)
        except json.JSONDecodeError as e:
            raise MappingStoreError(f"Corrupt mapping file {self.path}: {e}")
        if not document:
            return {}
        version = document.get("version", self.FORMAT_VERSION)
        if version != self.FORMAT_VERSION:
            raise MappingStoreError(f"Unsupported mapping format version {version}")
        return document

    def save(self, document: dict[str, Any]) -> None:
        try:
            write_json_atomic(self.path, {"version": self.FORMAT_VERSION, **document})
        except OSError as e:
            raise MappingStoreError(f"Cannot write mapping file {self.path}: {e}")
