"""
Storage Adapters - Local entity repository and mapping persistence.
"""

from .memory import InMemoryEntityRepository
from .json_file import JsonFileEntityRepository, JsonMappingStore, write_json_atomic

__all__ = [
    "InMemoryEntityRepository",
    "JsonFileEntityRepository",
    "JsonMappingStore",
    "write_json_atomic",
]
