"""
Domain - Entities, enums and events of the writing workspace.
"""

from .enums import EntityType, StructurePart, SettingType
from .entities import (
    Entity,
    Work,
    Synopsis,
    SynopsisSection,
    SynopsisStructure,
    Character,
    Setting,
    Chapter,
    Episode,
    TagCategory,
    Tag,
    ENTITY_CLASSES,
    entity_from_dict,
    new_entity_id,
    utcnow,
)
from .events import DomainEvent, EventBus, SyncStarted, SyncSucceeded, SyncFailed

__all__ = [
    "EntityType",
    "StructurePart",
    "SettingType",
    "Entity",
    "Work",
    "Synopsis",
    "SynopsisSection",
    "SynopsisStructure",
    "Character",
    "Setting",
    "Chapter",
    "Episode",
    "TagCategory",
    "Tag",
    "ENTITY_CLASSES",
    "entity_from_dict",
    "new_entity_id",
    "utcnow",
    "DomainEvent",
    "EventBus",
    "SyncStarted",
    "SyncSucceeded",
    "SyncFailed",
]
