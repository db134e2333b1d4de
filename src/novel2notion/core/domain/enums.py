"""
Domain Enums - Entity types and fixed vocabularies.
"""

from enum import Enum
from typing import Optional


class EntityType(Enum):
    """Kinds of entities that can be mirrored into the workspace."""

    WORK = "work"
    TAG_CATEGORY = "tag_category"
    TAG = "tag"
    CHARACTER = "character"
    SETTING = "setting"
    SYNOPSIS = "synopsis"
    CHAPTER = "chapter"
    EPISODE = "episode"

    @property
    def label(self) -> str:
        """Human readable plural label."""
        return {
            EntityType.WORK: "Works",
            EntityType.TAG_CATEGORY: "Tag Categories",
            EntityType.TAG: "Tags",
            EntityType.CHARACTER: "Characters",
            EntityType.SETTING: "Settings",
            EntityType.SYNOPSIS: "Synopses",
            EntityType.CHAPTER: "Chapters",
            EntityType.EPISODE: "Episodes",
        }[self]

    @classmethod
    def from_string(cls, value: str) -> "EntityType":
        """Parse from a value or member name (case-insensitive)."""
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if normalized in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown entity type: {value}")


class StructurePart(Enum):
    """
    The four-part narrative structure (gi-seung-jeon-gyeol).

    Declaration order is the narrative order.
    """

    GI = "gi"
    SEUNG = "seung"
    JEON = "jeon"
    GYEOL = "gyeol"

    @property
    def title(self) -> str:
        return {
            StructurePart.GI: "Introduction (Gi)",
            StructurePart.SEUNG: "Development (Seung)",
            StructurePart.JEON: "Turn (Jeon)",
            StructurePart.GYEOL: "Conclusion (Gyeol)",
        }[self]

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional["StructurePart"]:
        if not value:
            return None
        return cls(value.strip().lower())


class SettingType(Enum):
    """Kinds of world-building settings."""

    WORLD = "world"
    LOCATION = "location"
    TIME = "time"
    OTHER = "other"

    @property
    def title(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_string(cls, value: Optional[str]) -> "SettingType":
        """Parse a setting type, falling back to OTHER for unknown values."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.OTHER
