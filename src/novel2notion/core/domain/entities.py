"""
Domain Entities - The creative-writing graph kept in local storage.

Every entity carries the sync metadata (``synced_at`` / ``is_dirty``) that
the synchronization engine reads and the repository maintains.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Optional
from uuid import uuid4

from .enums import EntityType, SettingType, StructurePart


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def new_entity_id() -> str:
    """Generate an opaque local identifier."""
    return str(uuid4())


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_encode(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


@dataclass
class Entity:
    """
    Base class for all synchronized entities.

    Subclasses set ``entity_type`` and declare their own fields (all with
    defaults so they can follow the base fields).
    """

    entity_type: ClassVar[EntityType]

    # Fields holding datetimes or enums, decoded by from_dict
    _datetime_fields: ClassVar[tuple[str, ...]] = ("created_at", "updated_at", "synced_at")
    _enum_fields: ClassVar[dict[str, Any]] = {}

    id: str = field(default_factory=new_entity_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    synced_at: Optional[datetime] = None
    is_dirty: bool = True

    def __post_init__(self) -> None:
        if self.updated_at is None or self.updated_at < self.created_at:
            self.updated_at = self.created_at

    @property
    def needs_sync(self) -> bool:
        """True when the last mutation has not been acknowledged remotely."""
        return self.is_dirty or self.synced_at is None

    def touch(self, now: Optional[datetime] = None) -> None:
        """Record a local mutation."""
        now = now or utcnow()
        # updated_at must strictly advance so version comparisons see the change
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now
        self.is_dirty = True

    def mark_synced(self, synced_at: Optional[datetime] = None) -> None:
        """Record an acknowledged remote write of the current version."""
        synced_at = synced_at or utcnow()
        if synced_at < self.updated_at:
            synced_at = self.updated_at
        self.synced_at = synced_at
        self.is_dirty = False

    def display_name(self) -> str:
        """Short label used in logs and summaries."""
        for attr in ("title", "name"):
            value = getattr(self, attr, None)
            if value:
                return str(value)
        return self.id

    def to_dict(self) -> dict[str, Any]:
        return {f.name: _encode(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entity":
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key in cls._datetime_fields:
                value = _parse_datetime(value)
            elif key in cls._enum_fields and value is not None:
                value = cls._enum_fields[key].from_string(value)
            values[key] = value
        if values.get("created_at") is None:
            values.pop("created_at", None)
        values.setdefault("is_dirty", True)
        return cls(**values)


@dataclass
class Work(Entity):
    """A creative work (novel, series)."""

    entity_type: ClassVar[EntityType] = EntityType.WORK

    title: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)


@dataclass
class SynopsisSection:
    """One section inside a structure part."""

    id: str = field(default_factory=new_entity_id)
    title: str = ""
    content: str = ""
    order: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "content": self.content, "order": self.order}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SynopsisSection":
        return cls(
            id=data.get("id") or new_entity_id(),
            title=data.get("title", ""),
            content=data.get("content", ""),
            order=int(data.get("order", 0)),
        )


@dataclass
class SynopsisStructure:
    """Four ordered section groups."""

    gi: list[SynopsisSection] = field(default_factory=list)
    seung: list[SynopsisSection] = field(default_factory=list)
    jeon: list[SynopsisSection] = field(default_factory=list)
    gyeol: list[SynopsisSection] = field(default_factory=list)

    def sections(self, part: StructurePart) -> list[SynopsisSection]:
        """Sections of one part, sorted by their order index."""
        return sorted(getattr(self, part.value), key=lambda s: (s.order, s.id))

    def is_empty(self) -> bool:
        return not any(getattr(self, part.value) for part in StructurePart)

    def to_dict(self) -> dict[str, Any]:
        return {
            part.value: [s.to_dict() for s in getattr(self, part.value)]
            for part in StructurePart
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SynopsisStructure":
        data = data or {}
        return cls(**{
            part.value: [SynopsisSection.from_dict(s) for s in data.get(part.value, [])]
            for part in StructurePart
        })


@dataclass
class Synopsis(Entity):
    """The (single) synopsis of a work."""

    entity_type: ClassVar[EntityType] = EntityType.SYNOPSIS

    work_id: str = ""
    structure: SynopsisStructure = field(default_factory=SynopsisStructure)
    character_ids: list[str] = field(default_factory=list)
    setting_ids: list[str] = field(default_factory=list)

    def display_name(self) -> str:
        return f"Synopsis of {self.work_id}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Synopsis":
        data = dict(data)
        structure = SynopsisStructure.from_dict(data.pop("structure", None))
        synopsis = super().from_dict(data)
        synopsis.structure = structure
        return synopsis


@dataclass
class Character(Entity):
    entity_type: ClassVar[EntityType] = EntityType.CHARACTER

    work_id: str = ""
    name: str = ""
    description: str = ""
    age: Optional[int] = None
    role: Optional[str] = None
    is_main_character: bool = False
    order: Optional[int] = None
    notes: str = ""
    synopsis_ids: list[str] = field(default_factory=list)


@dataclass
class Setting(Entity):
    entity_type: ClassVar[EntityType] = EntityType.SETTING
    _enum_fields: ClassVar[dict[str, Any]] = {"type": SettingType}

    work_id: str = ""
    name: str = ""
    description: str = ""
    type: SettingType = SettingType.OTHER
    order: Optional[int] = None
    notes: str = ""
    synopsis_ids: list[str] = field(default_factory=list)


@dataclass
class Chapter(Entity):
    entity_type: ClassVar[EntityType] = EntityType.CHAPTER
    _enum_fields: ClassVar[dict[str, Any]] = {"structure_type": StructurePart}

    work_id: str = ""
    title: str = ""
    structure_type: Optional[StructurePart] = None
    order: Optional[int] = None


@dataclass
class Episode(Entity):
    """A serialized episode; content is stored as HTML."""

    entity_type: ClassVar[EntityType] = EntityType.EPISODE
    _datetime_fields: ClassVar[tuple[str, ...]] = (
        "created_at", "updated_at", "synced_at", "published_at",
    )

    work_id: str = ""
    chapter_id: Optional[str] = None
    episode_number: int = 0
    title: Optional[str] = None
    content: str = ""
    word_count: Optional[int] = None
    published_at: Optional[datetime] = None
    subscriber_count: Optional[int] = None
    view_count: Optional[int] = None
    order: Optional[int] = None

    def display_name(self) -> str:
        label = f"Episode {self.episode_number}"
        return f"{label} - {self.title}" if self.title else label


@dataclass
class TagCategory(Entity):
    entity_type: ClassVar[EntityType] = EntityType.TAG_CATEGORY

    name: str = ""
    order: int = 0


@dataclass
class Tag(Entity):
    entity_type: ClassVar[EntityType] = EntityType.TAG

    category_id: str = ""
    name: str = ""
    order: int = 0
    is_new: bool = False


ENTITY_CLASSES: dict[EntityType, type[Entity]] = {
    cls.entity_type: cls
    for cls in (Work, TagCategory, Tag, Character, Setting, Synopsis, Chapter, Episode)
}


def entity_from_dict(entity_type: EntityType, data: dict[str, Any]) -> Entity:
    """Build an entity of the given type from its dict form."""
    return ENTITY_CLASSES[entity_type].from_dict(data)
