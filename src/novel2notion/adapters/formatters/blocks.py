"""
Block Formatter - Notion page properties and block children.

Converts domain entities to the JSON structures the Notion API accepts.
Reference: https://developers.notion.com/reference/block
"""

import html
import re
from datetime import datetime
from typing import Any, Optional

from ...core.domain.entities import (
    Character,
    Chapter,
    Entity,
    Episode,
    Setting,
    Synopsis,
    Tag,
    TagCategory,
    Work,
)
from ...core.domain.enums import EntityType, StructurePart
from ...core.ports.workspace import EntityPayload


MAX_TEXT_LENGTH = 2000

# Entity types stored as database rows, with the name of their title property
DATABASE_TITLE_PROPERTIES: dict[EntityType, str] = {
    EntityType.WORK: "Title",
    EntityType.TAG_CATEGORY: "Name",
    EntityType.TAG: "Name",
}


def chunk_text(text: str, size: int = MAX_TEXT_LENGTH) -> list[str]:
    """Split text into pieces Notion accepts in a single text object."""
    if not text:
        return []
    return [text[i:i + size] for i in range(0, len(text), size)]


_BLOCK_BREAK = re.compile(r"<\s*(br|/p|/div|/h[1-6]|/li)\s*/?>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")


def strip_html(content: str) -> str:
    """Reduce stored episode HTML to plain text, keeping paragraph breaks."""
    if not content:
        return ""
    text = _BLOCK_BREAK.sub("\n", content)
    text = _TAG.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    lines = [line.rstrip() for line in text.split("\n")]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


class NotionBlockFormatter:
    """
    Notion block formatter.

    ``properties`` builds the page properties of an entity; ``children``
    builds its body. Both are pure functions of the payload.
    """

    @property
    def name(self) -> str:
        return "Notion"

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    def properties(
        self,
        payload: EntityPayload,
        title_property: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Page properties for an entity.

        Args:
            payload: Entity and its resolved remote references
            title_property: Name of the title property for database rows
        """
        entity = payload.entity

        if isinstance(entity, Work):
            title = title_property or DATABASE_TITLE_PROPERTIES[EntityType.WORK]
            props = {
                title: self._title(entity.title or "Untitled"),
                "Tags": {"multi_select": [
                    {"name": self._option_name(tag)} for tag in entity.tags if tag.strip()
                ]},
                "Created": self._date(entity.created_at),
                "Updated": self._date(entity.updated_at),
            }
            props["Category"] = (
                {"select": {"name": self._option_name(entity.category)}}
                if entity.category.strip() else {"select": None}
            )
            return props

        if isinstance(entity, TagCategory):
            title = title_property or DATABASE_TITLE_PROPERTIES[EntityType.TAG_CATEGORY]
            return {
                title: self._title(entity.name),
                "Order": {"number": entity.order},
            }

        if isinstance(entity, Tag):
            title = title_property or DATABASE_TITLE_PROPERTIES[EntityType.TAG]
            category = payload.parents.get("category_id")
            return {
                title: self._title(entity.name),
                "Order": {"number": entity.order},
                "New": {"checkbox": entity.is_new},
                "Category": {"relation": [{"id": category}] if category else []},
            }

        return {"title": self._title(self.page_title(entity))}

    def page_title(self, entity: Entity) -> str:
        """Title of a plain (non-database) page."""
        if isinstance(entity, Synopsis):
            return "Synopsis"
        if isinstance(entity, Chapter):
            if entity.title:
                return entity.title
            return "Chapter" if entity.order is None else f"Chapter {entity.order}"
        return entity.display_name()

    # -------------------------------------------------------------------------
    # Children
    # -------------------------------------------------------------------------

    def children(self, payload: EntityPayload) -> list[dict[str, Any]]:
        """Body blocks for an entity."""
        entity = payload.entity

        if isinstance(entity, Work):
            return self.format_text(entity.description)
        if isinstance(entity, Character):
            return self._character(entity)
        if isinstance(entity, Setting):
            return self._setting(entity)
        if isinstance(entity, Synopsis):
            return self._synopsis(entity, payload.references)
        if isinstance(entity, Chapter):
            return self._chapter(entity)
        if isinstance(entity, Episode):
            return self._episode(entity)
        return []

    def format_text(self, text: str) -> list[dict[str, Any]]:
        """Convert plain text with light markdown (headings, bullets) to blocks."""
        blocks = []
        for line in (text or "").split("\n"):
            if not line.strip():
                continue
            if line.startswith("### "):
                blocks.append(self._heading(line[4:], level=3))
            elif line.startswith("## "):
                blocks.append(self._heading(line[3:], level=2))
            elif line.startswith("# "):
                blocks.append(self._heading(line[2:], level=1))
            elif line.startswith("- ") or line.startswith("* "):
                blocks.append(self._bullet(line[2:]))
            else:
                blocks.append(self._paragraph(line))
        return blocks

    def _character(self, character: Character) -> list[dict[str, Any]]:
        facts = []
        if character.role:
            facts.append(f"Role: {character.role}")
        if character.age is not None:
            facts.append(f"Age: {character.age}")
        if character.is_main_character:
            facts.append("Main character")

        blocks = [self._bullet(fact) for fact in facts]
        blocks.extend(self.format_text(character.description))
        blocks.extend(self._notes(character.notes))
        return blocks

    def _setting(self, setting: Setting) -> list[dict[str, Any]]:
        blocks = [self._bullet(f"Type: {setting.type.title}")]
        blocks.extend(self.format_text(setting.description))
        blocks.extend(self._notes(setting.notes))
        return blocks

    def _synopsis(
        self,
        synopsis: Synopsis,
        references: dict[str, list[str]],
    ) -> list[dict[str, Any]]:
        """One heading per structure part, then each section in order."""
        blocks = []
        for part in StructurePart:
            blocks.append(self._heading(part.title, level=1))
            for section in synopsis.structure.sections(part):
                blocks.append(self._heading(section.title or "Untitled", level=3))
                blocks.extend(self._paragraph(p) for p in section.content.split("\n") if p.strip())

        for field_name, heading in (("character_ids", "Characters"), ("setting_ids", "Settings")):
            linked = references.get(field_name) or []
            if linked:
                blocks.append(self._heading(heading, level=2))
                blocks.extend(self._link_to_page(page_id) for page_id in linked)
        return blocks

    def _chapter(self, chapter: Chapter) -> list[dict[str, Any]]:
        if chapter.structure_type is None:
            return []
        return [self._paragraph(f"Structure: {chapter.structure_type.title}")]

    def _episode(self, episode: Episode) -> list[dict[str, Any]]:
        facts = []
        if episode.published_at:
            facts.append(f"Published: {episode.published_at.date().isoformat()}")
        if episode.word_count is not None:
            facts.append(f"Words: {episode.word_count}")
        if episode.view_count is not None:
            facts.append(f"Views: {episode.view_count}")
        if episode.subscriber_count is not None:
            facts.append(f"Subscribers: {episode.subscriber_count}")

        blocks = [self._bullet(fact) for fact in facts]
        if facts:
            blocks.append({"object": "block", "type": "divider", "divider": {}})

        text = strip_html(episode.content)
        blocks.extend(self._paragraph(p) for p in text.split("\n") if p.strip())
        return blocks

    def _notes(self, notes: str) -> list[dict[str, Any]]:
        if not notes or not notes.strip():
            return []
        return [self._heading("Notes", level=3)] + self.format_text(notes)

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def rich_text(self, text: str) -> list[dict[str, Any]]:
        """Text objects, chunked to the per-object length limit."""
        return [{"type": "text", "text": {"content": chunk}} for chunk in chunk_text(text)]

    def _title(self, text: str) -> dict[str, Any]:
        return {"title": self.rich_text(text)}

    def _date(self, value: Optional[datetime]) -> dict[str, Any]:
        if value is None:
            return {"date": None}
        return {"date": {"start": value.isoformat()}}

    @staticmethod
    def _option_name(value: str) -> str:
        # Select option names cannot contain commas
        return value.replace(",", " ").strip()[:100]

    def _heading(self, text: str, level: int = 2) -> dict[str, Any]:
        kind = f"heading_{level}"
        return {"object": "block", "type": kind, kind: {"rich_text": self.rich_text(text)}}

    def _paragraph(self, text: str) -> dict[str, Any]:
        return {"object": "block", "type": "paragraph", "paragraph": {"rich_text": self.rich_text(text)}}

    def _bullet(self, text: str) -> dict[str, Any]:
        return {
            "object": "block",
            "type": "bulleted_list_item",
            "bulleted_list_item": {"rich_text": self.rich_text(text)},
        }

    def _link_to_page(self, page_id: str) -> dict[str, Any]:
        return {
            "object": "block",
            "type": "link_to_page",
            "link_to_page": {"type": "page_id", "page_id": page_id},
        }
