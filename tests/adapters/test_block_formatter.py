"""Tests for the Notion block formatter."""

from datetime import datetime, timezone

import pytest

from novel2notion.adapters.formatters import NotionBlockFormatter
from novel2notion.adapters.formatters.blocks import chunk_text, strip_html
from novel2notion.core.domain import (
    Chapter,
    Character,
    Episode,
    Setting,
    Synopsis,
    SynopsisSection,
    SynopsisStructure,
    Tag,
    TagCategory,
    Work,
)
from novel2notion.core.domain.enums import SettingType, StructurePart
from novel2notion.core.ports.workspace import EntityPayload


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def texts(blocks):
    """(type, plain text) of each block."""
    result = []
    for block in blocks:
        kind = block["type"]
        rich = block[kind].get("rich_text", []) if isinstance(block[kind], dict) else []
        result.append((kind, "".join(t["text"]["content"] for t in rich)))
    return result


@pytest.fixture
def formatter():
    return NotionBlockFormatter()


class TestHelpers:
    """Tests for module-level helpers."""

    def test_chunk_text(self):
        assert chunk_text("") == []
        assert [len(c) for c in chunk_text("a" * 4500)] == [2000, 2000, 500]

    def test_strip_html(self):
        html = "<p>First &amp; foremost</p><p></p><p></p><p>Second<br>line</p>"

        assert strip_html(html) == "First & foremost\n\nSecond\nline"

    def test_strip_html_empty(self):
        assert strip_html("") == ""


class TestProperties:
    """Tests for page properties."""

    def test_work(self, formatter):
        work = Work(title="Moon", category="Fantasy, Dark", tags=["a,b", " ", "c"], created_at=T0)

        props = formatter.properties(EntityPayload(work))

        assert props["Title"]["title"][0]["text"]["content"] == "Moon"
        assert props["Category"] == {"select": {"name": "Fantasy  Dark"}}
        assert props["Tags"] == {"multi_select": [{"name": "a b"}, {"name": "c"}]}
        assert props["Created"] == {"date": {"start": T0.isoformat()}}

    def test_work_without_category(self, formatter):
        props = formatter.properties(EntityPayload(Work(title="Moon")))

        assert props["Category"] == {"select": None}

    def test_custom_title_property(self, formatter):
        props = formatter.properties(EntityPayload(Work(title="Moon")), title_property="Name")

        assert "Name" in props
        assert "Title" not in props

    def test_untitled_work(self, formatter):
        props = formatter.properties(EntityPayload(Work()))

        assert props["Title"]["title"][0]["text"]["content"] == "Untitled"

    def test_tag_category(self, formatter):
        props = formatter.properties(EntityPayload(TagCategory(name="Genre", order=2)))

        assert props["Order"] == {"number": 2}

    def test_tag_without_category_mapping(self, formatter):
        props = formatter.properties(EntityPayload(Tag(name="new", is_new=True)))

        assert props["Category"] == {"relation": []}
        assert props["New"] == {"checkbox": True}

    def test_plain_page(self, formatter):
        props = formatter.properties(EntityPayload(Character(name="Ann")))

        assert props == {"title": {"title": [{"type": "text", "text": {"content": "Ann"}}]}}

    @pytest.mark.parametrize("entity, title", [
        (Synopsis(work_id="w1"), "Synopsis"),
        (Chapter(title="Arrival"), "Arrival"),
        (Chapter(order=4), "Chapter 4"),
        (Chapter(order=0), "Chapter 0"),
        (Chapter(), "Chapter"),
        (Episode(episode_number=2), "Episode 2"),
    ])
    def test_page_title(self, formatter, entity, title):
        assert formatter.page_title(entity) == title


class TestChildren:
    """Tests for page bodies."""

    def test_format_text(self, formatter):
        blocks = formatter.format_text("# Big\n## Mid\n### Small\n- one\n* two\n\nplain")

        assert texts(blocks) == [
            ("heading_1", "Big"),
            ("heading_2", "Mid"),
            ("heading_3", "Small"),
            ("bulleted_list_item", "one"),
            ("bulleted_list_item", "two"),
            ("paragraph", "plain"),
        ]

    def test_long_paragraph_chunked(self, formatter):
        block = formatter.format_text("x" * 2500)[0]

        assert len(block["paragraph"]["rich_text"]) == 2

    def test_character(self, formatter):
        character = Character(
            name="Ann", role="Hero", age=17, is_main_character=True,
            description="Brave.", notes="Likes tea.",
        )

        assert texts(formatter.children(EntityPayload(character))) == [
            ("bulleted_list_item", "Role: Hero"),
            ("bulleted_list_item", "Age: 17"),
            ("bulleted_list_item", "Main character"),
            ("paragraph", "Brave."),
            ("heading_3", "Notes"),
            ("paragraph", "Likes tea."),
        ]

    def test_setting(self, formatter):
        setting = Setting(name="Harbor", type=SettingType.LOCATION)

        assert texts(formatter.children(EntityPayload(setting))) == [
            ("bulleted_list_item", "Type: Location"),
        ]

    def test_synopsis(self, formatter):
        synopsis = Synopsis(structure=SynopsisStructure(
            seung=[SynopsisSection(title="Storm", content="Rain.\n\nWind.")],
        ))
        payload = EntityPayload(synopsis, references={"character_ids": ["page-c1"], "setting_ids": []})

        blocks = formatter.children(payload)

        assert texts(blocks) == [
            ("heading_1", StructurePart.GI.title),
            ("heading_1", StructurePart.SEUNG.title),
            ("heading_3", "Storm"),
            ("paragraph", "Rain."),
            ("paragraph", "Wind."),
            ("heading_1", StructurePart.JEON.title),
            ("heading_1", StructurePart.GYEOL.title),
            ("heading_2", "Characters"),
            ("link_to_page", ""),
        ]
        assert blocks[-1]["link_to_page"] == {"type": "page_id", "page_id": "page-c1"}

    def test_chapter(self, formatter):
        chapter = Chapter(title="Arrival", structure_type=StructurePart.JEON)

        assert texts(formatter.children(EntityPayload(chapter))) == [
            ("paragraph", "Structure: Turn (Jeon)"),
        ]

    def test_episode(self, formatter):
        episode = Episode(
            episode_number=1,
            content="<p>Hello</p><p>World</p>",
            word_count=2,
            published_at=T0,
        )

        assert texts(formatter.children(EntityPayload(episode))) == [
            ("bulleted_list_item", "Published: 2024-05-01"),
            ("bulleted_list_item", "Words: 2"),
            ("divider", ""),
            ("paragraph", "Hello"),
            ("paragraph", "World"),
        ]

    def test_tags_have_no_body(self, formatter):
        assert formatter.children(EntityPayload(Tag(name="x"))) == []
