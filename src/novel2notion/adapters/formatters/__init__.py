"""
Formatters - Convert domain entities to Notion properties and blocks.
"""

from .blocks import (
    NotionBlockFormatter,
    DATABASE_TITLE_PROPERTIES,
    MAX_TEXT_LENGTH,
    chunk_text,
    strip_html,
)

__all__ = [
    "NotionBlockFormatter",
    "DATABASE_TITLE_PROPERTIES",
    "MAX_TEXT_LENGTH",
    "chunk_text",
    "strip_html",
]
