"""Paragraph extraction from chapter content."""

import logging
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag

from rebook.models import Chapter, ContentBlock, Paragraph
from rebook.text.segmenter import normalize_whitespace

logger = logging.getLogger(__name__)

# Leaf block elements and the block kind they produce
BLOCK_KINDS = {
    "p": "paragraph",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
    "li": "list_item",
    "blockquote": "quote",
    "img": "image",
}

_TEXT_TAGS = [name for name in BLOCK_KINDS if name != "img"]


def blocks_from_html(html: str | bytes, source_href: Optional[str] = None) -> list[ContentBlock]:
    """Extract leaf content blocks from a chapter's HTML, in document order."""
    soup = BeautifulSoup(html, "lxml")

    for tag in soup(["script", "style", "nav", "aside"]):
        tag.decompose()

    blocks = []
    for tag in soup.find_all(list(BLOCK_KINDS)):
        kind = BLOCK_KINDS[tag.name]
        if kind == "image":
            # Images nested in a text block are rendered with that block
            if tag.find_parent(_TEXT_TAGS):
                continue
            text = normalize_whitespace(tag.get("alt", ""))
        else:
            # Skip containers whose text is carried by child blocks
            if tag.find(_TEXT_TAGS):
                continue
            text = normalize_whitespace(tag.get_text())
            if not text:
                continue
        blocks.append(ContentBlock(
            kind=kind,
            text=text,
            html=str(tag),
            source_href=source_href,
            element_ids=_element_ids(tag),
        ))

    if not blocks:
        root = soup.body or soup
        text = normalize_whitespace(root.get_text(" "))
        if text:
            blocks.append(ContentBlock(kind="paragraph", text=text, source_href=source_href))

    return blocks


def _element_ids(tag: Tag) -> tuple[str, ...]:
    """Ids on the block and its descendants, usable as link anchors."""
    ids = []
    if tag.get("id"):
        ids.append(tag["id"])
    for child in tag.find_all(id=True):
        ids.append(child["id"])
    return tuple(ids)


def build_paragraphs(chapters: Iterable[Chapter]) -> list[Paragraph]:
    """Flatten chapters into the ordered paragraph sequence.

    Structured blocks win over HTML, and HTML wins over plain-text lines.
    """
    paragraphs: list[Paragraph] = []
    for chapter in chapters:
        if chapter.blocks is not None:
            blocks = chapter.blocks
        elif chapter.html:
            blocks = blocks_from_html(chapter.html, chapter.source_href)
        else:
            blocks = None

        if blocks is not None:
            for block in blocks:
                if not block.text and block.kind != "image":
                    continue
                paragraphs.append(Paragraph(
                    text=block.text,
                    html=block.html,
                    source_href=block.source_href or chapter.source_href,
                    element_ids=tuple(block.element_ids),
                ))
            continue

        for line in chapter.text.split("\n"):
            line = line.strip()
            if line:
                paragraphs.append(Paragraph(text=line, source_href=chapter.source_href))

    logger.debug("Built %d paragraphs", len(paragraphs))
    return paragraphs
