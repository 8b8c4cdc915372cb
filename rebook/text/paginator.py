"""Pagination of paragraphs into word-bounded pages."""

import logging
import posixpath
from typing import Optional, Sequence

from rebook.models import Page, Pagination, Paragraph
from rebook.text.segmenter import count_words

logger = logging.getLogger(__name__)

DEFAULT_WORD_LIMIT = 250


def paginate(paragraphs: Sequence[Paragraph], word_limit: int = DEFAULT_WORD_LIMIT) -> Pagination:
    """Group whole paragraphs into pages of at most ``word_limit`` words.

    A paragraph is never split: one that alone exceeds the limit becomes its
    own over-limit page.

    Args:
        paragraphs: Paragraphs in document order.
        word_limit: Maximum words per page.

    Returns:
        Pages and their word counts, in order. Empty input gives no pages.
    """
    if word_limit <= 0:
        raise ValueError(f"word_limit must be positive, got {word_limit}")

    pagination = Pagination()
    current: list[Paragraph] = []
    current_count = 0

    def flush() -> None:
        pagination.pages.append(Page(
            index=len(pagination.pages),
            paragraphs=current,
            word_count=current_count,
        ))
        pagination.word_counts.append(current_count)

    for paragraph in paragraphs:
        words = count_words(paragraph.text)
        if current_count + words > word_limit and current:
            flush()
            current = []
            current_count = 0
        current.append(paragraph)
        current_count += words

    if current:
        flush()

    logger.debug(
        "Paginated %d paragraphs into %d pages (limit %d words)",
        len(paragraphs), len(pagination.pages), word_limit,
    )
    return pagination


def build_anchor_index(pagination: Pagination) -> dict:
    """Map paragraph source tags to the first page that holds them.

    Keys are source hrefs, their bare file names, and ``(href, element_id)``
    pairs for every element id recorded on a paragraph.
    """
    index: dict = {}
    for page in pagination.pages:
        for paragraph in page.paragraphs:
            href = paragraph.source_href
            if not href:
                continue
            name = posixpath.basename(href)
            index.setdefault(href, page.index)
            index.setdefault(name, page.index)
            for element_id in paragraph.element_ids:
                index.setdefault((href, element_id), page.index)
                index.setdefault((name, element_id), page.index)
    return index


def resolve_anchor(index: dict, source_file: str, element_id: Optional[str] = None) -> Optional[int]:
    """Page index for a link target, or None when it is not in the book.

    ``source_file`` may carry a ``#fragment``, which is used as the element id
    when none is given.
    """
    if "#" in source_file:
        source_file, _, fragment = source_file.partition("#")
        element_id = element_id or fragment or None

    name = posixpath.basename(source_file)
    if element_id:
        for key in ((source_file, element_id), (name, element_id)):
            if key in index:
                return index[key]
    for key in (source_file, name):
        if key and key in index:
            return index[key]
    return None
