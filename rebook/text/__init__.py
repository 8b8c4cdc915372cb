"""Text model: sentence segmentation, paragraph extraction and pagination."""

from rebook.text.paginator import build_anchor_index, paginate, resolve_anchor
from rebook.text.paragraphs import build_paragraphs
from rebook.text.segmenter import (
    count_words,
    normalize_for_match,
    normalize_whitespace,
    segment,
)

__all__ = [
    "build_anchor_index",
    "build_paragraphs",
    "count_words",
    "normalize_for_match",
    "normalize_whitespace",
    "paginate",
    "resolve_anchor",
    "segment",
]
