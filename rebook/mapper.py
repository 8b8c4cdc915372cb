"""Sentence to page mapping.

Pure word-count arithmetic drifts from where a sentence actually renders
(stripped markup, sentences split across paragraphs), so each sentence is
first anchored by searching the page text near the previous anchor. The
word-count estimate is only a fallback, clamped so the map never moves
backwards.
"""

import logging
import threading
from typing import Optional, Sequence

from rebook.models import Pagination
from rebook.text.segmenter import count_words, normalize_for_match

logger = logging.getLogger(__name__)

# Pages searched per sentence: the anchor page plus the next two. Wider
# windows survive larger drift but risk matching repeated phrasing on a
# later page.
DEFAULT_LOOKAHEAD = 3


def map_by_word_count(sentences: Sequence[str], word_counts: Sequence[int]) -> list[int]:
    """Approximate each sentence's page from cumulative word totals."""
    if not word_counts:
        return [0] * len(sentences)

    page_map = []
    page_index = 0
    page_total = word_counts[0]
    sentence_total = 0
    last_page = len(word_counts) - 1

    for sentence in sentences:
        sentence_total += count_words(sentence)
        while sentence_total > page_total and page_index < last_page:
            page_index += 1
            page_total += word_counts[page_index]
        page_map.append(page_index)

    return page_map


def map_sentences_to_pages(
    sentences: Sequence[str],
    pages: Sequence,
    word_counts: Sequence[int],
    lookahead: int = DEFAULT_LOOKAHEAD,
) -> list[int]:
    """Map every sentence to the page it renders on.

    Args:
        sentences: Segmented sentences of the whole book.
        pages: Pages (objects with a ``text`` attribute, or plain strings).
        word_counts: Word count of each page, parallel to ``pages``.
        lookahead: Number of pages searched from the current anchor.

    Returns:
        One page index per sentence, non-decreasing.
    """
    if lookahead < 1:
        raise ValueError(f"lookahead must be at least 1, got {lookahead}")
    if not pages:
        return [0] * len(sentences)

    page_texts = [normalize_for_match(getattr(page, "text", page)) for page in pages]
    fallback = map_by_word_count(sentences, word_counts)
    last_page = len(page_texts) - 1

    page_map = []
    pointer = 0
    fallbacks = 0

    for i, sentence in enumerate(sentences):
        needle = normalize_for_match(sentence)
        found = None
        if needle:
            window_end = min(pointer + lookahead, last_page + 1)
            for page_index in range(pointer, window_end):
                if needle in page_texts[page_index]:
                    found = page_index
                    break

        if found is None:
            found = min(max(fallback[i], pointer), last_page)
            fallbacks += 1

        pointer = found
        page_map.append(found)

    logger.debug(
        "Mapped %d sentences to %d pages (%d word-count fallbacks)",
        len(sentences), len(page_texts), fallbacks,
    )
    return page_map


def first_sentence_on_page(page_map: Sequence[int], page_index: int) -> Optional[int]:
    """Index of the first sentence mapped to ``page_index``, if any."""
    for i, mapped in enumerate(page_map):
        if mapped == page_index:
            return i
        if mapped > page_index:
            break
    return None


class SentencePageMapper:
    """Caches sentence-page maps per book.

    A map is rebuilt only when the book, the word limit or the lookahead
    changes.
    """

    def __init__(self, lookahead: int = DEFAULT_LOOKAHEAD):
        self.lookahead = lookahead
        self._cache: dict[tuple[str, int, int], list[int]] = {}
        self._lock = threading.Lock()

    def get(
        self,
        book_id: str,
        sentences: Sequence[str],
        pagination: Pagination,
        word_limit: int,
    ) -> list[int]:
        key = (book_id, word_limit, self.lookahead)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        page_map = map_sentences_to_pages(
            sentences, pagination.pages, pagination.word_counts, self.lookahead,
        )
        with self._lock:
            # Drop maps built for other word limits of the same book
            for stale in [k for k in self._cache if k[0] == book_id]:
                del self._cache[stale]
            self._cache[key] = page_map
        return page_map

    def invalidate(self, book_id: str) -> None:
        with self._lock:
            for key in [k for k in self._cache if k[0] == book_id]:
                del self._cache[key]
