"""Selection resolution: selected text to sentence index.

Selections are imprecise (partial words, trailing punctuation, spans across
markup) while sentences have exact boundaries, so matching cascades from a
clause fragment, to a token fragment, to containment in either direction.
Sentences on the reader's page are tried before the whole book, and global
matches prefer the occurrence nearest the reader.
"""

import logging
import re
from typing import Callable, Optional, Sequence

from rebook.errors import SelectionNotFound
from rebook.mapper import first_sentence_on_page
from rebook.text.segmenter import normalize_for_match

logger = logging.getLogger(__name__)

# Shortest selection that enables selection actions in the UI
MIN_SELECTION_CHARS = 2
# Shortest selection that is searched for at all
MIN_FRAGMENT_CHARS = 8

PRIMARY_FRAGMENT_MAX_CHARS = 160
PRIMARY_FRAGMENT_MAX_TOKENS = 16
FALLBACK_FRAGMENT_MAX_TOKENS = 12

_TERMINATOR_RE = re.compile(r"[.!?]")

Matcher = Callable[[str], bool]


def is_actionable(selected_text: str) -> bool:
    """Whether a selection is long enough to offer "read from here"."""
    return len(normalize_for_match(selected_text)) >= MIN_SELECTION_CHARS


def primary_fragment(normalized: str) -> str:
    """First clause, capped to 160 characters and then to 16 tokens."""
    match = _TERMINATOR_RE.search(normalized)
    clause = normalized[:match.start()] if match else normalized
    clause = clause.strip()[:PRIMARY_FRAGMENT_MAX_CHARS]
    return " ".join(clause.split()[:PRIMARY_FRAGMENT_MAX_TOKENS])


def fallback_fragment(normalized: str) -> str:
    """First 12 tokens of the selection, ignoring clause boundaries."""
    return " ".join(normalized.split()[:FALLBACK_FRAGMENT_MAX_TOKENS])


class SelectionResolver:
    """Resolve selected text to a sentence index for one loaded book."""

    def __init__(self, sentences: Sequence[str], page_map: Sequence[int]):
        if len(sentences) != len(page_map):
            raise ValueError("page_map must have one entry per sentence")
        self._page_map = list(page_map)
        self._normalized = [normalize_for_match(s) for s in sentences]

    def find(
        self,
        selected_text: str,
        current_page_index: int,
        anchor_index: Optional[int] = None,
    ) -> Optional[int]:
        """Like :meth:`resolve`, but returns None instead of raising."""
        normalized = normalize_for_match(selected_text)
        if len(normalized) < MIN_FRAGMENT_CHARS:
            logger.debug("Selection too short to resolve: %r", normalized)
            return None

        matchers = self._matchers(normalized)

        page_indices = [
            i for i, page in enumerate(self._page_map) if page == current_page_index
        ]
        for matcher in matchers:
            for i in page_indices:
                if matcher(self._normalized[i]):
                    logger.debug("Selection resolved on page %d: sentence %d", current_page_index, i)
                    return i

        anchor = self._anchor(current_page_index, anchor_index)
        for matcher in matchers:
            best = None
            for i, sentence in enumerate(self._normalized):
                if not matcher(sentence):
                    continue
                if best is None or abs(i - anchor) < abs(best - anchor):
                    best = i
            if best is not None:
                logger.debug("Selection resolved globally near %d: sentence %d", anchor, best)
                return best

        return None

    def resolve(
        self,
        selected_text: str,
        current_page_index: int,
        anchor_index: Optional[int] = None,
    ) -> int:
        """Resolve a selection to the best matching sentence index.

        Args:
            selected_text: Text as selected by the reader.
            current_page_index: Page the selection was made on.
            anchor_index: Current playback sentence, used to break ties
                between matches elsewhere in the book.

        Raises:
            SelectionNotFound: Nothing matches. Callers must not guess.
        """
        index = self.find(selected_text, current_page_index, anchor_index)
        if index is None:
            raise SelectionNotFound(f"No sentence matches selection: {selected_text[:60]!r}")
        return index

    @staticmethod
    def _matchers(normalized: str) -> list[Matcher]:
        matchers: list[Matcher] = []
        for fragment in (primary_fragment(normalized), fallback_fragment(normalized)):
            if fragment:
                matchers.append(lambda sentence, f=fragment: f in sentence)

        def contains_either_way(sentence: str) -> bool:
            if normalized in sentence:
                return True
            # Short sentences ("No.") occur inside almost any long selection
            return len(sentence) >= MIN_FRAGMENT_CHARS and sentence in normalized

        matchers.append(contains_either_way)
        return matchers

    def _anchor(self, current_page_index: int, anchor_index: Optional[int]) -> int:
        if anchor_index is not None:
            return anchor_index
        first = first_sentence_on_page(self._page_map, current_page_index)
        return first if first is not None else 0
