"""Sentence segmentation.

Sentences end at a run of ``.``, ``!`` or ``?`` or at the end of the text.
There is no abbreviation handling: "Mr." and "3.14" both end a sentence.
Sentence indices are stable for the lifetime of a loaded book, so this rule
must not change without re-indexing every saved position.
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+\Z")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_for_match(text: str) -> str:
    """Whitespace-normalize and case-fold text for substring matching."""
    return normalize_whitespace(text).casefold()


def count_words(text: str) -> int:
    return len(text.split())


def segment(text: str) -> list[str]:
    """Split text into whitespace-normalized sentences.

    Args:
        text: Raw text, any whitespace.

    Returns:
        Sentences in document order; an empty list for blank input.
    """
    normalized = normalize_whitespace(text)
    if not normalized:
        return []
    sentences = []
    for match in _SENTENCE_RE.findall(normalized):
        sentence = match.strip()
        if sentence:
            sentences.append(sentence)
    return sentences
