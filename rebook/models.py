"""Data models for the rebook reader."""

import html
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass
class ContentBlock:
    """A structured block of chapter content (paragraph, heading, ...)."""
    kind: str
    text: str
    html: Optional[str] = None
    source_href: Optional[str] = None
    element_ids: tuple[str, ...] = ()


@dataclass
class Chapter:
    """A single chapter as delivered by the chapter provider."""
    index: int
    title: str
    text: str
    html: Optional[str] = None
    source_href: Optional[str] = None
    blocks: Optional[list[ContentBlock]] = None


@dataclass
class Book:
    """A book in the library. Immutable once loaded."""
    id: str
    title: str
    author: str
    chapters: list[Chapter]
    cover_image: Optional[bytes] = None
    cover_mime: Optional[str] = None
    imported_at: Optional[str] = None


@dataclass
class Paragraph:
    """Plain text of one content block, plus its markup and source file."""
    text: str
    html: Optional[str] = None
    source_href: Optional[str] = None
    element_ids: tuple[str, ...] = ()


@dataclass
class Page:
    """An ordered group of whole paragraphs."""
    index: int
    paragraphs: list[Paragraph]
    word_count: int

    @property
    def text(self) -> str:
        """Plain text used for content matching."""
        return "\n\n".join(p.text for p in self.paragraphs)

    @property
    def html(self) -> str:
        """Markup used for rendering; plain paragraphs are wrapped in <p>."""
        parts = []
        for p in self.paragraphs:
            parts.append(p.html if p.html else f"<p>{html.escape(p.text)}</p>")
        return "".join(parts)


@dataclass
class Pagination:
    """Pages plus the parallel list of per-page word counts."""
    pages: list[Page] = field(default_factory=list)
    word_counts: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.pages)


@dataclass
class ReadingPosition:
    """Persisted reading position of one book."""
    page_index: int = 0
    sentence_index: int = 0

    def to_dict(self) -> dict:
        return {"pageIndex": self.page_index, "sentenceIndex": self.sentence_index}

    @classmethod
    def from_dict(cls, data: dict) -> "ReadingPosition":
        return cls(
            page_index=int(data.get("pageIndex", 0)),
            sentence_index=int(data.get("sentenceIndex", 0)),
        )


@dataclass
class AudioClip:
    """Narration audio for one chunk."""
    data: bytes
    mime: str
    start_index: int = 0


@dataclass
class NarrationConfig:
    """Voice selection and synthesis settings."""
    voice: str = ""
    speed: float = 1.0
    pitch: Optional[str] = None
    language: str = "en"
    model: Optional[str] = None


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    GENERATING = "generating"
    ADVANCING = "advancing"
