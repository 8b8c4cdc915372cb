"""EPUB chapter provider - extracts chapters, metadata and cover."""

import logging
import re
from pathlib import Path
from typing import Optional

import ebooklib
from bs4 import BeautifulSoup
from ebooklib import epub

from rebook.models import Book, Chapter
from rebook.text.paragraphs import blocks_from_html

logger = logging.getLogger(__name__)

# Smaller "covers" are usually 1x1 placeholders
MIN_COVER_BYTES = 1000


def parse_author_name(name: Optional[str]) -> str:
    """Turn catalog-style names ("Dalio, Ray;") into display order ("Ray Dalio")."""
    if not name:
        return ""
    clean = name.replace(";", "").strip()
    if "," in clean:
        parts = [p.strip() for p in clean.split(",")]
        if len(parts) >= 2 and parts[0] and parts[1]:
            return f"{parts[1]} {parts[0]}"
    return clean


def mime_from_path(path: str) -> Optional[str]:
    lower = path.lower()
    if lower.endswith((".jpg", ".jpeg")):
        return "image/jpeg"
    if lower.endswith(".png"):
        return "image/png"
    if lower.endswith(".webp"):
        return "image/webp"
    if lower.endswith(".gif"):
        return "image/gif"
    return None


def mime_from_bytes(data: bytes) -> Optional[str]:
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


class EpubParser:
    """Parse an EPUB file into a :class:`Book` of ordered chapters."""

    def __init__(self, epub_path: str):
        self.epub_path = epub_path
        self._book: epub.EpubBook | None = None

    def parse(self, book_id: str = "") -> Book:
        """Parse the EPUB and return the book with chapters in spine order."""
        self._book = epub.read_epub(self.epub_path)

        title = self._book.get_metadata("DC", "title")
        author = self._book.get_metadata("DC", "creator")
        chapters = self._extract_chapters()
        cover, cover_mime = self._extract_cover()

        return Book(
            id=book_id,
            title=title[0][0].strip() if title else "Untitled Book",
            author=parse_author_name(author[0][0]) if author else "",
            chapters=chapters,
            cover_image=cover,
            cover_mime=cover_mime,
        )

    def _extract_cover(self) -> tuple[Optional[bytes], Optional[str]]:
        """Extract cover image from EPUB, trying multiple strategies."""
        # Strategy 1: ITEM_COVER type
        for item in self._book.get_items_of_type(ebooklib.ITEM_COVER):
            content = item.get_content()
            if content and len(content) > MIN_COVER_BYTES:
                logger.debug("Cover found via ITEM_COVER")
                return content, self._cover_mime(item, content)

        # Strategy 2: metadata cover reference
        cover_meta = self._book.get_metadata("OPF", "cover")
        if cover_meta:
            meta_val, meta_attrs = cover_meta[0]
            cover_id = meta_attrs.get("content") or meta_val
            item = self._book.get_item_with_id(cover_id) if cover_id else None
            if item:
                content = item.get_content()
                if content and len(content) > MIN_COVER_BYTES:
                    logger.debug("Cover found via OPF metadata: %s", cover_id)
                    return content, self._cover_mime(item, content)

        # Strategy 3: image items with 'cover' in the name
        for item in self._book.get_items_of_type(ebooklib.ITEM_IMAGE):
            name = (item.get_name() or "").lower()
            item_id = (item.id or "").lower()
            if "cover" in name or "cover" in item_id:
                content = item.get_content()
                if content and len(content) > MIN_COVER_BYTES:
                    logger.debug("Cover found via file name: %s", item.get_name())
                    return content, self._cover_mime(item, content)

        logger.debug("No cover found in EPUB")
        return None, None

    @staticmethod
    def _cover_mime(item, content: bytes) -> Optional[str]:
        media_type = getattr(item, "media_type", None)
        if media_type and media_type.startswith("image/"):
            return media_type
        return mime_from_path(item.get_name() or "") or mime_from_bytes(content)

    def _extract_chapters(self) -> list[Chapter]:
        """Extract chapters in spine (reading) order."""
        chapters = []

        for position, (item_id, _) in enumerate(self._book.spine):
            item = self._book.get_item_with_id(item_id)
            if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
                continue

            html_content = item.get_content()
            if not html_content:
                continue

            source_href = item.get_name()
            blocks = blocks_from_html(html_content, source_href)
            text = "\n".join(block.text for block in blocks if block.text)
            if not text.strip():
                logger.debug("Skipped empty item: %s", item_id)
                continue

            index = len(chapters)
            title = self._extract_title(html_content) or f"Chapter {position + 1}"
            chapters.append(Chapter(
                index=index,
                title=title,
                text=text,
                html=html_content.decode("utf-8", errors="replace"),
                source_href=source_href,
                blocks=blocks,
            ))

        if not chapters:
            raise ValueError(f"No readable chapters found in {self.epub_path}")

        logger.info("Extracted %d chapters from '%s'", len(chapters), self.epub_path)
        return chapters

    @staticmethod
    def _extract_title(html_content: bytes) -> str | None:
        """Try to extract a chapter title from headings."""
        soup = BeautifulSoup(html_content, "lxml")
        for tag_name in ["h1", "h2", "h3", "title"]:
            tag = soup.find(tag_name)
            if tag:
                title = tag.get_text(strip=True)
                if title:
                    return title
        return None


def book_from_text(title: str, text: str, author: str = "", book_id: str = "") -> Book:
    """Wrap plain text as a book.

    Blank lines separate chapters when a line of the form "Chapter ..." starts
    a block; otherwise the whole text is one chapter.
    """
    parts = re.split(r"\n\s*\n(?=\s*chapter\b)", text.strip(), flags=re.IGNORECASE)
    chapters = []
    for part in parts:
        if not part.strip():
            continue
        first_line = part.strip().splitlines()[0].strip()
        chapter_title = first_line if first_line.lower().startswith("chapter") else f"Chapter {len(chapters) + 1}"
        chapters.append(Chapter(index=len(chapters), title=chapter_title, text=part.strip()))
    if not chapters:
        raise ValueError(f"No readable text in '{title}'")
    return Book(id=book_id, title=title, author=author, chapters=chapters)


def load_book(path: str | Path, book_id: str = "") -> Book:
    """Load an EPUB or plain-text file from disk."""
    path = Path(path)
    if path.suffix.lower() == ".epub":
        return EpubParser(str(path)).parse(book_id)
    return book_from_text(path.stem, path.read_text(encoding="utf-8"), book_id=book_id)
