"""Book library with the active reader session."""

import base64
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rebook.errors import BookNotFound
from rebook.mapper import DEFAULT_LOOKAHEAD, SentencePageMapper
from rebook.models import Book, Chapter, ContentBlock
from rebook.positions import MemoryPositionStore, PositionStore, write_json_atomic
from rebook.session import ReaderSession
from rebook.text.paginator import DEFAULT_WORD_LIMIT

logger = logging.getLogger(__name__)


def new_book_id() -> str:
    return f"book-{uuid.uuid4().hex[:12]}"


class Library:
    """Thread-safe book store, newest first, persisted to ``library.json``.

    At most one book is active; activating another closes the old session.
    """

    def __init__(
        self,
        path: Optional[str | Path] = None,
        position_store: Optional[PositionStore] = None,
        word_limit: int = DEFAULT_WORD_LIMIT,
        lookahead: int = DEFAULT_LOOKAHEAD,
        chunk_size: int = 2,
    ):
        self.path = Path(path) if path else None
        self.position_store = position_store or MemoryPositionStore()
        self.word_limit = word_limit
        self.chunk_size = chunk_size
        self.mapper = SentencePageMapper(lookahead)
        self._books: list[Book] = []
        self._active: Optional[ReaderSession] = None
        self._lock = threading.RLock()

    # --- Books ---

    def add(self, book: Book) -> Book:
        with self._lock:
            if not book.id:
                book.id = new_book_id()
            if not book.imported_at:
                book.imported_at = datetime.now(timezone.utc).isoformat()
            self._books = [b for b in self._books if b.id != book.id]
            self._books.insert(0, book)
            self.save()
        logger.info("Added '%s' to the library (%s)", book.title, book.id)
        return book

    def get(self, book_id: str) -> Book:
        with self._lock:
            for book in self._books:
                if book.id == book_id:
                    return book
        raise BookNotFound(book_id)

    def books(self) -> list[Book]:
        with self._lock:
            return list(self._books)

    def remove(self, book_id: str) -> None:
        """Remove a book with its reading position and cached maps."""
        with self._lock:
            book = self.get(book_id)
            self._books.remove(book)
            if self._active is not None and self._active.book.id == book_id:
                self._active.close()
                self._active = None
            self.position_store.remove(book_id)
            self.mapper.invalidate(book_id)
            self.save()
        logger.info("Removed '%s' from the library", book.title)

    # --- Active session ---

    @property
    def active(self) -> Optional[ReaderSession]:
        return self._active

    def activate(self, book_id: str) -> ReaderSession:
        """Open a book, discarding the previous session."""
        with self._lock:
            book = self.get(book_id)
            if self._active is not None:
                self._active.close()
                self._active = None
            self._active = ReaderSession(
                book,
                word_limit=self.word_limit,
                position_store=self.position_store,
                mapper=self.mapper,
                chunk_size=self.chunk_size,
            )
            return self._active

    def deactivate(self) -> None:
        with self._lock:
            if self._active is not None:
                self._active.close()
                self._active = None

    # --- Persistence ---

    def save(self) -> None:
        if self.path is None:
            return
        with self._lock:
            data = [_book_to_dict(b) for b in self._books]
        write_json_atomic(self.path, data)

    def load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to read library file {self.path}: {e}") from e
        with self._lock:
            self._books = [_book_from_dict(entry) for entry in data]
        logger.info("Loaded %d books from %s", len(self._books), self.path)


def _book_to_dict(book: Book) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "coverBase64": base64.b64encode(book.cover_image).decode("ascii") if book.cover_image else None,
        "coverMime": book.cover_mime,
        "importedAt": book.imported_at,
        "chapters": [
            {
                "index": c.index,
                "title": c.title,
                "text": c.text,
                "html": c.html,
                "sourceHref": c.source_href,
                "blocks": [_block_to_dict(b) for b in c.blocks] if c.blocks is not None else None,
            }
            for c in book.chapters
        ],
    }


def _book_from_dict(data: dict) -> Book:
    cover = data.get("coverBase64")
    return Book(
        id=data["id"],
        title=data.get("title") or "Untitled Book",
        author=data.get("author") or "",
        chapters=[
            Chapter(
                index=c.get("index", i),
                title=c.get("title") or f"Chapter {i + 1}",
                text=c.get("text", ""),
                html=c.get("html"),
                source_href=c.get("sourceHref"),
                blocks=[_block_from_dict(b) for b in c["blocks"]] if c.get("blocks") is not None else None,
            )
            for i, c in enumerate(data.get("chapters", []))
        ],
        cover_image=base64.b64decode(cover) if cover else None,
        cover_mime=data.get("coverMime"),
        imported_at=data.get("importedAt"),
    )


def _block_to_dict(block: ContentBlock) -> dict:
    return {
        "kind": block.kind,
        "text": block.text,
        "html": block.html,
        "sourceHref": block.source_href,
        "elementIds": list(block.element_ids),
    }


def _block_from_dict(data: dict) -> ContentBlock:
    return ContentBlock(
        kind=data.get("kind", "paragraph"),
        text=data.get("text", ""),
        html=data.get("html"),
        source_href=data.get("sourceHref"),
        element_ids=tuple(data.get("elementIds", ())),
    )
