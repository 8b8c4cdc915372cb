"""Reading position persistence and clamping."""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from rebook.errors import PositionOutOfRange
from rebook.mapper import first_sentence_on_page
from rebook.models import ReadingPosition

logger = logging.getLogger(__name__)


class PositionStore(ABC):
    """Persists one reading position per book."""

    @abstractmethod
    def load(self, book_id: str) -> Optional[ReadingPosition]:
        ...

    @abstractmethod
    def save(self, book_id: str, position: ReadingPosition) -> None:
        ...

    @abstractmethod
    def remove(self, book_id: str) -> None:
        ...


class MemoryPositionStore(PositionStore):
    """Thread-safe in-memory store."""

    def __init__(self):
        self._positions: dict[str, ReadingPosition] = {}
        self._lock = threading.Lock()

    def load(self, book_id: str) -> Optional[ReadingPosition]:
        with self._lock:
            position = self._positions.get(book_id)
            return ReadingPosition(position.page_index, position.sentence_index) if position else None

    def save(self, book_id: str, position: ReadingPosition) -> None:
        with self._lock:
            self._positions[book_id] = ReadingPosition(position.page_index, position.sentence_index)

    def remove(self, book_id: str) -> None:
        with self._lock:
            self._positions.pop(book_id, None)


class JsonPositionStore(PositionStore):
    """Positions kept in a single JSON file, ``{book_id: {pageIndex, sentenceIndex}}``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self, book_id: str) -> Optional[ReadingPosition]:
        with self._lock:
            data = self._read().get(book_id)
        if not isinstance(data, dict):
            return None
        try:
            return ReadingPosition.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring malformed position for %s: %s", book_id, e)
            return None

    def save(self, book_id: str, position: ReadingPosition) -> None:
        with self._lock:
            data = self._read()
            data[book_id] = position.to_dict()
            self._write(data)

    def remove(self, book_id: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(book_id, None) is not None:
                self._write(data)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Position file %s is corrupt, starting fresh: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        write_json_atomic(self.path, data, indent=2)


def write_json_atomic(path: Path, data, indent: Optional[int] = None) -> None:
    """Write JSON through a temporary file so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def check_position(position: ReadingPosition, page_map: Sequence[int], page_count: int) -> None:
    """Raise PositionOutOfRange unless ``position`` is valid for this pagination."""
    if not 0 <= position.page_index < max(page_count, 1):
        raise PositionOutOfRange(f"page {position.page_index} outside 0..{page_count - 1}")
    if not page_map:
        if position.sentence_index != 0:
            raise PositionOutOfRange(f"sentence {position.sentence_index} in a book without sentences")
        return
    if not 0 <= position.sentence_index < len(page_map):
        raise PositionOutOfRange(f"sentence {position.sentence_index} outside 0..{len(page_map) - 1}")
    if page_map[position.sentence_index] != position.page_index:
        raise PositionOutOfRange(
            f"sentence {position.sentence_index} is on page {page_map[position.sentence_index]}, "
            f"not {position.page_index}"
        )


def clamp_position(position: ReadingPosition, page_map: Sequence[int], page_count: int) -> ReadingPosition:
    """Bring a stored position back in range after re-pagination.

    The page is clamped to the available pages; if the sentence no longer
    maps to that page it moves to the page's first sentence, or to the last
    sentence before the page when no sentence starts on it. Idempotent.
    """
    try:
        check_position(position, page_map, page_count)
        return position
    except PositionOutOfRange as e:
        logger.debug("Clamping stored position: %s", e)

    if page_count <= 0:
        return ReadingPosition(0, 0)

    page_index = min(max(position.page_index, 0), page_count - 1)
    if not page_map:
        return ReadingPosition(page_index, 0)

    sentence_index = min(max(position.sentence_index, 0), len(page_map) - 1)
    if page_map[sentence_index] != page_index:
        first = first_sentence_on_page(page_map, page_index)
        if first is not None:
            sentence_index = first
        else:
            before = [i for i, page in enumerate(page_map) if page < page_index]
            sentence_index = before[-1] if before else 0
    return ReadingPosition(page_index, sentence_index)


def restore_position(
    store: PositionStore,
    book_id: str,
    page_map: Sequence[int],
    page_count: int,
) -> ReadingPosition:
    """Load a book's position, clamped to the current pagination."""
    stored = store.load(book_id)
    if stored is None:
        return ReadingPosition(0, 0)
    return clamp_position(stored, page_map, page_count)
