"""Per-book reader session.

A session owns everything derived from the active book: paragraphs,
sentences, pages, the sentence-page map, the reading cursor and the playback
scheduler. Switching books builds a new session; nothing is shared between
sessions.
"""

import logging
from typing import Optional

from rebook.audio.sink import AudioSink
from rebook.mapper import SentencePageMapper, first_sentence_on_page
from rebook.models import Book, NarrationConfig, Page, ReadingPosition
from rebook.playback import EventCallback, PlaybackEvent, PlaybackScheduler
from rebook.positions import MemoryPositionStore, PositionStore, clamp_position, restore_position
from rebook.resolver import SelectionResolver, is_actionable
from rebook.text.paginator import DEFAULT_WORD_LIMIT, build_anchor_index, paginate, resolve_anchor
from rebook.text.paragraphs import build_paragraphs
from rebook.text.segmenter import segment
from rebook.tts.base import NarrationProvider

logger = logging.getLogger(__name__)


class ReaderSession:
    """Reading state of one active book."""

    def __init__(
        self,
        book: Book,
        word_limit: int = DEFAULT_WORD_LIMIT,
        position_store: Optional[PositionStore] = None,
        mapper: Optional[SentencePageMapper] = None,
        chunk_size: int = 2,
    ):
        self.book = book
        self.word_limit = word_limit
        self.chunk_size = chunk_size
        self.position_store = position_store or MemoryPositionStore()
        self.mapper = mapper or SentencePageMapper()

        self.paragraphs = build_paragraphs(book.chapters)
        self.sentences = segment(" ".join(p.text for p in self.paragraphs))
        self.pagination = paginate(self.paragraphs, word_limit)
        self.page_map = self.mapper.get(book.id, self.sentences, self.pagination, word_limit)
        self.anchors = build_anchor_index(self.pagination)
        self.resolver = SelectionResolver(self.sentences, self.page_map)

        position = restore_position(self.position_store, book.id, self.page_map, self.page_count)
        self.page_index = position.page_index
        self.sentence_index = position.sentence_index
        self.scheduler: Optional[PlaybackScheduler] = None

        logger.info(
            "Opened '%s': %d paragraphs, %d sentences, %d pages (resume at page %d, sentence %d)",
            book.title, len(self.paragraphs), len(self.sentences), self.page_count,
            self.page_index, self.sentence_index,
        )

    # --- Pages ---

    @property
    def page_count(self) -> int:
        return len(self.pagination.pages)

    @property
    def current_page(self) -> Optional[Page]:
        if not self.pagination.pages:
            return None
        return self.pagination.pages[self.page_index]

    @property
    def progress_percent(self) -> int:
        if not self.page_count:
            return 0
        return round((self.page_index + 1) / self.page_count * 100)

    @property
    def sentence_progress_label(self) -> str:
        if not self.sentences:
            return "Sentence 0 / 0"
        return f"Sentence {min(self.sentence_index, len(self.sentences) - 1) + 1} / {len(self.sentences)}"

    def go_to_page(self, page_index: int) -> int:
        """Show a page (clamped). Moves the sentence cursor unless playing."""
        if not self.page_count:
            return 0
        page_index = min(max(page_index, 0), self.page_count - 1)
        if page_index == self.page_index:
            return page_index
        self.page_index = page_index
        if not self.is_playing:
            first = first_sentence_on_page(self.page_map, page_index)
            position = clamp_position(
                ReadingPosition(page_index, first if first is not None else self.sentence_index),
                self.page_map, self.page_count,
            )
            self.sentence_index = position.sentence_index
            if self.scheduler is not None:
                self.scheduler.sentence_index = self.sentence_index
                self.scheduler.page_index = self.page_index
        self._save_position()
        return page_index

    def next_page(self) -> int:
        return self.go_to_page(self.page_index + 1)

    def prev_page(self) -> int:
        return self.go_to_page(self.page_index - 1)

    def page_for_anchor(self, source_file: str, element_id: Optional[str] = None) -> Optional[int]:
        """Page holding a link target, for internal link navigation."""
        return resolve_anchor(self.anchors, source_file, element_id)

    # --- Selection ---

    def is_actionable(self, selected_text: str) -> bool:
        return is_actionable(selected_text)

    def resolve_selection(self, selected_text: str, page_index: Optional[int] = None) -> int:
        """Sentence index for selected text.

        Raises:
            SelectionNotFound: No sentence matches.
        """
        anchor = self.scheduler.sentence_index if self.is_playing else None
        page = self.page_index if page_index is None else page_index
        return self.resolver.resolve(selected_text, page, anchor)

    # --- Playback ---

    @property
    def is_playing(self) -> bool:
        return self.scheduler is not None and self.scheduler.is_playing

    def attach_playback(
        self,
        provider: NarrationProvider,
        sink: AudioSink,
        config: NarrationConfig,
        on_event: Optional[EventCallback] = None,
    ) -> PlaybackScheduler:
        """Create the playback scheduler for this session, replacing any previous one."""
        if self.scheduler is not None:
            self.scheduler.pause()

        def handle_event(event: PlaybackEvent) -> None:
            # A finished book leaves the scheduler one chunk past the end
            if event.sentence_index < len(self.sentences):
                self.sentence_index = event.sentence_index
            self.page_index = event.page_index
            if on_event is not None:
                on_event(event)

        self.scheduler = PlaybackScheduler(
            self.sentences,
            self.page_map,
            provider,
            sink,
            config,
            chunk_size=self.chunk_size,
            on_event=handle_event,
            on_position=self._store_position,
            sentence_index=self.sentence_index,
            page_index=self.page_index,
        )
        return self.scheduler

    async def play(self, from_sentence_index: Optional[int] = None) -> None:
        """Narrate from the cursor or ``from_sentence_index``."""
        if self.scheduler is None:
            raise RuntimeError("No playback attached; call attach_playback() first")
        await self.scheduler.start(from_sentence_index)

    def pause(self) -> None:
        if self.scheduler is not None:
            self.scheduler.pause()

    def jump_to(self, sentence_index: int) -> None:
        """Move the reading cursor to a sentence, pausing playback."""
        if self.scheduler is not None:
            self.scheduler.jump_to(sentence_index)
            self.sentence_index = self.scheduler.sentence_index
            self.page_index = self.scheduler.page_index
            return
        if not self.sentences:
            return
        self.sentence_index = min(max(sentence_index, 0), len(self.sentences) - 1)
        self.page_index = self.page_map[self.sentence_index]
        self._save_position()

    def close(self) -> None:
        """Stop playback; the session must not be used afterwards."""
        self.pause()
        self.scheduler = None

    # --- Position ---

    @property
    def position(self) -> ReadingPosition:
        return ReadingPosition(self.page_index, self.sentence_index)

    def _save_position(self) -> None:
        self._store_position(self.position)

    def _store_position(self, position: ReadingPosition) -> None:
        self.position_store.save(self.book.id, position)
