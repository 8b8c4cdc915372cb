"""Playback scheduler: chunked narration with one-step prefetch.

Runs on a single asyncio event loop. The only suspension points are the
narration request for the current chunk, the prefetch request for the next
chunk, and the audio sink playing a clip. Every completion checks the
scheduler's token, which ``pause`` and ``jump_to`` bump, so a response that
arrives after the cursor moved is dropped instead of played.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from rebook.audio.sink import AudioSink
from rebook.errors import NarrationFailure
from rebook.models import AudioClip, NarrationConfig, PlaybackState, ReadingPosition
from rebook.tts.base import NarrationProvider

logger = logging.getLogger(__name__)

CHUNK_SIZE = 2


@dataclass
class PlaybackEvent:
    """Notification emitted on every scheduler transition."""
    kind: str
    sentence_index: int
    page_index: int
    detail: Optional[str] = None


EventCallback = Callable[[PlaybackEvent], None]
PositionCallback = Callable[[ReadingPosition], None]


class PlaybackScheduler:
    """Walks sentence chunks forward, narrating one chunk at a time.

    State machine: IDLE -> GENERATING -> PLAYING -> ADVANCING -> ... -> IDLE.
    A chunk whose audio was prefetched skips GENERATING.
    """

    def __init__(
        self,
        sentences: Sequence[str],
        page_map: Sequence[int],
        provider: NarrationProvider,
        sink: AudioSink,
        config: NarrationConfig,
        chunk_size: int = CHUNK_SIZE,
        on_event: Optional[EventCallback] = None,
        on_position: Optional[PositionCallback] = None,
        sentence_index: int = 0,
        page_index: int = 0,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        if len(sentences) != len(page_map):
            raise ValueError("page_map must have one entry per sentence")
        self.sentences = list(sentences)
        self.page_map = list(page_map)
        self.provider = provider
        self.sink = sink
        self.config = config
        self.chunk_size = chunk_size
        self.on_event = on_event
        self.on_position = on_position

        self.state = PlaybackState.IDLE
        self.sentence_index = sentence_index
        self.page_index = page_index
        self.is_advancing = False
        self.is_prefetching = False
        self.prefetch_queue: dict[int, AudioClip] = {}
        self._token = 0
        self._prefetch_task: Optional[asyncio.Task] = None

    @property
    def is_playing(self) -> bool:
        return self.state != PlaybackState.IDLE

    @property
    def is_generating(self) -> bool:
        return self.state == PlaybackState.GENERATING

    @property
    def token(self) -> int:
        return self._token

    def cursor(self) -> dict:
        """Snapshot of the playback cursor."""
        return {
            "sentenceIndex": self.sentence_index,
            "pageIndex": self.page_index,
            "state": self.state.value,
            "isPlaying": self.is_playing,
            "isAdvancing": self.is_advancing,
            "isGenerating": self.is_generating,
            "prefetched": sorted(self.prefetch_queue),
        }

    async def start(self, from_sentence_index: Optional[int] = None) -> None:
        """Play from the cursor (or ``from_sentence_index``) until done or paused.

        A no-op while a chunk is already advancing.

        Raises:
            NarrationFailure: Narration of a scheduled chunk failed; playback
                is back to IDLE.
        """
        if self.is_advancing:
            logger.debug("start() ignored: a chunk is already advancing")
            return
        if from_sentence_index is not None:
            self._move_cursor(from_sentence_index)

        self._token += 1
        token = self._token
        self.state = PlaybackState.PLAYING

        while self._is_live(token):
            if self.sentence_index >= len(self.sentences):
                self.state = PlaybackState.IDLE
                logger.info("Playback complete")
                self._emit("completed")
                return
            await self._play_chunk(token)

    def pause(self) -> None:
        """Stop playback now.

        In-flight narration requests are left to finish and discarded. An
        outstanding prefetch keeps blocking new prefetches until it returns.
        """
        was_playing = self.is_playing
        self._token += 1
        self.state = PlaybackState.IDLE
        self.is_advancing = False
        self.prefetch_queue.clear()
        self.sink.stop()
        if was_playing:
            logger.info("Playback paused at sentence %d", self.sentence_index)
            self._emit("paused")

    def jump_to(self, sentence_index: int) -> None:
        """Pause and move the cursor to ``sentence_index`` (clamped)."""
        self.pause()
        self._move_cursor(sentence_index)
        self._persist()

    async def _play_chunk(self, token: int) -> None:
        start = self.sentence_index
        self.is_advancing = True
        try:
            clip = self.prefetch_queue.pop(start, None)
            if clip is not None:
                logger.debug("Using prefetched audio for chunk-%d", start)
            else:
                clip = await self._generate(start, token)
                if clip is None:
                    return

            self.state = PlaybackState.PLAYING
            self._emit("playing")
            self._schedule_prefetch(start + self.chunk_size, token)
            await self.sink.play(clip)
            if not self._is_live(token):
                return

            self.state = PlaybackState.ADVANCING
            self._advance(start)
        finally:
            if self._token == token:
                self.is_advancing = False

    async def _generate(self, start: int, token: int) -> Optional[AudioClip]:
        self.state = PlaybackState.GENERATING
        self._emit("generating")
        try:
            clip = await self._synthesize(start)
        except NarrationFailure as e:
            if not self._is_live(token):
                logger.debug("Discarding failure of stale chunk-%d: %s", start, e)
                return None
            logger.error("Narration failed for chunk-%d: %s", start, e)
            self.state = PlaybackState.IDLE
            self.is_advancing = False
            self._emit("failed", str(e))
            raise

        if not self._is_live(token):
            logger.debug("Discarding stale audio for chunk-%d", start)
            return None
        return clip

    async def _synthesize(self, start: int) -> AudioClip:
        text = " ".join(self.sentences[start:start + self.chunk_size])
        logger.debug("Requesting narration for chunk-%d (%d chars)", start, len(text))
        try:
            clip = await self.provider.synthesize(text, self.config)
        except NarrationFailure:
            raise
        except Exception as e:
            raise NarrationFailure(f"chunk-{start}: {e}") from e
        if clip is None or not clip.data:
            raise NarrationFailure(f"chunk-{start}: provider returned no audio")
        clip.start_index = start
        return clip

    def _schedule_prefetch(self, start: int, token: int) -> None:
        if self.is_prefetching or start >= len(self.sentences) or start in self.prefetch_queue:
            return
        self.is_prefetching = True
        self._prefetch_task = asyncio.create_task(self._prefetch(start, token))

    async def _prefetch(self, start: int, token: int) -> None:
        try:
            clip = await self._synthesize(start)
        except NarrationFailure as e:
            logger.warning("Prefetch failed, will generate on demand: %s", e)
            return
        finally:
            self.is_prefetching = False

        if not self._is_live(token):
            logger.debug("Discarding stale prefetch for chunk-%d", start)
            return
        if start < self.sentence_index:
            logger.debug("Discarding late prefetch for chunk-%d", start)
            return
        self.prefetch_queue[start] = clip

    def _advance(self, start: int) -> None:
        self.sentence_index = start + self.chunk_size
        for passed in [k for k in self.prefetch_queue if k < self.sentence_index]:
            del self.prefetch_queue[passed]

        if self.sentence_index >= len(self.sentences):
            self._emit("progress")
            return

        next_page = self.page_map[self.sentence_index]
        if next_page != self.page_index:
            self.page_index = next_page
            self._emit("page_changed")
        else:
            self._emit("progress")
        self._persist()

    def _move_cursor(self, sentence_index: int) -> None:
        if not self.sentences:
            self.sentence_index = 0
            return
        self.sentence_index = min(max(sentence_index, 0), len(self.sentences) - 1)
        next_page = self.page_map[self.sentence_index]
        if next_page != self.page_index:
            self.page_index = next_page
            self._emit("page_changed")

    def _persist(self) -> None:
        if self.on_position is not None and self.sentence_index < len(self.sentences):
            self.on_position(ReadingPosition(self.page_index, self.sentence_index))

    def _is_live(self, token: int) -> bool:
        return self._token == token and self.state != PlaybackState.IDLE

    def _emit(self, kind: str, detail: Optional[str] = None) -> None:
        if self.on_event is not None:
            self.on_event(PlaybackEvent(kind, self.sentence_index, self.page_index, detail))
