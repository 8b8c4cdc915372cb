"""Test helpers: fake narration provider, fake audio sink, EPUB builder."""

import asyncio
from typing import Optional

from ebooklib import epub

from rebook.audio.sink import AudioSink
from rebook.models import AudioClip, NarrationConfig
from rebook.tts.base import NarrationProvider


class FakeProvider(NarrationProvider):
    """Returns a tiny clip per request. Texts in ``blocked`` wait for ``release``."""

    def __init__(self, fail_texts=(), fail_once=(), blocked=()):
        self.calls: list[str] = []
        self.fail_texts = set(fail_texts)
        self.fail_once = set(fail_once)
        self.blocked = set(blocked)
        self.gate = asyncio.Event()

    def initialize(self) -> None:
        pass

    async def synthesize(self, text: str, config: NarrationConfig) -> AudioClip:
        self.calls.append(text)
        if text in self.blocked:
            await self.gate.wait()
        if text in self.fail_texts:
            raise RuntimeError("provider unavailable")
        if text in self.fail_once:
            self.fail_once.discard(text)
            raise RuntimeError("transient failure")
        return AudioClip(data=text.encode("utf-8"), mime="audio/mpeg")

    def release(self) -> None:
        self.gate.set()

    def list_voices(self, language: Optional[str] = None) -> list[dict]:
        return [{"name": "fake", "language": "en"}]

    @property
    def name(self) -> str:
        return "Fake"

    @property
    def output_format(self) -> str:
        return "mp3"


class FakeSink(AudioSink):
    """Records played clips; yields to the loop a few times per clip."""

    def __init__(self, block: bool = False):
        self.played: list[int] = []
        self.stops = 0
        self.block = block
        self._stopped: Optional[asyncio.Event] = None

    async def play(self, clip: AudioClip) -> None:
        self.played.append(clip.start_index)
        if self.block:
            self._stopped = asyncio.Event()
            await self._stopped.wait()
            return
        for _ in range(5):
            await asyncio.sleep(0)

    def stop(self) -> None:
        self.stops += 1
        if self._stopped is not None:
            self._stopped.set()


def create_test_epub(path: str, chapters: list[tuple[str, str]], author: str = "Test Author") -> None:
    """Create a minimal EPUB file for testing.

    Args:
        path: Where to write the EPUB.
        chapters: List of (title, html_body) tuples.
    """
    book = epub.EpubBook()
    book.set_identifier("test-book-001")
    book.set_title("Test Book")
    book.set_language("en")
    book.add_author(author)

    spine_items = ["nav"]
    toc = []

    for i, (title, body) in enumerate(chapters):
        ch = epub.EpubHtml(
            title=title,
            file_name=f"chap_{i:02d}.xhtml",
            lang="en",
        )
        ch.content = f"<html><body><h1>{title}</h1>{body}</body></html>".encode()
        book.add_item(ch)
        spine_items.append(ch)
        toc.append(ch)

    book.toc = toc
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = spine_items

    epub.write_epub(path, book)

