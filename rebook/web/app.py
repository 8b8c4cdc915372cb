"""FastAPI web interface for the rebook reader."""

import asyncio
import json
import logging
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from rebook.config import ReaderConfig
from rebook.errors import BookNotFound, NarrationFailure, SelectionNotFound
from rebook.library import Library, new_book_id
from rebook.models import Book, NarrationConfig
from rebook.playback import PlaybackEvent
from rebook.positions import JsonPositionStore
from rebook.session import ReaderSession
from rebook.web.events import ClientAudioSink, EventHub

logger = logging.getLogger(__name__)


# --- Pydantic models ---

class PageRequest(BaseModel):
    page_index: int


class SelectionRequest(BaseModel):
    text: str
    page_index: Optional[int] = None


class PlayRequest(BaseModel):
    sentence_index: Optional[int] = None
    provider: Optional[str] = None
    voice: str = ""
    speed: float = 1.0
    pitch: Optional[str] = None
    language: Optional[str] = None
    model: Optional[str] = None


class JumpRequest(BaseModel):
    sentence_index: int


# --- Serialization ---

def _book_summary(book: Book) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "chapters": len(book.chapters),
        "importedAt": book.imported_at,
        "hasCover": book.cover_image is not None,
    }


def _reader_state(session: ReaderSession) -> dict:
    state = {
        "bookId": session.book.id,
        "title": session.book.title,
        "pageIndex": session.page_index,
        "pageCount": session.page_count,
        "sentenceIndex": session.sentence_index,
        "sentenceCount": len(session.sentences),
        "progressPercent": session.progress_percent,
        "sentenceLabel": session.sentence_progress_label,
        "isPlaying": session.is_playing,
    }
    if session.scheduler is not None:
        state["cursor"] = session.scheduler.cursor()
    return state


# --- Background playback ---

async def run_playback(session: ReaderSession, hub: EventHub, sentence_index: Optional[int] = None) -> None:
    """Play the session in a background task, reporting any error to subscribers."""
    try:
        await session.play(sentence_index)
    except NarrationFailure as e:
        # Already reported to subscribers as a "failed" event
        logger.error("Playback failed for '%s': %s", session.book.title, e)
    except Exception as e:
        logger.exception("Playback crashed for '%s'", session.book.title)
        session.pause()
        hub.publish("failed", {
            "sentenceIndex": session.sentence_index,
            "pageIndex": session.page_index,
            "detail": str(e),
        })


# --- App factory ---

def create_app(config: Optional[ReaderConfig] = None) -> FastAPI:
    from rebook import __version__
    from rebook.tts import get_provider, import_providers

    config = config or ReaderConfig.from_env()
    app = FastAPI(title="rebook", version=__version__)

    library = Library(
        config.library_path,
        position_store=JsonPositionStore(config.positions_path),
        word_limit=config.word_limit,
        lookahead=config.lookahead_pages,
        chunk_size=config.chunk_size,
    )
    library.load()
    hub = EventHub()
    sink = ClientAudioSink(hub)
    providers: dict = {}
    playback = {"task": None}
    import_providers()

    app.state.library = library
    app.state.hub = hub
    app.state.sink = sink

    def active_session() -> ReaderSession:
        session = library.active
        if session is None:
            raise HTTPException(409, detail="No active book")
        return session

    def provider_for(name: str):
        if name not in providers:
            provider = get_provider(name, **(config.provider_options() if name == config.provider else {}))
            provider.initialize()
            providers[name] = provider
        return providers[name]

    def on_event(event: PlaybackEvent) -> None:
        hub.publish(event.kind, {
            "sentenceIndex": event.sentence_index,
            "pageIndex": event.page_index,
            "detail": event.detail,
        })

    # --- Library routes ---

    @app.get("/api/books")
    async def list_books():
        active = library.active
        return {
            "books": [_book_summary(b) for b in library.books()],
            "activeBookId": active.book.id if active else None,
        }

    @app.post("/api/books")
    async def upload_book(file: UploadFile):
        if not file.filename or not file.filename.lower().endswith(".epub"):
            raise HTTPException(400, detail="File must be an EPUB")

        from rebook.epub_parser import EpubParser

        content = await file.read()
        with tempfile.TemporaryDirectory(prefix="rebook_") as tmp:
            epub_path = Path(tmp) / "upload.epub"
            epub_path.write_bytes(content)
            try:
                book = EpubParser(str(epub_path)).parse(new_book_id())
            except Exception as e:
                raise HTTPException(400, detail=f"EPUB parsing failed: {e}")

        library.add(book)
        return _book_summary(book)

    @app.delete("/api/books/{book_id}")
    async def delete_book(book_id: str):
        try:
            library.remove(book_id)
        except BookNotFound:
            raise HTTPException(404, detail="Book not found")
        return {"removed": book_id}

    @app.get("/api/books/{book_id}/cover")
    async def get_cover(book_id: str):
        try:
            book = library.get(book_id)
        except BookNotFound:
            raise HTTPException(404, detail="Book not found")
        if not book.cover_image:
            raise HTTPException(404, detail="Cover not available")
        return Response(content=book.cover_image, media_type=book.cover_mime or "image/jpeg")

    @app.post("/api/books/{book_id}/activate")
    async def activate_book(book_id: str):
        try:
            session = library.activate(book_id)
        except BookNotFound:
            raise HTTPException(404, detail="Book not found")
        return _reader_state(session)

    # --- Reader routes ---

    @app.get("/api/reader")
    async def reader_state():
        return _reader_state(active_session())

    @app.get("/api/reader/pages/{page_index}")
    async def get_page(page_index: int):
        session = active_session()
        if not 0 <= page_index < session.page_count:
            raise HTTPException(404, detail="Page not found")
        page = session.pagination.pages[page_index]
        sentence_ids = [i for i, p in enumerate(session.page_map) if p == page_index]
        return {
            "pageIndex": page_index,
            "pageCount": session.page_count,
            "wordCount": page.word_count,
            "html": page.html,
            "text": page.text,
            "sentenceIndices": sentence_ids,
        }

    @app.post("/api/reader/page")
    async def go_to_page(req: PageRequest):
        session = active_session()
        session.go_to_page(req.page_index)
        return _reader_state(session)

    @app.post("/api/reader/next")
    async def next_page():
        session = active_session()
        session.next_page()
        return _reader_state(session)

    @app.post("/api/reader/prev")
    async def prev_page():
        session = active_session()
        session.prev_page()
        return _reader_state(session)

    @app.get("/api/reader/anchor")
    async def resolve_link(href: str, element_id: Optional[str] = None):
        session = active_session()
        page_index = session.page_for_anchor(href, element_id)
        if page_index is None:
            raise HTTPException(404, detail="Link target not in this book")
        return {"pageIndex": page_index}

    @app.post("/api/reader/resolve")
    async def resolve_selection(req: SelectionRequest):
        session = active_session()
        if not session.is_actionable(req.text):
            raise HTTPException(422, detail="Selection too short")
        try:
            index = session.resolve_selection(req.text, req.page_index)
        except SelectionNotFound:
            raise HTTPException(404, detail="No actionable match")
        return {"sentenceIndex": index, "pageIndex": session.page_map[index]}

    # --- Playback routes ---

    @app.post("/api/reader/play", status_code=202)
    async def play(req: PlayRequest):
        session = active_session()
        if session.is_playing:
            raise HTTPException(409, detail="Already playing")

        try:
            provider = provider_for(req.provider or config.provider)
        except (ValueError, RuntimeError, ImportError) as e:
            raise HTTPException(400, detail=str(e))

        narration = NarrationConfig(
            voice=req.voice or config.voice,
            speed=req.speed,
            pitch=req.pitch,
            language=req.language or config.language,
            model=req.model,
        )
        if session.scheduler is None or session.scheduler.provider is not provider:
            session.attach_playback(provider, sink, narration, on_event=on_event)
        else:
            session.scheduler.config = narration

        playback["task"] = asyncio.create_task(run_playback(session, hub, req.sentence_index))
        return _reader_state(session)

    @app.post("/api/reader/pause")
    async def pause():
        session = active_session()
        session.pause()
        return _reader_state(session)

    @app.post("/api/reader/jump")
    async def jump(req: JumpRequest):
        session = active_session()
        session.jump_to(req.sentence_index)
        return _reader_state(session)

    @app.post("/api/reader/audio/{clip_id}/ended")
    async def audio_ended(clip_id: str):
        if not sink.ended(clip_id):
            raise HTTPException(409, detail="Clip is not playing")
        return {"clipId": clip_id}

    @app.get("/api/reader/events")
    async def events():
        queue = hub.subscribe()

        async def event_generator():
            try:
                while True:
                    message = await queue.get()
                    yield {"event": message["event"], "data": json.dumps(message["data"])}
            finally:
                hub.unsubscribe(queue)

        return EventSourceResponse(event_generator())

    return app


# --- CLI entry point ---

def main():
    """Run the rebook web server."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="rebook web reader")
    parser.add_argument("--host", default="127.0.0.1", help="Host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--data-dir", default=None, help="Directory for library and positions")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    config = ReaderConfig.from_env()
    if args.data_dir:
        config.data_dir = Path(args.data_dir).expanduser()

    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
