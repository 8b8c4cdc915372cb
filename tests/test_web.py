"""Tests for the web API."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from rebook.audio.sink import AudioSink
from rebook.config import ReaderConfig
from rebook.models import AudioClip, Book, Chapter, NarrationConfig
from rebook.session import ReaderSession
from rebook.web.app import create_app, run_playback
from rebook.web.events import ClientAudioSink, EventHub
from helpers import FakeProvider, create_test_epub


@pytest.fixture
def config(tmp_path):
    return ReaderConfig(data_dir=tmp_path / "data", provider="silent", word_limit=10)


@pytest.fixture
def client(config):
    return TestClient(create_app(config))


@pytest.fixture
def epub_bytes(tmp_path):
    path = tmp_path / "book.epub"
    create_test_epub(str(path), [
        ("Chapter 1", "<p>The morning was cold and grey.</p><p>Anna walked to the station alone.</p>"),
        ("Chapter 2", "<p>Nobody on the platform spoke a word.</p>"),
    ])
    return path.read_bytes()


def _upload(client, epub_bytes) -> str:
    resp = client.post("/api/books", files={"file": ("book.epub", epub_bytes, "application/epub+zip")})
    assert resp.status_code == 200
    return resp.json()["id"]


class TestLibraryRoutes:
    def test_empty_library(self, client):
        resp = client.get("/api/books")
        assert resp.json() == {"books": [], "activeBookId": None}

    def test_upload_rejects_non_epub(self, client):
        resp = client.post("/api/books", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 400

    def test_upload_rejects_broken_epub(self, client):
        resp = client.post("/api/books", files={"file": ("bad.epub", b"not a zip", "application/epub+zip")})
        assert resp.status_code == 400

    def test_upload_and_list(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)

        books = client.get("/api/books").json()["books"]
        assert [b["id"] for b in books] == [book_id]
        assert books[0]["title"] == "Test Book"
        assert books[0]["author"] == "Test Author"
        assert books[0]["chapters"] == 2

    def test_library_persists(self, config, client, epub_bytes):
        book_id = _upload(client, epub_bytes)

        reopened = TestClient(create_app(config))
        assert [b["id"] for b in reopened.get("/api/books").json()["books"]] == [book_id]

    def test_missing_cover(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        resp = client.get(f"/api/books/{book_id}/cover")
        assert resp.status_code == 404

    def test_delete(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        assert client.delete(f"/api/books/{book_id}").status_code == 200
        assert client.delete(f"/api/books/{book_id}").status_code == 404
        assert client.get("/api/reader").status_code == 409

    def test_activate_unknown_book(self, client):
        assert client.post("/api/books/missing/activate").status_code == 404


class TestReaderRoutes:
    def test_reader_requires_active_book(self, client):
        resp = client.get("/api/reader")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "No active book"

    def test_activate_and_navigate(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)

        state = client.post(f"/api/books/{book_id}/activate").json()
        assert state["bookId"] == book_id
        assert state["pageIndex"] == 0
        assert state["pageCount"] == 3
        assert state["sentenceCount"] == 3

        state = client.post("/api/reader/next").json()
        assert state["pageIndex"] == 1
        assert state["sentenceIndex"] == 1

        state = client.post("/api/reader/page", json={"page_index": 99}).json()
        assert state["pageIndex"] == 2

        state = client.post("/api/reader/prev").json()
        assert state["pageIndex"] == 1

    def test_get_page(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        page = client.get("/api/reader/pages/1").json()
        assert "Anna walked to the station alone." in page["html"]
        assert page["sentenceIndices"] == [1]
        assert client.get("/api/reader/pages/7").status_code == 404

    def test_anchor(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        assert client.get("/api/reader/anchor", params={"href": "chap_01.xhtml"}).json() == {"pageIndex": 1}
        assert client.get("/api/reader/anchor", params={"href": "missing.xhtml"}).status_code == 404

    def test_resolve_selection(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        resp = client.post("/api/reader/resolve", json={"text": "Nobody on the platform", "page_index": 2})
        assert resp.json() == {"sentenceIndex": 2, "pageIndex": 2}

    def test_resolve_rejects_short_selection(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        resp = client.post("/api/reader/resolve", json={"text": "a"})
        assert resp.status_code == 422

    def test_resolve_without_match(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        resp = client.post("/api/reader/resolve", json={"text": "words that never appear"})
        assert resp.status_code == 404

    def test_jump(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        state = client.post("/api/reader/jump", json={"sentence_index": 2}).json()
        assert state["sentenceIndex"] == 2
        assert state["pageIndex"] == 2

    def test_play_with_unknown_provider(self, client, epub_bytes):
        book_id = _upload(client, epub_bytes)
        client.post(f"/api/books/{book_id}/activate")

        resp = client.post("/api/reader/play", json={"provider": "nope"})
        assert resp.status_code == 400


class TestClientAudioSink:
    def test_play_waits_for_ended(self):
        async def run():
            hub = EventHub()
            queue = hub.subscribe()
            sink = ClientAudioSink(hub)

            task = asyncio.create_task(sink.play(AudioClip(b"abc", "audio/mpeg", start_index=4)))
            message = await queue.get()
            assert not sink.ended("other")
            assert sink.ended(message["data"]["clipId"])
            await task
            return message

        message = asyncio.run(run())
        assert message["event"] == "audio"
        assert message["data"]["startIndex"] == 4
        assert message["data"]["audioBase64"] == "YWJj"

    def test_stop_releases_play(self):
        async def run():
            hub = EventHub()
            queue = hub.subscribe()
            sink = ClientAudioSink(hub)

            task = asyncio.create_task(sink.play(AudioClip(b"abc", "audio/mpeg")))
            await queue.get()
            sink.stop()
            await task
            return await queue.get()

        assert asyncio.run(run())["event"] == "stop"


class BrokenSink(AudioSink):
    async def play(self, clip: AudioClip) -> None:
        raise OSError("audio device gone")

    def stop(self) -> None:
        pass


class TestRunPlayback:
    def test_unexpected_error_is_reported_as_failed(self):
        book = Book(id="b1", title="Short", author="", chapters=[
            Chapter(index=0, title="One", text="First line here. Second line here."),
        ])

        async def run():
            hub = EventHub()
            queue = hub.subscribe()
            session = ReaderSession(book)
            session.attach_playback(FakeProvider(), BrokenSink(), NarrationConfig())
            await run_playback(session, hub)
            return session, queue.get_nowait()

        session, message = asyncio.run(run())
        assert message["event"] == "failed"
        assert message["data"]["detail"] == "audio device gone"
        assert not session.is_playing
