"""Tests for EPUB parser."""

import pytest

from rebook.epub_parser import (
    EpubParser,
    book_from_text,
    load_book,
    mime_from_bytes,
    parse_author_name,
)
from helpers import create_test_epub


class TestEpubParser:
    def test_parse_basic_epub(self, tmp_path):
        epub_path = str(tmp_path / "test.epub")
        create_test_epub(epub_path, [
            ("Chapter 1", "<p>This is the first chapter.</p>"),
            ("Chapter 2", "<p>This is the second chapter.</p>"),
        ])

        book = EpubParser(epub_path).parse("b1")

        assert book.id == "b1"
        assert book.title == "Test Book"
        assert book.author == "Test Author"
        assert len(book.chapters) == 2
        assert book.chapters[0].title == "Chapter 1"
        assert "first chapter" in book.chapters[0].text
        assert book.chapters[1].index == 1

    def test_parse_extracts_titles_from_headings(self, tmp_path):
        epub_path = str(tmp_path / "test.epub")
        create_test_epub(epub_path, [
            ("The Awakening", "<p>It was a cold morning.</p>"),
        ])

        book = EpubParser(epub_path).parse()

        assert book.chapters[0].title == "The Awakening"

    def test_parse_multiple_chapters_preserves_order(self, tmp_path):
        """Chapters should be returned in spine order with correct indices."""
        epub_path = str(tmp_path / "test.epub")
        create_test_epub(epub_path, [
            ("First", "<p>Content one.</p>"),
            ("Second", "<p>Content two.</p>"),
            ("Third", "<p>Content three.</p>"),
        ])

        chapters = EpubParser(epub_path).parse().chapters

        assert [c.index for c in chapters] == [0, 1, 2]
        assert "one" in chapters[0].text
        assert "three" in chapters[2].text

    def test_parse_keeps_source_file_and_blocks(self, tmp_path):
        epub_path = str(tmp_path / "test.epub")
        create_test_epub(epub_path, [
            ("Notes", '<p>Intro text.</p><p id="n1">A footnote.</p>'),
        ])

        chapter = EpubParser(epub_path).parse().chapters[0]

        assert chapter.source_href == "chap_00.xhtml"
        assert [b.kind for b in chapter.blocks] == ["heading", "paragraph", "paragraph"]
        assert chapter.blocks[2].element_ids == ("n1",)
        assert all(b.source_href == "chap_00.xhtml" for b in chapter.blocks)

    def test_parse_cleans_html(self, tmp_path):
        epub_path = str(tmp_path / "test.epub")
        html = (
            "<p>Paragraph one.</p>"
            "<script>alert('xss')</script>"
            "<style>.foo{color:red}</style>"
            "<p>Paragraph two.</p>"
        )
        create_test_epub(epub_path, [("Test", html)])

        chapter = EpubParser(epub_path).parse().chapters[0]

        assert "alert" not in chapter.text
        assert "color" not in chapter.text
        assert "Paragraph one" in chapter.text
        assert "Paragraph two" in chapter.text

    def test_parse_formats_catalog_author(self, tmp_path):
        epub_path = str(tmp_path / "test.epub")
        create_test_epub(epub_path, [("One", "<p>Text.</p>")], author="Dalio, Ray")

        assert EpubParser(epub_path).parse().author == "Ray Dalio"

    def test_parse_raises_on_nonexistent_file(self, tmp_path):
        """Attempting to parse a nonexistent file should raise."""
        parser = EpubParser(str(tmp_path / "nonexistent.epub"))
        with pytest.raises(Exception):
            parser.parse()


class TestAuthorName:
    @pytest.mark.parametrize("raw, expected", [
        ("Dalio, Ray;", "Ray Dalio"),
        ("Ray Dalio", "Ray Dalio"),
        (None, ""),
        ("", ""),
    ])
    def test_parse_author_name(self, raw, expected):
        assert parse_author_name(raw) == expected


class TestCoverMime:
    def test_detects_common_formats(self):
        assert mime_from_bytes(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
        assert mime_from_bytes(b"\x89PNG\r\n\x1a\nrest") == "image/png"
        assert mime_from_bytes(b"GIF89arest") == "image/gif"
        assert mime_from_bytes(b"RIFF\x00\x00\x00\x00WEBPrest") == "image/webp"
        assert mime_from_bytes(b"plain") is None


class TestPlainText:
    def test_single_chapter(self):
        book = book_from_text("Notes", "Line one.\nLine two.")
        assert len(book.chapters) == 1
        assert book.chapters[0].title == "Chapter 1"

    def test_splits_on_chapter_headings(self):
        text = "Chapter One\nIt begins.\n\nChapter Two\nIt goes on."
        book = book_from_text("Story", text)
        assert [c.title for c in book.chapters] == ["Chapter One", "Chapter Two"]

    def test_empty_text_raises(self):
        with pytest.raises(ValueError):
            book_from_text("Empty", "   ")

    def test_load_book_from_txt(self, tmp_path):
        path = tmp_path / "story.txt"
        path.write_text("Once upon a time.", encoding="utf-8")

        book = load_book(path, "b9")

        assert book.title == "story"
        assert book.id == "b9"
        assert book.chapters[0].text == "Once upon a time."
