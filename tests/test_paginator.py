"""Tests for paragraph extraction, pagination and anchor lookup."""

import pytest

from rebook.models import Chapter, ContentBlock, Paragraph
from rebook.text.paginator import build_anchor_index, paginate, resolve_anchor
from rebook.text.paragraphs import blocks_from_html, build_paragraphs


def _words(n: int, word: str = "word") -> str:
    return " ".join([word] * n)


class TestPaginate:
    def test_single_page_when_under_limit(self):
        paragraphs = [Paragraph("Hello world. This is Rebook. Read on!")]
        pagination = paginate(paragraphs, word_limit=250)
        assert len(pagination.pages) == 1
        assert pagination.word_counts == [7]

    def test_two_large_paragraphs_split_into_two_pages(self):
        """200 + 200 > 250, so the second paragraph starts page 1."""
        paragraphs = [Paragraph(_words(200, "a")), Paragraph(_words(200, "b"))]
        pagination = paginate(paragraphs, word_limit=250)
        assert len(pagination.pages) == 2
        assert pagination.pages[0].paragraphs == [paragraphs[0]]
        assert pagination.pages[1].paragraphs == [paragraphs[1]]
        assert pagination.word_counts == [200, 200]

    def test_exact_limit_fits_on_one_page(self):
        paragraphs = [Paragraph(_words(125)), Paragraph(_words(125))]
        assert len(paginate(paragraphs, word_limit=250).pages) == 1

    def test_oversized_paragraph_gets_its_own_page(self):
        paragraphs = [Paragraph(_words(10)), Paragraph(_words(300)), Paragraph(_words(10))]
        pagination = paginate(paragraphs, word_limit=250)
        assert pagination.word_counts == [10, 300, 10]
        assert pagination.pages[1].paragraphs == [paragraphs[1]]

    def test_paragraphs_are_never_split_or_reordered(self):
        sizes = [3, 80, 120, 40, 260, 5, 5, 90, 170, 1, 249, 250, 251]
        paragraphs = [Paragraph(_words(n, f"p{i}")) for i, n in enumerate(sizes)]
        pagination = paginate(paragraphs, word_limit=250)

        flattened = [p for page in pagination.pages for p in page.paragraphs]
        assert flattened == paragraphs
        assert all(p is q for p, q in zip(flattened, paragraphs))
        for page in pagination.pages:
            assert page.word_count <= 250 or len(page.paragraphs) == 1
        assert [page.index for page in pagination.pages] == list(range(len(pagination.pages)))

    def test_empty_input_gives_no_pages(self):
        pagination = paginate([], word_limit=250)
        assert pagination.pages == []
        assert pagination.word_counts == []

    def test_invalid_word_limit(self):
        with pytest.raises(ValueError):
            paginate([Paragraph("x")], word_limit=0)

    def test_page_text_and_html(self):
        paragraphs = [Paragraph("One & two."), Paragraph("Three.", html="<h2>Three.</h2>")]
        page = paginate(paragraphs).pages[0]
        assert page.text == "One & two.\n\nThree."
        assert page.html == "<p>One &amp; two.</p><h2>Three.</h2>"

    def test_plain_paragraph_markup_and_quotes_are_escaped(self):
        page = paginate([Paragraph('<b>"Hi," she said</b> & left. It\'s late.')]).pages[0]
        assert page.html == (
            "<p>&lt;b&gt;&quot;Hi,&quot; she said&lt;/b&gt; &amp; left. It&#x27;s late.</p>"
        )


class TestParagraphs:
    def test_blocks_from_html(self):
        html = (
            "<html><head><title>Ignored</title></head><body>"
            "<h1 id='c1'>Chapter One</h1>"
            "<p>One <b>two</b>.</p>"
            "<div><p>Nested.</p></div>"
            "<ul><li>Item</li></ul>"
            "<blockquote>Quoted.</blockquote>"
            "<script>alert('x')</script>"
            "<img src='a.png' alt='A map'/>"
            "</body></html>"
        )
        blocks = blocks_from_html(html, "Text/ch1.xhtml")

        assert [b.kind for b in blocks] == [
            "heading", "paragraph", "paragraph", "list_item", "quote", "image",
        ]
        assert blocks[0].element_ids == ("c1",)
        assert blocks[1].text == "One two."
        assert blocks[1].html == "<p>One <b>two</b>.</p>"
        assert blocks[5].text == "A map"
        assert all(b.source_href == "Text/ch1.xhtml" for b in blocks)
        assert not any("alert" in b.text for b in blocks)

    def test_container_blocks_are_not_duplicated(self):
        blocks = blocks_from_html("<body><blockquote><p>Inner.</p></blockquote></body>")
        assert [b.text for b in blocks] == ["Inner."]

    def test_plain_text_chapter_lines(self):
        chapter = Chapter(index=0, title="One", text="Line one.\n\n   Line two.  \n")
        paragraphs = build_paragraphs([chapter])
        assert [p.text for p in paragraphs] == ["Line one.", "Line two."]

    def test_structured_blocks_take_precedence(self):
        chapter = Chapter(
            index=0,
            title="One",
            text="ignored",
            html="<p>also ignored</p>",
            source_href="ch1.xhtml",
            blocks=[ContentBlock(kind="paragraph", text="From blocks.")],
        )
        paragraphs = build_paragraphs([chapter])
        assert [p.text for p in paragraphs] == ["From blocks."]
        assert paragraphs[0].source_href == "ch1.xhtml"

    def test_chapters_are_not_merged(self):
        chapters = [
            Chapter(index=0, title="A", text="End of the first chapter"),
            Chapter(index=1, title="B", text="Start of the second."),
        ]
        assert len(build_paragraphs(chapters)) == 2


class TestAnchors:
    def _pagination(self):
        paragraphs = [
            Paragraph(_words(200), source_href="Text/ch1.xhtml", element_ids=("start",)),
            Paragraph(_words(200), source_href="Text/ch2.xhtml", element_ids=("ch2",)),
            Paragraph(_words(200), source_href="Text/ch2.xhtml", element_ids=("note1",)),
        ]
        return paginate(paragraphs, word_limit=250)

    def test_resolve_by_file_and_id(self):
        index = build_anchor_index(self._pagination())
        assert resolve_anchor(index, "Text/ch2.xhtml", "note1") == 2
        assert resolve_anchor(index, "ch2.xhtml#note1") == 2

    def test_resolve_by_file_only(self):
        index = build_anchor_index(self._pagination())
        assert resolve_anchor(index, "Text/ch2.xhtml") == 1
        assert resolve_anchor(index, "ch1.xhtml") == 0

    def test_unknown_id_falls_back_to_file(self):
        index = build_anchor_index(self._pagination())
        assert resolve_anchor(index, "ch2.xhtml", "missing") == 1

    def test_unknown_file(self):
        index = build_anchor_index(self._pagination())
        assert resolve_anchor(index, "appendix.xhtml") is None
