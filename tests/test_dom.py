"""Tests for document snapshots, geometry and text helpers."""

from bs4 import BeautifulSoup
from turnscout.dom import (
    Document,
    Rect,
    StampedLayout,
    class_signature,
    clone_text,
    first_text,
    normalize_text,
)
from turnscout.dom.layout import DEFAULT_VIEWPORT_HEIGHT

PAGE = """
<html data-ts-viewport="900"><body>
  <div id="a" data-ts-rect="10 0 500 40"><span id="a1">Alpha</span></div>
  <div id="b" data-ts-hidden>Hidden</div>
  <div id="c" style="display: none">Styled away</div>
  <div id="d" data-ts-rect="100 0 0 20">Collapsed</div>
  <div id="e"><p id="e1">Unmeasured</p><p id="e2">Still unmeasured</p></div>
</body></html>
"""


class TestRect:
    """Tests for Rect parsing."""

    def test_parse(self):
        """Test parsing a stamped rect."""
        rect = Rect.parse("10 20 300 40.5")
        assert rect == Rect(top=10, left=20, width=300, height=40.5)
        assert rect.bottom == 50.5

    def test_parse_malformed(self):
        """Test that malformed stamps are ignored."""
        assert Rect.parse(None) is None
        assert Rect.parse("") is None
        assert Rect.parse("1 2 3") is None
        assert Rect.parse("a b c d") is None


class TestStampedLayout:
    """Tests for StampedLayout."""

    def test_viewport_height(self):
        """Test reading the stamped viewport height."""
        soup = BeautifulSoup(PAGE, "html.parser")
        assert StampedLayout.from_soup(soup).viewport_height == 900

    def test_default_viewport_height(self):
        """Test the fallback viewport height."""
        soup = BeautifulSoup("<html><body></body></html>", "html.parser")
        assert StampedLayout.from_soup(soup).viewport_height == DEFAULT_VIEWPORT_HEIGHT

    def test_visibility(self):
        """Test visibility rules."""
        document = Document(PAGE, "https://chatgpt.com/")
        assert document.is_visible(document.select_one("#a"))
        assert not document.is_visible(document.select_one("#b"))
        assert not document.is_visible(document.select_one("#c"))
        assert not document.is_visible(document.select_one("#d"))
        # Unmeasured elements are assumed rendered
        assert document.is_visible(document.select_one("#e"))


class TestDocument:
    """Tests for Document."""

    def test_hostname(self):
        """Test hostname extraction."""
        assert Document("", "https://Chat.Qwen.ai/c/1").hostname == "chat.qwen.ai"
        assert Document("", "not a url").hostname == ""

    def test_accepts_bytes_and_soup(self):
        """Test the accepted inputs."""
        assert Document(PAGE.encode(), "https://chatgpt.com/").select_one("#a1").get_text() == "Alpha"
        soup = BeautifulSoup(PAGE, "html.parser")
        assert Document(soup, "https://chatgpt.com/").soup is soup

    def test_body_fallback(self):
        """Test that a fragment without body uses the whole tree."""
        document = Document("<div>fragment</div>", "https://chatgpt.com/")
        assert document.body is document.soup

    def test_position_order(self):
        """Test pre-order positions."""
        document = Document(PAGE, "https://chatgpt.com/")
        a, a1, e = (document.select_one(s) for s in ("#a", "#a1", "#e"))
        assert document.position(a) < document.position(a1) < document.position(e)
        assert document.sort_by_position([e, a1, a]) == [a, a1, e]

    def test_foreign_tags_sort_last(self):
        """Test that tags from another snapshot sort after this one's."""
        document = Document(PAGE, "https://chatgpt.com/")
        other = Document(PAGE, "https://chatgpt.com/").select_one("#a")
        last = document.select_one("#e2")
        assert document.position(other) > document.position(last)

    def test_measured_span(self):
        """Test spans of measured elements."""
        document = Document(PAGE, "https://chatgpt.com/")
        span = document.span(document.select_one("#a"))
        assert span.measured
        assert (span.top, span.bottom) == (10, 50)

    def test_unmeasured_span(self):
        """Test that unmeasured spans cover the subtree's positions."""
        document = Document(PAGE, "https://chatgpt.com/")
        e, e1, e2 = (document.select_one(s) for s in ("#e", "#e1", "#e2"))
        span = document.span(e)
        assert not span.measured
        assert span.top == document.position(e)
        assert span.bottom == document.position(e2)
        assert span.top < document.span(e1).top <= span.bottom

    def test_select_scope(self):
        """Test scoped selection."""
        document = Document(PAGE, "https://chatgpt.com/")
        scope = document.select_one("#e")
        assert [p.get("id") for p in document.select("p", scope)] == ["e1", "e2"]
        assert document.select_one("span", scope) is None


class TestText:
    """Tests for text helpers."""

    def test_normalize_text(self):
        """Test whitespace collapsing."""
        assert normalize_text("  a \n\n b\tc  ") == "a b c"

    def test_class_signature(self):
        """Test class signature."""
        tag = BeautifulSoup('<div class="Foo bar"></div>', "html.parser").div
        assert class_signature(tag) == "foo bar"
        assert class_signature(BeautifulSoup("<p></p>", "html.parser").p) == ""

    def test_clone_text_strips_controls(self):
        """Test that controls are removed from the copy only."""
        soup = BeautifulSoup(
            '<div><p>Answer</p><button>Copy</button><div class="message-footer">Footer</div>'
            '<div class="action-bar"><span>Retry</span></div><svg><text>icon</text></svg></div>',
            "html.parser",
        )
        tag = soup.div
        assert normalize_text(clone_text(tag)) == "Answer"
        # Original tree untouched
        assert soup.button is not None
        assert "Retry" in tag.get_text()

    def test_first_text(self):
        """Test the selector cascade."""
        tag = BeautifulSoup('<div><p class="a"> </p><p class="b">Second</p></div>', "html.parser").div
        assert first_text(tag, [".a", ".b"]) == "Second"
        assert first_text(tag, [".missing"]) == ""
