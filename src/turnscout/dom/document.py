"""Read-only snapshot of a rendered chat page."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from .layout import Layout, Rect, StampedLayout


@dataclass(frozen=True)
class Span:
    """
    Vertical extent of an element.

    Measured spans are in viewport pixels. Unmeasured spans use pre-order
    indices (start of the element, end of its last descendant), so they
    only compare with other unmeasured spans.
    """

    top: float
    bottom: float
    measured: bool


class Document:
    """
    Immutable view of one rendered page state.

    Wraps the parsed tree, the URL it was captured from and the layout
    that describes its geometry. A new Document is taken for every scan;
    nothing in this package modifies the tree.

    Example:
        document = Document(html, "https://claude.ai/chat/123")
        for tag in document.select('[data-testid="user-message"]'):
            print(document.position(tag), tag.get_text())
    """

    def __init__(
        self,
        html: Union[str, bytes, BeautifulSoup],
        url: str,
        layout: Optional[Layout] = None,
    ):
        """
        Initialize the snapshot.

        Args:
            html: Serialized HTML or an already parsed tree
            url: Address of the page at capture time
            layout: Geometry provider (defaults to stamped attributes)
        """
        if isinstance(html, BeautifulSoup):
            self.soup = html
        else:
            self.soup = BeautifulSoup(html, "html.parser")
        self.url = url
        self.layout: Layout = layout or StampedLayout.from_soup(self.soup)
        self._positions: Optional[dict[int, int]] = None
        self._subtree_ends: dict[int, int] = {}

    @property
    def hostname(self) -> str:
        """Lower-cased host of the capture URL ("" if it has none)."""
        try:
            return (urlparse(self.url).hostname or "").lower()
        except ValueError:
            return ""

    @property
    def body(self) -> Tag:
        """The body element, or the whole tree when there is none."""
        body = self.soup.body
        return body if body is not None else self.soup

    def select(self, selector: str, scope: Optional[Tag] = None) -> list[Tag]:
        """Select descendants of scope (default: whole document) in document order."""
        root = scope if scope is not None else self.soup
        return list(root.select(selector))

    def select_one(self, selector: str, scope: Optional[Tag] = None) -> Optional[Tag]:
        root = scope if scope is not None else self.soup
        return root.select_one(selector)

    def _index(self) -> dict[int, int]:
        if self._positions is None:
            self._positions = {id(tag): i for i, tag in enumerate(self.soup.find_all(True))}
        return self._positions

    def position(self, tag: Tag) -> int:
        """
        Pre-order index of a tag in this document.

        Tags that do not belong to this snapshot sort after every tag that does.
        """
        index = self._index()
        return index.get(id(tag), len(index))

    def subtree_end(self, tag: Tag) -> int:
        """Pre-order index of the last descendant of a tag (the tag itself if leaf)."""
        key = id(tag)
        if key not in self._subtree_ends:
            last = tag
            for last in tag.find_all(True):
                pass
            self._subtree_ends[key] = self.position(last)
        return self._subtree_ends[key]

    def sort_by_position(self, tags: list[Tag]) -> list[Tag]:
        """Return tags sorted by document position (stable for equal positions)."""
        return sorted(tags, key=self.position)

    def rect(self, tag: Tag) -> Optional[Rect]:
        return self.layout.rect(tag)

    def is_visible(self, tag: Tag) -> bool:
        return self.layout.is_visible(tag)

    def span(self, tag: Tag) -> Span:
        """Vertical extent of a tag, measured when the layout knows it."""
        rect = self.rect(tag)
        if rect is not None:
            return Span(top=rect.top, bottom=rect.bottom, measured=True)
        return Span(
            top=float(self.position(tag)),
            bottom=float(self.subtree_end(tag)),
            measured=False,
        )

    @property
    def viewport_height(self) -> float:
        return self.layout.viewport_height
