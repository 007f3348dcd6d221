"""Rendered geometry for document snapshots."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Protocol

from bs4 import BeautifulSoup, Tag

# Attributes written by the browser capture script
RECT_ATTR = "data-ts-rect"
HIDDEN_ATTR = "data-ts-hidden"
VIEWPORT_ATTR = "data-ts-viewport"

DEFAULT_VIEWPORT_HEIGHT = 1080.0

_HIDDEN_STYLE_RE = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.IGNORECASE)


@dataclass(frozen=True)
class Rect:
    """Viewport-relative bounding box of a rendered element, in pixels."""

    top: float
    left: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional[Rect]:
        """Parse a ``"top left width height"`` stamp, or None if malformed."""
        if not value:
            return None
        parts = value.split()
        if len(parts) != 4:
            return None
        try:
            top, left, width, height = (float(part) for part in parts)
        except ValueError:
            return None
        return cls(top=top, left=left, width=width, height=height)


class Layout(Protocol):
    """
    Protocol for geometry lookups against a snapshot.

    Implementations return None from rect() for elements they have no
    measurement for. Callers treat those as unmeasured.
    """

    viewport_height: float

    def rect(self, tag: Tag) -> Optional[Rect]:
        """Return the bounding box of a tag, if measured."""
        ...

    def is_visible(self, tag: Tag) -> bool:
        """Return True if the tag is rendered with a non-empty box."""
        ...


class StampedLayout:
    """
    Layout read from geometry attributes stamped into the HTML.

    Example:
        soup = BeautifulSoup(html, "html.parser")
        layout = StampedLayout.from_soup(soup)
        rect = layout.rect(soup.select_one("main"))
    """

    def __init__(self, viewport_height: float = DEFAULT_VIEWPORT_HEIGHT):
        self.viewport_height = viewport_height

    @classmethod
    def from_soup(cls, soup: BeautifulSoup) -> StampedLayout:
        """Create a layout, picking up the stamped viewport height if any."""
        root = soup.find(attrs={VIEWPORT_ATTR: True})
        if isinstance(root, Tag):
            try:
                return cls(viewport_height=float(root[VIEWPORT_ATTR]))
            except (TypeError, ValueError):
                pass
        return cls()

    def rect(self, tag: Tag) -> Optional[Rect]:
        value = tag.get(RECT_ATTR)
        return Rect.parse(value if isinstance(value, str) else None)

    def is_visible(self, tag: Tag) -> bool:
        if tag.has_attr(HIDDEN_ATTR) or tag.has_attr("hidden"):
            return False
        style = tag.get("style")
        if isinstance(style, str) and _HIDDEN_STYLE_RE.search(style):
            return False
        rect = self.rect(tag)
        if rect is None:
            return True
        return rect.width > 0 and rect.height > 0
