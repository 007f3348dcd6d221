"""Text helpers shared by every target strategy."""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable

from bs4 import Tag

_WHITESPACE_RE = re.compile(r"\s+")

# Interactive and control descendants removed before taking text from a clone
STRIP_SELECTORS = (
    "button",
    "svg",
    ".message-footer",
    '[class*="button"]',
    '[class*="footer"]',
    '[class*="action"]',
)


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def class_signature(tag: Tag) -> str:
    """Return the lower-cased class list of a tag as one string."""
    classes = tag.get("class") or []
    if isinstance(classes, str):
        return classes.lower()
    return " ".join(classes).lower()


def clone_text(tag: Tag, strip_selectors: Iterable[str] = STRIP_SELECTORS) -> str:
    """
    Take the text of a tag after removing control descendants.

    Works on a structural copy of the subtree, so the snapshot the tag
    belongs to is never modified.

    Args:
        tag: Element to read
        strip_selectors: CSS selectors of descendants to drop first

    Returns:
        Raw (unnormalized) text of the stripped copy
    """
    clone = copy.copy(tag)
    selector = ", ".join(strip_selectors)
    if selector:
        for element in clone.select(selector):
            # Nested matches may already be detached with their ancestor
            element.extract()
    return clone.get_text()


def first_text(element: Tag, selectors: Iterable[str]) -> str:
    """Return the text of the first selector match with non-blank content."""
    for selector in selectors:
        found = element.select_one(selector)
        if found is None:
            continue
        text = found.get_text().strip()
        if text:
            return text
    return ""
