"""Document snapshots, geometry and text helpers."""

from .document import Document, Span
from .layout import Layout, Rect, StampedLayout
from .text import STRIP_SELECTORS, class_signature, clone_text, first_text, normalize_text

__all__ = [
    # Snapshot
    "Document",
    "Span",
    # Geometry
    "Layout",
    "Rect",
    "StampedLayout",
    # Text
    "STRIP_SELECTORS",
    "class_signature",
    "clone_text",
    "first_text",
    "normalize_text",
]
