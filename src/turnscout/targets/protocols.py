"""Protocol definition for per-application target strategies."""

from typing import Protocol, runtime_checkable

from bs4 import Tag

from ..dom.document import Document
from ..models.records import MessageRecord, TargetDescriptor


@runtime_checkable
class TargetStrategy(Protocol):
    """
    Protocol for extracting conversation turns from one chat application.

    Error Handling Contract:
    - A selector that matches nothing falls through to the next fallback
    - A failure on one candidate element skips that element only
    - discover_messages() and is_streaming() never raise; on total failure
      they return [] and False
    - normalize_address() falls back to a syntactic strip on malformed input
    """

    descriptor: TargetDescriptor

    @property
    def debounce_ms(self) -> int:
        """Delay collapsing bursts of change events into one scan."""
        ...

    @property
    def post_detection_settle_ms(self) -> int:
        """Delay before re-scanning after streaming was detected."""
        ...

    def is_active(self, document: Document) -> bool:
        """Check whether the document was captured from this application."""
        ...

    def resolve_container(self, document: Document) -> Tag:
        """Return the best available content root (never fails)."""
        ...

    def discover_messages(self, document: Document) -> list[MessageRecord]:
        """
        Derive the ordered turn sequence from a snapshot.

        Returns:
            Records with order 0..N-1 following document position
        """
        ...

    def is_streaming(self, document: Document) -> bool:
        """Heuristic signal that a response is still being generated."""
        ...

    def normalize_address(self, url: str) -> str:
        """Canonical form of an address for conversation-switch comparison."""
        ...
