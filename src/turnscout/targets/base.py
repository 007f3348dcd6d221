"""Shared behaviour of the target strategies."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar, Optional
from urllib.parse import urlsplit

from bs4 import Tag

from ..dom.document import Document
from ..dom.text import STRIP_SELECTORS, clone_text, first_text, normalize_text
from ..models.config import InferenceConfig
from ..models.records import MessageRecord, Role, TargetDescriptor

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """An accepted message element before ordering."""

    element: Tag
    role: Role
    index: int
    text: str

    @classmethod
    def create(cls, element: Tag, role: Role, index: int, text: Optional[str]) -> Optional[Candidate]:
        """Normalize the text and return None if nothing is left."""
        normalized = normalize_text(text or "")
        if not normalized:
            return None
        return cls(element=element, role=role, index=index, text=normalized)


class BaseTarget:
    """
    Base class for target strategies.

    Subclasses set ``descriptor`` and ``CONTAINER_SELECTORS`` and implement
    ``_discover``; they may override ``_is_streaming`` and set
    ``CONVERSATION_PATTERN`` when the application's routes embed a
    conversation id.
    """

    descriptor: ClassVar[TargetDescriptor]

    CONTAINER_SELECTORS: ClassVar[tuple[str, ...]] = ()
    CONVERSATION_PATTERN: ClassVar[Optional[re.Pattern[str]]] = None

    def __init__(self, config: Optional[InferenceConfig] = None):
        self.config = config or InferenceConfig()

    @property
    def key(self) -> str:
        return self.descriptor.key

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def debounce_ms(self) -> int:
        return self.descriptor.debounce_ms

    @property
    def post_detection_settle_ms(self) -> int:
        return self.descriptor.post_detection_settle_ms

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key}>"

    def is_active(self, document: Document) -> bool:
        return self.descriptor.matches(document.hostname)

    def resolve_container(self, document: Document) -> Tag:
        for selector in self.CONTAINER_SELECTORS:
            found = document.select_one(selector)
            if found is not None:
                return found
        return self._landmark_container(document)

    def _landmark_container(self, document: Document) -> Tag:
        main = document.select_one("main")
        if main is not None:
            return main
        return document.body

    def discover_messages(self, document: Document) -> list[MessageRecord]:
        try:
            return self._discover(document)
        except Exception as e:
            logger.error(f"{self.name}: message discovery failed: {e}")
            return []

    def _discover(self, document: Document) -> list[MessageRecord]:
        raise NotImplementedError

    def is_streaming(self, document: Document) -> bool:
        try:
            return self._is_streaming(document)
        except Exception as e:
            logger.debug(f"{self.name}: streaming check failed: {e}")
            return False

    def _is_streaming(self, document: Document) -> bool:
        return False

    def normalize_address(self, url: str) -> str:
        try:
            parts = urlsplit(url)
        except ValueError:
            return _strip_address(url)

        if self.CONVERSATION_PATTERN is not None:
            match = self.CONVERSATION_PATTERN.search(parts.path)
            if match:
                return f"/c/{match.group(1)}"

        return parts.path + (f"?{parts.query}" if parts.query else "")

    # Helpers for subclasses

    @staticmethod
    def _first_match(document: Document, attempts: Iterable[tuple[str, Optional[Tag]]]) -> list[Tag]:
        """Run (selector, scope) pairs in order and return the first non-empty result."""
        for selector, scope in attempts:
            found = document.select(selector, scope)
            if found:
                return found
        return []

    @staticmethod
    def _extract_content(
        element: Tag,
        selectors: Sequence[str] = (),
        stripped_scopes: Sequence[str] = (),
    ) -> str:
        """
        Read message text through a selector cascade.

        Plain selectors are read as-is; stripped scopes are read through
        clone-and-strip. The element itself, cloned and stripped, is always
        the last resort.
        """
        text = first_text(element, selectors)
        if text:
            return text
        for selector in stripped_scopes:
            scope = element.select_one(selector)
            if scope is None:
                continue
            text = clone_text(scope).strip()
            if text:
                return text
        return clone_text(element, STRIP_SELECTORS)

    def _build_records(self, document: Document, candidates: list[Candidate]) -> list[MessageRecord]:
        """Sort candidates by document position and assign order 0..N-1."""
        timestamp = datetime.now(timezone.utc)
        ordered = sorted(candidates, key=lambda c: document.position(c.element))

        records: list[MessageRecord] = []
        seen_ids: set[str] = set()
        for candidate in ordered:
            record = MessageRecord.build(
                target_key=self.key,
                role=candidate.role,
                index=candidate.index,
                text=candidate.text,
                element=candidate.element,
                order=len(records),
                timestamp=timestamp,
            )
            if record is None or record.id in seen_ids:
                continue
            seen_ids.add(record.id)
            records.append(record)
        return records


def _strip_address(url: str) -> str:
    """Syntactic fallback: drop the fragment and one trailing slash."""
    stripped = url.split("#", 1)[0]
    if stripped.endswith("/"):
        stripped = stripped[:-1]
    return stripped
