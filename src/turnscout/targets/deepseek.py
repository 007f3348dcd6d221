"""DeepSeek target: obfuscated class names with semantic fallbacks."""

import logging
from typing import Optional

from bs4 import Tag

from ..dom.document import Document
from ..dom.text import class_signature, clone_text
from ..models.records import MessageRecord, Role, TargetDescriptor
from .base import BaseTarget, Candidate

logger = logging.getLogger(__name__)

# Obfuscated class fragments observed in the DeepSeek UI
USER_SIGNATURE = '[class*="fbb737a4"]'
ASSISTANT_SIGNATURE = '[class*="_4f9bf79"], [class*="_43c05b5"]'
MARKDOWN_SELECTOR = '[class*="ds-markdown"]'

STREAMING_INDICATORS = '[class*="streaming"], [class*="typing"], [class*="loading"], [class*="generating"]'

# Indicators further than this from the viewport belong to old messages
VIEWPORT_MARGIN = 500


class DeepSeekTarget(BaseTarget):
    """
    Strategy for DeepSeek.

    The UI mixes a semantic ``ds-message`` class with hashed class names
    that change between releases, so every lookup has a loosened pattern
    and an obfuscated-signature fallback.
    """

    descriptor = TargetDescriptor(
        key="deepseek",
        name="DeepSeek",
        hostnames=("chat.deepseek.com", "www.deepseek.com", "deepseek.com"),
        debounce_ms=300,
        post_detection_settle_ms=1500,
    )

    CONTAINER_SELECTORS = (".ds-scroll-area", '[class*="ds-scroll-area"]', '[class*="_0f72b0b"]')

    def resolve_container(self, document: Document) -> Tag:
        for selector in self.CONTAINER_SELECTORS:
            found = document.select_one(selector)
            if found is not None:
                return found
        common = self._common_ancestor(document.select(".ds-message")[:5])
        if common is not None:
            return common
        return self._landmark_container(document)

    @staticmethod
    def _common_ancestor(elements: list[Tag]) -> Optional[Tag]:
        """Lowest element containing every given element."""
        if not elements:
            return None
        first = elements[0]
        chain = [parent for parent in first.parents if parent.name != "[document]"]
        for ancestor in chain:
            members = {id(node) for node in ancestor.find_all(True)}
            if all(id(element) in members for element in elements[1:]):
                return ancestor
        return None

    def _discover(self, document: Document) -> list[MessageRecord]:
        container = self.resolve_container(document)
        elements = self._first_match(
            document,
            [
                (".ds-message", container),
                ('[class*="ds-message"]', container),
                (".ds-message", None),
                ('[class*="ds-message"]', None),
                (USER_SIGNATURE, container),
                (ASSISTANT_SIGNATURE, container),
            ],
        )

        candidates: list[Candidate] = []
        for index, element in enumerate(document.sort_by_position(elements)):
            try:
                candidate = self._classify(element, index)
                if candidate is not None:
                    candidates.append(candidate)
            except Exception as e:
                logger.warning(f"DeepSeek: skipping message {index}: {e}")

        return self._build_records(document, candidates)

    def _classify(self, element: Tag, index: int) -> Optional[Candidate]:
        user_node = element if element.css.match(USER_SIGNATURE) else element.select_one(USER_SIGNATURE)
        if user_node is not None:
            text = user_node.get_text().strip() or clone_text(element)
            return Candidate.create(element, Role.USER, index, text)

        assistant_container = element.css.closest(ASSISTANT_SIGNATURE)
        markdown = element.select_one(MARKDOWN_SELECTOR)

        text = ""
        if markdown is not None:
            text = markdown.get_text().strip()
        elif assistant_container is not None or self._has_markdown_class(element):
            text = clone_text(element)
        else:
            return None

        if not text.strip():
            text = clone_text(element)

        # Scroll target: the outer assistant container aligns better
        anchor = assistant_container if assistant_container is not None else element
        return Candidate.create(anchor, Role.ASSISTANT, index, text)

    @staticmethod
    def _has_markdown_class(element: Tag) -> bool:
        return "ds-markdown" in class_signature(element) or element.select_one('[class*="markdown"]') is not None

    def _is_streaming(self, document: Document) -> bool:
        viewport_bottom = document.viewport_height
        for indicator in document.select(STREAMING_INDICATORS):
            if not document.is_visible(indicator):
                continue
            rect = document.rect(indicator)
            if rect is None:
                return True
            if rect.top < viewport_bottom + VIEWPORT_MARGIN and rect.bottom > -VIEWPORT_MARGIN:
                return True
        return False
