"""ChatGPT target: turns are delimited by an explicit author attribute."""

import logging
import re

from ..dom.document import Document
from ..models.records import MessageRecord, Role, TargetDescriptor
from .base import BaseTarget, Candidate

logger = logging.getLogger(__name__)

MESSAGE_SELECTOR = "[data-message-author-role]"

# Tried in order until one yields text
CONTENT_SELECTORS = (
    ".whitespace-pre-wrap",
    ".markdown",
    ".text-base",
    '[class*="message"]',
)

STREAMING_SELECTORS = (
    '[data-testid="stop-button"]',
    'button[aria-label*="Stop"]',
    ".result-streaming",
)


class ChatGPTTarget(BaseTarget):
    """
    Strategy for OpenAI's ChatGPT.

    Every turn carries ``data-message-author-role``, so role classification
    reads the attribute and content extraction walks a short selector
    cascade (pre-wrapped text, markdown body, base text) before falling back
    to the stripped element.
    """

    descriptor = TargetDescriptor(
        key="chatgpt",
        name="ChatGPT",
        hostnames=("chat.openai.com", "chatgpt.com"),
        debounce_ms=500,
        post_detection_settle_ms=2000,
    )

    CONTAINER_SELECTORS = ("main",)
    CONVERSATION_PATTERN = re.compile(r"/c/([^/]+)")

    def _discover(self, document: Document) -> list[MessageRecord]:
        container = self.resolve_container(document)
        elements = self._first_match(
            document,
            [(MESSAGE_SELECTOR, container), (MESSAGE_SELECTOR, None)],
        )

        candidates: list[Candidate] = []
        for index, element in enumerate(elements):
            try:
                role = Role.parse(element.get("data-message-author-role"))
                if role is None:
                    continue
                text = self._extract_content(element, CONTENT_SELECTORS)
                candidate = Candidate.create(element, role, index, text)
                if candidate is not None:
                    candidates.append(candidate)
            except Exception as e:
                logger.warning(f"ChatGPT: skipping message {index}: {e}")

        return self._build_records(document, candidates)

    def _is_streaming(self, document: Document) -> bool:
        for selector in STREAMING_SELECTORS:
            for element in document.select(selector):
                if document.is_visible(element):
                    return True
        return False
