"""Qwen target: id-patterned message nodes with class-based roles."""

import logging
import re
from typing import Optional

from bs4 import Tag

from ..dom.document import Document
from ..dom.text import class_signature
from ..models.records import MessageRecord, Role, TargetDescriptor
from .base import BaseTarget, Candidate

logger = logging.getLogger(__name__)

MESSAGE_SELECTOR = 'div[id^="message-"]'

# Ids that share the message- prefix but are not turns
EXCLUDED_ID_PARTS = ("input-container", "button-", "language")

USER_CLASS = "user-message"
# The misspelling is the application's own class name
ASSISTANT_CLASSES = ("response-meesage-container", "response-message-container")
ASSISTANT_CONTENT = ".response-message-body, .markdown-content-container, .text-response-render-container"

USER_CONTENT_SELECTORS = (
    ".user-message-text-content p.user-message-content.whitespace-pre-wrap",
    "p.user-message-content.whitespace-pre-wrap",
    "p.user-message-content",
    '[class*="user-message-content"]',
)

ASSISTANT_CONTENT_SCOPES = (
    "#response-content-container.markdown-content-container",
    ".markdown-content-container.markdown-prose",
    ".text-response-render-container",
    ".markdown-content-container",
    ".response-message-body",
)

STREAMING_MESSAGES = 'div[id^="message-"][class*="response-meesage-container"], div[id^="message-"][class*="response-message-container"]'
STREAMING_CONTENT = "#response-content-container, .markdown-content-container"
STREAMING_MARKERS = '[class*="loading"], [class*="streaming"], [aria-busy="true"]'


class QwenTarget(BaseTarget):
    """
    Strategy for Alibaba Cloud's Qwen.

    Message nodes have predictable ``message-*`` ids; roles come from class
    signatures. Discovery order is not trusted, so candidates are sorted by
    document position before orders are assigned.
    """

    descriptor = TargetDescriptor(
        key="qwen",
        name="Qwen",
        hostnames=("chat.qwen.ai", "qwen.ai"),
        debounce_ms=400,
        post_detection_settle_ms=1500,
        match="substring",
    )

    CONTAINER_SELECTORS = (".chat-messages-container", '[class*="chat-messages"]')
    CONVERSATION_PATTERN = re.compile(r"/c/([^/]+)")

    def _discover(self, document: Document) -> list[MessageRecord]:
        candidates: list[Candidate] = []
        seen: set[str] = set()

        for element in document.select(MESSAGE_SELECTOR):
            try:
                message_id = element.get("id")
                if not isinstance(message_id, str) or not message_id or message_id in seen:
                    continue
                if any(part in message_id for part in EXCLUDED_ID_PARTS):
                    continue

                role = self._classify(element)
                if role is None:
                    continue
                seen.add(message_id)

                if role is Role.USER:
                    text = self._extract_content(
                        element,
                        USER_CONTENT_SELECTORS,
                        stripped_scopes=(".user-message-text-content",),
                    )
                else:
                    text = self._extract_content(element, stripped_scopes=ASSISTANT_CONTENT_SCOPES)

                candidate = Candidate.create(element, role, len(candidates), text)
                if candidate is not None:
                    candidates.append(candidate)
            except Exception as e:
                logger.warning(f"Qwen: skipping message {element.get('id')}: {e}")

        return self._build_records(document, candidates)

    @staticmethod
    def _classify(element: Tag) -> Optional[Role]:
        classes = element.get("class") or []
        if USER_CLASS in classes:
            return Role.USER
        signature = class_signature(element)
        if any(name in signature.split() for name in ASSISTANT_CLASSES):
            return Role.ASSISTANT
        if element.select_one(ASSISTANT_CONTENT) is not None:
            return Role.ASSISTANT
        return None

    def _is_streaming(self, document: Document) -> bool:
        for message in document.select(STREAMING_MESSAGES):
            if message.select_one(STREAMING_CONTENT) is None:
                continue
            if message.select_one(STREAMING_MARKERS) is not None:
                return True
        return False
