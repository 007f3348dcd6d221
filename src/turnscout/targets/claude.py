"""Claude target: assistant turns reconstructed by structural and spatial inference."""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import Tag

from ..dom.document import Document, Span
from ..dom.text import class_signature, clone_text
from ..models.records import MessageRecord, Role, TargetDescriptor
from .base import BaseTarget, Candidate
from .inference import DISCLAIMER_START, assemble_turn, rejection_reason

logger = logging.getLogger(__name__)

USER_SELECTORS = ('[data-testid="user-message"]', '[data-testid="chat-user-message-content"]')

# Ordered by reliability
ASSISTANT_SELECTORS = (
    '[data-testid="chat-assistant-message-content"]',
    '[data-testid="assistant-message"]',
    ".assistant-message",
    '[data-role="assistant"]',
    'div[class*="assistant"]',
    ".claude-response",
    'div[class*="claude"]',
    'div[class*="response"]',
)

SPATIAL_CANDIDATES = 'div[class*="Message"], div[class*="message"], div[class*="Content"], div[class*="content"]'
SPATIAL_CLASS_WORDS = ("assistant", "claude", "response", "ai")
ANCESTOR_CLASS_WORDS = ("assistant", "claude", "response")
USER_CLASS_WORDS = ("user", "human")
INTERACTIVE_ANCESTORS = "button, input, form, nav, header, footer"

SPINNER_SELECTOR = (
    '[class*="spinner"], [class*="loading"], [class*="thinking"], '
    '[aria-label*="thinking"], [aria-label*="generating"]'
)
INPUT_SELECTOR = '[data-testid="chat-input"], textarea, input[type="text"]'
THINKING_WORDS = ("pondering", "stand by", "thinking", "generating")

# Unmeasured snapshots: how many divs after the last user turn are inspected
TRAILING_DIV_LIMIT = 20


class ClaudeTarget(BaseTarget):
    """
    Strategy for Anthropic's Claude.

    Only user turns are explicitly marked. For each user node the paired
    assistant response is located by:

    1. Structural ascent: walk up the ancestors and inspect the following
       siblings for assistant signatures or large non-user blocks.
    2. Spatial fallback: collect content blocks lying between this user
       node and the next one.

    The matched blocks are then assembled into one turn (see inference.py)
    and rejected when they look incomplete.
    """

    descriptor = TargetDescriptor(
        key="claude",
        name="Claude",
        hostnames=("claude.ai",),
        debounce_ms=1000,
        post_detection_settle_ms=3000,
    )

    CONTAINER_SELECTORS = ('[data-testid="conversation-turn-list"]', "main", '[class*="conversation"]')

    def _discover(self, document: Document) -> list[MessageRecord]:
        container = self.resolve_container(document)
        users = self._find_user_nodes(document, container)
        user_ids = {id(user) for user in users}
        # Ancestors of user nodes: reaching one means the next turn began
        user_scope = {id(node) for user in users for node in (user, *user.parents)}

        candidates: list[Candidate] = []
        for user_index, user in enumerate(users):
            try:
                candidate = Candidate.create(user, Role.USER, user_index, clone_text(user))
                if candidate is not None:
                    candidates.append(candidate)
            except Exception as e:
                logger.warning(f"Claude: skipping user message {user_index}: {e}")

            try:
                assistant = self._pair_assistant(document, users, user_index, user_ids, user_scope)
                if assistant is not None:
                    candidates.append(assistant)
            except Exception as e:
                logger.warning(f"Claude: no assistant turn for user message {user_index}: {e}")

        return self._build_records(document, candidates)

    def _find_user_nodes(self, document: Document, container: Tag) -> list[Tag]:
        attempts = []
        for selector in USER_SELECTORS:
            attempts.append((selector, container))
            attempts.append((selector, None))
        return self._first_match(document, attempts)

    def _pair_assistant(
        self,
        document: Document,
        users: list[Tag],
        user_index: int,
        user_ids: set[int],
        user_scope: set[int],
    ) -> Optional[Candidate]:
        user = users[user_index]
        blocks = self._structural_blocks(document, user, user_ids, user_scope)
        if not blocks:
            next_user = users[user_index + 1] if user_index + 1 < len(users) else None
            blocks = self._spatial_blocks(document, user, next_user, user_ids)
        if not blocks:
            return None

        blocks = self._visual_order(document, blocks)
        text = assemble_turn([block.get_text() for block in blocks], self.config)

        reason = rejection_reason(text, self.config)
        if reason is not None:
            logger.debug(f"Claude: dropping assistant turn {user_index} ({reason})")
            return None
        return Candidate.create(blocks[0], Role.ASSISTANT, user_index, text)

    def _looks_like_response(self, document: Document, node: Tag, min_height: float) -> bool:
        if len(node.get_text().strip()) <= self.config.min_block_text:
            return False
        rect = document.rect(node)
        if rect is not None and rect.height <= min_height:
            return False
        signature = class_signature(node)
        return not any(word in signature for word in USER_CLASS_WORDS)

    def _structural_blocks(
        self,
        document: Document,
        user: Tag,
        user_ids: set[int],
        user_scope: set[int],
    ) -> list[Tag]:
        """Heuristic A: inspect siblings while walking up from the user node."""
        config = self.config
        blocks: list[Tag] = []
        block_ids: set[int] = set()

        def add(node: Tag) -> None:
            if id(node) not in block_ids:
                block_ids.add(id(node))
                blocks.append(node)

        current = user
        depth = 0
        while depth < config.max_ancestor_depth:
            parent = current.parent
            if parent is None or parent is document.soup:
                break

            grandparent = parent.parent
            siblings: list[Tag] = []
            if grandparent is not None and grandparent is not document.soup:
                siblings = [child for child in grandparent.children if isinstance(child, Tag)]
            start = next((i for i, child in enumerate(siblings) if child is parent), -1) + 1

            for sibling in siblings[start : start + config.parent_sibling_window]:
                if id(sibling) in user_scope:
                    break
                for selector in ASSISTANT_SELECTORS:
                    for block in sibling.select(selector):
                        add(block)
                if self._looks_like_response(document, sibling, config.min_block_height):
                    add(sibling)

            following = current.find_next_sibling()
            checked = 0
            while following is not None and checked < config.next_sibling_window:
                if id(following) in user_scope:
                    break
                if self._looks_like_response(document, following, config.min_block_height):
                    add(following)
                following = following.find_next_sibling()
                checked += 1

            current = parent
            depth += 1
            if blocks:
                break

        return blocks

    def _spatial_blocks(
        self,
        document: Document,
        user: Tag,
        next_user: Optional[Tag],
        user_ids: set[int],
    ) -> list[Tag]:
        """Heuristic B: content blocks positioned between this and the next user node."""
        config = self.config
        user_span = document.span(user)
        next_span = document.span(next_user) if next_user is not None else None
        if next_span is not None and next_span.measured != user_span.measured:
            next_span = None
        # Pixel clearances only make sense with real geometry
        gap = config.spatial_gap if user_span.measured else 0

        blocks: list[Tag] = []
        for element in document.select(SPATIAL_CANDIDATES):
            if id(element) in user_ids or element.css.closest(USER_SELECTORS[0]) is not None:
                continue

            span = document.span(element)
            if span.measured != user_span.measured:
                continue
            if span.top <= user_span.bottom:
                continue
            if next_span is not None and span.top >= next_span.top:
                continue

            text = element.get_text().strip()
            if len(text) < config.min_block_text:
                continue
            if span.measured and span.bottom - span.top < config.spatial_min_height:
                continue

            if self._has_assistant_signature(element):
                blocks.append(element)
            elif self._in_clear_gap(span, user_span, next_span, gap):
                is_disclaimer = DISCLAIMER_START.match(text) is not None and len(text) < 100
                if (
                    element.name == "div"
                    and element.css.closest(INTERACTIVE_ANCESTORS) is None
                    and not is_disclaimer
                    and len(text) > config.last_resort_min_text
                ):
                    blocks.append(element)

        return blocks

    def _has_assistant_signature(self, element: Tag) -> bool:
        signature = class_signature(element)
        if any(word in signature for word in SPATIAL_CLASS_WORDS):
            return True
        for depth, ancestor in enumerate(element.parents):
            if depth >= self.config.ancestor_signature_depth:
                break
            if any(word in class_signature(ancestor) for word in ANCESTOR_CLASS_WORDS):
                return True
        return False

    @staticmethod
    def _in_clear_gap(span: Span, user_span: Span, next_span: Optional[Span], gap: float) -> bool:
        if span.top <= user_span.bottom + gap:
            return False
        return next_span is None or span.bottom < next_span.top - gap

    @staticmethod
    def _visual_order(document: Document, blocks: list[Tag]) -> list[Tag]:
        spans = [document.span(block) for block in blocks]
        if all(span.measured for span in spans):
            return [block for _, block in sorted(zip(spans, blocks), key=lambda pair: pair[0].top)]
        return document.sort_by_position(blocks)

    @staticmethod
    def _in_latest_turn(document: Document, tag: Tag, users: list[Tag]) -> bool:
        """True if tag follows the last user message in document order."""
        if not users:
            return True
        return document.position(tag) > document.subtree_end(users[-1])

    def _is_streaming(self, document: Document) -> bool:
        viewport_bottom = document.viewport_height
        users = document.select(USER_SELECTORS[0])

        # Visible loading indicators near the viewport
        for spinner in document.select(SPINNER_SELECTOR):
            if not document.is_visible(spinner):
                continue
            rect = document.rect(spinner)
            if rect is None:
                # Unmeasured: only an uncollapsed indicator in the latest turn counts
                if self._in_latest_turn(document, spinner, users) and not _collapsed(spinner):
                    return True
                continue
            if rect.top < viewport_bottom + 500:
                return True

        if document.select_one('[data-is-streaming="true"]') is not None:
            return True

        # Incomplete content right below the last user message
        if users:
            last = users[-1]
            last_rect = document.rect(last)
            if last_rect is not None:
                if last_rect.top < viewport_bottom + 1000:
                    for div in document.select("div"):
                        rect = document.rect(div)
                        if rect is None or rect.width <= 0 or rect.height <= 0:
                            continue
                        if last_rect.bottom < rect.top < last_rect.bottom + 300 and _looks_unfinished(div):
                            return True
            else:
                end = document.subtree_end(last)
                trailing = [div for div in document.select("div") if document.position(div) > end]
                if any(_looks_unfinished(div) for div in trailing[:TRAILING_DIV_LIMIT]):
                    return True

        # Thinking text just above the input area
        input_area = document.select_one(INPUT_SELECTOR)
        input_rect = document.rect(input_area) if input_area is not None else None
        if input_rect is not None and input_rect.top < viewport_bottom:
            for div in document.select("div"):
                rect = document.rect(div)
                if rect is None or not (rect.top < input_rect.top and rect.bottom > input_rect.top - 200):
                    continue
                text = div.get_text().strip().lower()
                if text and len(text) < 100 and any(word in text for word in THINKING_WORDS):
                    return True

        return False


def _collapsed(tag: Tag) -> bool:
    for node in (tag, *tag.parents):
        if not isinstance(node, Tag):
            continue
        if node.has_attr("hidden") or node.get("aria-hidden") == "true" or node.get("aria-expanded") == "false":
            return True
    return False


def _looks_unfinished(div: Tag) -> bool:
    text = div.get_text().strip()
    if not text:
        return False
    if text.endswith("...") and len(text) < 200:
        return True
    return len(text) < 50 and text.lower().startswith(THINKING_WORDS)
