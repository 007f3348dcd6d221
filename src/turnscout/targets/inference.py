"""
Text side of assistant-turn reconstruction.

When an application does not delimit assistant turns, the blocks found
around a user message arrive fragmented, duplicated and mixed with UI
boilerplate. These functions turn the list of block texts into one turn,
or reject it as incomplete.
"""

import re
from collections.abc import Sequence
from typing import Optional

from ..dom.text import normalize_text
from ..models.config import InferenceConfig

DISCLAIMER_PATTERNS = (
    re.compile(r"(?:[\w.-]+\s+)?can make mistakes\.?\s*please double-check(?:\s+responses)?\.?", re.IGNORECASE),
    re.compile(r"pondering,?\s*stand by\.\.\.", re.IGNORECASE),
    re.compile(r"^claude can make mistakes", re.IGNORECASE),
    re.compile(r"^please double-check", re.IGNORECASE),
)

# Short leading phrases of a disclaimer block (spatial search)
DISCLAIMER_START = re.compile(r"^(?:\w+ can make mistakes|please double-check|pondering)", re.IGNORECASE)

THINKING_PATTERNS = (
    re.compile(r"^pondering,?\s*stand by\.\.\.", re.IGNORECASE),
    re.compile(r"^thinking\.\.\.", re.IGNORECASE),
    re.compile(r"^generating\.\.\.", re.IGNORECASE),
    re.compile(r"pondering,?\s*stand by", re.IGNORECASE),
    re.compile(r"^stand by", re.IGNORECASE),
    re.compile(r"^searching", re.IGNORECASE),
    re.compile(r"^web searching", re.IGNORECASE),
    re.compile(r"^browsing", re.IGNORECASE),
    re.compile(r"^checking", re.IGNORECASE),
    re.compile(r"^looking up", re.IGNORECASE),
    re.compile(r"^running", re.IGNORECASE),
    re.compile(r"^analyzing", re.IGNORECASE),
    re.compile(r"^reading", re.IGNORECASE),
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]\s+")


def strip_disclaimers(text: str) -> str:
    """Remove known boilerplate phrases from a block."""
    cleaned = text
    for pattern in DISCLAIMER_PATTERNS:
        cleaned = pattern.sub("", cleaned).strip()
    return cleaned


def dedupe_blocks(texts: Sequence[str], ratio: float = 0.8) -> list[str]:
    """
    Drop blocks whose text is contained in another block.

    A block that is a case-insensitive substring of a kept block and
    shorter than ``ratio`` of its length is dropped. A kept block that is
    contained in a later, sufficiently longer block is replaced by it.
    If everything is eliminated, the first non-empty block is kept.

    Example:
        >>> dedupe_blocks(["The answer is 42.", "42."])
        ['The answer is 42.']
    """
    unique: list[str] = []
    seen: list[str] = []

    for text in texts:
        current = text.strip()
        if not current:
            continue
        key = current.lower()
        if key in seen:
            continue

        contained = False
        for existing in seen:
            if len(key) < len(existing) * ratio and key in existing:
                contained = True
                break
            if len(existing) < len(key) * ratio and existing in key:
                unique = [kept for kept in unique if kept.lower() != existing]
                seen.remove(existing)
                break

        if not contained:
            unique.append(current)
            seen.append(key)

    if not unique:
        first = next((t.strip() for t in texts if t.strip()), None)
        if first:
            unique.append(first)
    return unique


def dedupe_sentences(text: str, key_length: int = 50, retention: float = 0.5) -> str:
    """
    Drop repeated sentences from an assembled turn.

    Sentences are compared on their first ``key_length`` lower-cased
    characters. The deduplicated text is only used when it keeps at least
    ``retention`` of the original length.
    """
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    if len(sentences) <= 1:
        return text

    seen: set[str] = set()
    unique: list[str] = []
    for sentence in sentences:
        sentence = sentence.strip()
        key = sentence.lower()[:key_length]
        if key not in seen:
            seen.add(key)
            unique.append(sentence)

    deduplicated = ". ".join(unique).strip()
    if deduplicated and len(deduplicated) >= len(text) * retention:
        return deduplicated
    return text


def assemble_turn(block_texts: Sequence[str], config: Optional[InferenceConfig] = None) -> str:
    """
    Combine the texts of matched blocks (already in visual order) into one turn.

    Returns:
        The normalized turn text ("" when no block had content)
    """
    config = config or InferenceConfig()

    texts = [t.strip() for t in block_texts if t and t.strip()]
    cleaned = [c for c in (strip_disclaimers(t) for t in texts) if c]
    unique = dedupe_blocks(cleaned or texts, config.substring_ratio)

    combined = normalize_text(" ".join(unique))
    return dedupe_sentences(combined, config.sentence_key_length, config.sentence_retention)


def is_only_disclaimer(text: str, config: Optional[InferenceConfig] = None) -> bool:
    config = config or InferenceConfig()
    for pattern in DISCLAIMER_PATTERNS:
        matched = sum(len(m.group(0)) for m in pattern.finditer(text))
        if matched and matched >= len(text) * config.disclaimer_ratio and len(text) < config.disclaimer_max_length:
            return True
    return False


def is_thinking_only(text: str, config: Optional[InferenceConfig] = None) -> bool:
    config = config or InferenceConfig()
    for pattern in THINKING_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        if len(match.group(0)) >= len(text) * config.thinking_ratio or len(text) < config.thinking_max_length:
            return True
    return False


def rejection_reason(text: str, config: Optional[InferenceConfig] = None) -> Optional[str]:
    """
    Explain why an assembled turn must not be emitted, or None to accept it.

    Rejected turns are incomplete or non-substantive captures: too short,
    a bare disclaimer, an in-progress phrase, or a short text trailing off
    in an ellipsis.
    """
    config = config or InferenceConfig()
    if len(text) < config.min_turn_length:
        return "too short"
    if is_only_disclaimer(text, config):
        return "disclaimer only"
    if is_thinking_only(text, config):
        return "still thinking"
    if text.strip().endswith("...") and len(text) < config.ellipsis_max_length:
        return "trails off"
    return None
