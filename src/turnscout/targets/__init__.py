"""Target strategies for the supported chat applications."""

from typing import Optional
from urllib.parse import urlsplit

from ..models.config import InferenceConfig
from ..models.records import TargetDescriptor
from .base import BaseTarget, Candidate
from .chatgpt import ChatGPTTarget
from .claude import ClaudeTarget
from .deepseek import DeepSeekTarget
from .protocols import TargetStrategy
from .qwen import QwenTarget

# Checked in order; the first descriptor matching the host wins
TARGET_CLASSES: tuple[type[BaseTarget], ...] = (
    ChatGPTTarget,
    ClaudeTarget,
    DeepSeekTarget,
    QwenTarget,
)


def descriptors() -> list[TargetDescriptor]:
    """Descriptors of every supported application."""
    return [cls.descriptor for cls in TARGET_CLASSES]


def resolve_target(url: str, inference: Optional[InferenceConfig] = None) -> Optional[BaseTarget]:
    """
    Select the strategy for a page address.

    Args:
        url: Address of the current page
        inference: Turn reconstruction thresholds handed to the strategy

    Returns:
        The active strategy, or None when no application matches
        (extraction stays inert)
    """
    try:
        hostname = urlsplit(url).hostname or ""
    except ValueError:
        return None

    for cls in TARGET_CLASSES:
        if cls.descriptor.matches(hostname):
            return cls(config=inference)
    return None


__all__ = [
    # Protocol
    "TargetStrategy",
    # Implementations
    "BaseTarget",
    "Candidate",
    "ChatGPTTarget",
    "ClaudeTarget",
    "DeepSeekTarget",
    "QwenTarget",
    # Registry
    "TARGET_CLASSES",
    "descriptors",
    "resolve_target",
]
