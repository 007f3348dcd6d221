"""Conversation-switch detection across navigation events."""

import logging
from typing import Optional

from .targets.protocols import TargetStrategy

logger = logging.getLogger(__name__)


class ConversationSwitchDetector:
    """
    Tells whether a navigation moved to a different conversation.

    Addresses are compared in the strategy's normalized form, so changes
    the target does not consider meaningful (fragments, trailing slashes,
    query strings on some targets) do not count as switches.

    Example:
        detector = ConversationSwitchDetector(strategy)
        detector.observe("https://chat.qwen.ai/c/abc")   # False (baseline)
        detector.observe("https://chat.qwen.ai/c/def")   # True
    """

    def __init__(self, strategy: TargetStrategy):
        self._strategy = strategy
        self._current: Optional[str] = None

    @property
    def current(self) -> Optional[str]:
        """Last recorded normalized address."""
        return self._current

    def observe(self, url: str) -> bool:
        """
        Record an address and report whether the conversation changed.

        The first observation only sets the baseline.

        Returns:
            True if the normalized address differs from the previous one
        """
        normalized = self._strategy.normalize_address(url)
        previous = self._current
        self._current = normalized
        if previous is None or previous == normalized:
            return False
        logger.debug(f"Conversation switch: {previous} -> {normalized}")
        return True

    def reset(self) -> None:
        """Forget the recorded address."""
        self._current = None
