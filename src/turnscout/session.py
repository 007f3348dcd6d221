"""Wiring of target selection, scheduling, switch detection and persistence."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable
from typing import Callable, Optional

from .models.config import TurnscoutConfig
from .models.events import EventType, ScanEvent
from .models.records import MessageRecord
from .scheduler import BatchConsumer, EventEmitter, ScanScheduler, SnapshotSource
from .storage.relay import PersistenceRelay
from .switch import ConversationSwitchDetector
from .targets import BaseTarget, resolve_target

logger = logging.getLogger(__name__)

# Called with (previous, current) normalized addresses
SwitchHandler = Callable[[Optional[str], str], Optional[Awaitable[None]]]


class ConversationSession:
    """
    Watch one page and keep its extracted transcript current.

    The active target is chosen once, from the address the session starts
    on. When no target matches, the session is inert and ignores events.

    Example:
        session = ConversationSession(
            url,
            snapshot=snapshotter.snapshot,
            on_batch=render_sidebar,
            relay=PersistenceRelay(MemoryStore()),
        )
        session.document_changed()
        await session.address_changed(new_url)
    """

    def __init__(
        self,
        url: str,
        snapshot: SnapshotSource,
        on_batch: Optional[BatchConsumer] = None,
        on_switch: Optional[SwitchHandler] = None,
        relay: Optional[PersistenceRelay] = None,
        config: Optional[TurnscoutConfig] = None,
        emit: Optional[EventEmitter] = None,
    ):
        """
        Initialize the session.

        Args:
            url: Address the page is on when the session starts
            snapshot: Callable returning the current page snapshot
            on_batch: Consumer hook for delivered batches
            on_switch: Called when the conversation changes
            relay: Persistence relay for delivered batches
            config: Scheduler and inference settings
            emit: Optional callback for scan events
        """
        self.config = config or TurnscoutConfig()
        self.relay = relay
        self._on_batch = on_batch
        self._on_switch = on_switch
        self._emit = emit

        self.strategy: Optional[BaseTarget] = resolve_target(url, self.config.inference)
        self.detector: Optional[ConversationSwitchDetector] = None
        self.scheduler: Optional[ScanScheduler] = None
        self.latest: list[MessageRecord] = []

        if self.strategy is None:
            logger.info(f"No supported chat application at {url}; extraction is inert")
            return

        self.detector = ConversationSwitchDetector(self.strategy)
        self.detector.observe(url)
        self.scheduler = ScanScheduler(
            self.strategy,
            snapshot,
            self._deliver,
            debounce_ms=self.config.scheduler.debounce_ms,
            settle_ms=self.config.scheduler.settle_ms,
            max_settle_retries=self.config.scheduler.max_settle_retries,
            emit=emit,
        )
        logger.info(f"Watching {self.strategy.name} conversation at {url}")

    @property
    def active(self) -> bool:
        return self.scheduler is not None

    def document_changed(self) -> None:
        """Signal a change of the rendered document."""
        if self.scheduler is not None:
            self.scheduler.notify_mutation()

    async def address_changed(self, url: str) -> bool:
        """
        Signal a navigation.

        A move to another conversation drops the accumulated transcript and
        scans without a debounce. A scan already in flight finishes first and
        its result is discarded. Any other navigation is debounced like a
        mutation.

        Returns:
            True if the conversation changed
        """
        if self.scheduler is None or self.detector is None:
            return False

        previous = self.detector.current
        if not self.detector.observe(url):
            self.scheduler.notify_navigation()
            return False

        current = self.detector.current or ""
        self.scheduler.invalidate()
        logger.info(f"Conversation switched: {previous} -> {current}")
        if self._emit is not None:
            self._emit(
                ScanEvent(
                    type=EventType.CONVERSATION_SWITCHED,
                    url=url,
                    target=self.strategy.key if self.strategy else None,
                    message=f"{previous} -> {current}",
                )
            )

        self.latest = []
        if self.relay is not None:
            await self.relay.clear_messages()
        if self._on_switch is not None:
            outcome = self._on_switch(previous, current)
            if inspect.isawaitable(outcome):
                await outcome

        await self.scheduler.scan_now()
        return True

    async def _deliver(self, records: list[MessageRecord]) -> None:
        generation = self.scheduler.generation if self.scheduler is not None else 0
        self.latest = records
        if self._on_batch is not None:
            outcome = self._on_batch(records)
            if inspect.isawaitable(outcome):
                await outcome
        if self.scheduler is not None and self.scheduler.generation != generation:
            # Switched while the consumer ran; the batch belongs to the old conversation
            return
        if self.relay is not None:
            await self.relay.save_messages(records)

    async def aclose(self) -> None:
        """Stop scheduling and wait for a scan in flight."""
        if self.scheduler is not None:
            await self.scheduler.aclose()
