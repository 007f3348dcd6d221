"""Debounced scan scheduling with a settle phase for streaming responses."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import Callable, Optional, Union

from .dom.document import Document
from .models.events import EventType, ScanEvent, ScanStats
from .models.records import MessageRecord
from .pipeline.extract import ExtractionPipeline, ScanResult
from .targets.protocols import TargetStrategy

logger = logging.getLogger(__name__)

# Produces a fresh snapshot of the page (sync or async)
SnapshotSource = Callable[[], Union[Document, Awaitable[Document]]]
# Receives every completed, non-streaming batch (sync or async)
BatchConsumer = Callable[[list[MessageRecord]], Optional[Awaitable[None]]]
EventEmitter = Callable[[ScanEvent], None]


class SchedulerState(str, Enum):
    """States of the scan scheduler."""

    IDLE = "idle"
    PENDING = "pending"
    SETTLING = "settling"


class ScanScheduler:
    """
    Decides when to re-run extraction against a page that keeps changing.

    State machine:
    - IDLE -> PENDING on a mutation or navigation event; further events
      reset the debounce timer, so a burst collapses into one scan
    - PENDING -> scan when the timer expires; if the strategy reports
      streaming, -> SETTLING and re-scan after the settle delay (up to
      ``max_settle_retries`` times), otherwise deliver and -> IDLE
    - SETTLING ignores change events: the pending re-scan will see them

    Only one scan runs at a time. Events arriving during a scan re-arm the
    debounce once it finishes. A scan in flight is never interrupted, but
    ``invalidate()`` makes its result stale: it is discarded instead of
    delivered.

    Example:
        scheduler = ScanScheduler(
            strategy,
            snapshot=lambda: Document(page_html(), page_url()),
            on_batch=lambda records: print(len(records)),
        )
        scheduler.notify_mutation()
    """

    def __init__(
        self,
        strategy: TargetStrategy,
        snapshot: SnapshotSource,
        on_batch: BatchConsumer,
        pipeline: Optional[ExtractionPipeline] = None,
        debounce_ms: Optional[int] = None,
        settle_ms: Optional[int] = None,
        max_settle_retries: int = 5,
        emit: Optional[EventEmitter] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            strategy: Active target strategy
            snapshot: Callable returning the current page snapshot
            on_batch: Consumer hook for delivered batches
            pipeline: Extraction pipeline (a new one if None)
            debounce_ms: Override the strategy's debounce delay
            settle_ms: Override the strategy's settle delay
            max_settle_retries: Settle re-scans before delivering anyway
            emit: Optional callback for scheduler events
        """
        self._strategy = strategy
        self._snapshot = snapshot
        self._on_batch = on_batch
        self._pipeline = pipeline or ExtractionPipeline()
        self._debounce_ms = strategy.debounce_ms if debounce_ms is None else debounce_ms
        self._settle_ms = strategy.post_detection_settle_ms if settle_ms is None else settle_ms
        self._max_settle_retries = max_settle_retries
        self._emit_callback = emit

        self._state = SchedulerState.IDLE
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._dirty = False
        self._settle_attempts = 0
        self._closed = False
        self._generation = 0

        self.stats = ScanStats()
        self.last_result: Optional[ScanResult] = None
        self.last_scan_at: Optional[float] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        """True while a scan is executing."""
        return self._running

    @property
    def generation(self) -> int:
        """Incremented by ``invalidate()``; scans started earlier are stale."""
        return self._generation

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_ms / 1000

    @property
    def settle_seconds(self) -> float:
        return self._settle_ms / 1000

    def notify_mutation(self) -> None:
        """Signal that the document changed."""
        self._request("mutation")

    def notify_navigation(self) -> None:
        """Signal that the page address changed."""
        self._request("navigation")

    def invalidate(self) -> None:
        """Discard the result of any scan already started."""
        self._generation += 1

    async def scan_now(self) -> None:
        """
        Scan immediately, superseding any pending debounce.

        A scan in flight is awaited first; the forced scan follows it
        without a debounce.
        """
        while self._task is not None and not self._task.done():
            await asyncio.wait([self._task])
        if self._closed:
            return
        self._cancel_timer()
        self._settle_attempts = 0
        self._dirty = False
        self._state = SchedulerState.PENDING
        task = self._start()
        await task

    def close(self) -> None:
        """Cancel pending timers; later events are ignored."""
        self._closed = True
        self._cancel_timer()

    async def aclose(self) -> None:
        """Close and wait for a scan in flight to finish."""
        self.close()
        if self._task is not None and not self._task.done():
            await self._task

    def _request(self, reason: str) -> None:
        if self._closed:
            return
        if self._running:
            self._dirty = True
            return
        if self._state is SchedulerState.SETTLING:
            logger.debug(f"Ignoring {reason} while settling")
            return
        self._arm(self.debounce_seconds)
        self._state = SchedulerState.PENDING
        self._emit(EventType.SCAN_SCHEDULED, message=reason)

    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if self._closed:
            return
        if self._running:
            self._dirty = True
            return
        self._start()

    def _start(self) -> asyncio.Task[None]:
        # Marked running before the task is first scheduled, so events in
        # the same loop turn are deferred rather than arming a second scan
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._scan())
        return self._task

    async def _scan(self) -> None:
        try:
            await self._scan_once()
        finally:
            self._running = False

        rearm = self._dirty and self._state is SchedulerState.IDLE
        self._dirty = False
        if rearm:
            self._request("deferred")

    async def _scan_once(self) -> None:
        generation = self._generation
        self._emit(EventType.SCAN_STARTED, attempt=self._settle_attempts)
        try:
            document = await self._take_snapshot()
        except Exception as e:
            logger.warning(f"Could not take snapshot: {e}")
            self.stats.snapshot_failures += 1
            self._emit(EventType.SNAPSHOT_FAILED, error=str(e))
            self._settle_attempts = 0
            self._state = SchedulerState.IDLE
            return

        if generation != self._generation:
            logger.debug(f"Discarding stale scan of {document.url}")
            self.stats.scans_discarded += 1
            self._emit(EventType.SCAN_DISCARDED, url=document.url)
            self._settle_attempts = 0
            self._state = SchedulerState.IDLE
            self._dirty = True
            return

        result = self._pipeline.scan(self._strategy, document)
        self.stats.scans_run += 1
        self.last_result = result
        self.last_scan_at = asyncio.get_running_loop().time()
        self._emit(EventType.SCAN_COMPLETED, url=result.url, count=len(result.records))

        if result.streaming and self._settle_attempts < self._max_settle_retries:
            self._settle_attempts += 1
            self.stats.settle_waits += 1
            self._state = SchedulerState.SETTLING
            self._arm(self.settle_seconds)
            self._emit(EventType.SCAN_SETTLING, url=result.url, attempt=self._settle_attempts)
            return

        if result.streaming:
            logger.info(f"Still streaming after {self._settle_attempts} settle waits, delivering anyway")
        self._settle_attempts = 0
        self._state = SchedulerState.IDLE
        await self._deliver(result)

    async def _take_snapshot(self) -> Document:
        snapshot = self._snapshot()
        if inspect.isawaitable(snapshot):
            snapshot = await snapshot
        return snapshot

    async def _deliver(self, result: ScanResult) -> None:
        try:
            outcome = self._on_batch(result.records)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Batch consumer failed: {e}")
            self._emit(EventType.DELIVERY_FAILED, url=result.url, error=str(e))
            return

        self.stats.batches_delivered += 1
        self.stats.messages_delivered += len(result.records)
        self._emit(EventType.BATCH_DELIVERED, url=result.url, count=len(result.records))

    def _emit(self, event_type: EventType, **fields: object) -> None:
        if self._emit_callback is None:
            return
        self._emit_callback(
            ScanEvent(type=event_type, target=self._strategy.descriptor.key, **fields)  # type: ignore[arg-type]
        )
