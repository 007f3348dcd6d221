"""Tests for the extraction pipeline, scan scheduler and switch detector."""

import asyncio
from unittest.mock import MagicMock

import pytest
from turnscout.dom import Document
from turnscout.models import EventType, MessageRecord, Role, TargetDescriptor
from turnscout.pipeline import ExtractionPipeline
from turnscout.scheduler import ScanScheduler, SchedulerState
from turnscout.switch import ConversationSwitchDetector
from turnscout.targets import ChatGPTTarget, ClaudeTarget, QwenTarget

URL = "https://fake.test/c/1"


class FakeStrategy:
    """Strategy with scripted streaming answers."""

    descriptor = TargetDescriptor(
        key="fake",
        name="Fake",
        hostnames=("fake.test",),
        debounce_ms=20,
        post_detection_settle_ms=20,
    )
    debounce_ms = 20
    post_detection_settle_ms = 20

    def __init__(self, streaming=None, always_streaming=False):
        self.streaming = list(streaming or [])
        self.always_streaming = always_streaming
        self.scans = 0

    def discover_messages(self, document):
        self.scans += 1
        record = MessageRecord.build("fake", Role.USER, 0, f"scan {self.scans}", None, order=0)
        return [record]

    def is_streaming(self, document):
        if self.always_streaming:
            return True
        return self.streaming.pop(0) if self.streaming else False


@pytest.fixture
def document():
    """Create an empty snapshot."""
    return Document("<html><body></body></html>", URL)


class TestExtractionPipeline:
    """Tests for ExtractionPipeline."""

    def test_inert_without_strategy(self, document):
        """Test that no strategy yields no records."""
        pipeline = ExtractionPipeline()
        assert pipeline.run(None, document) == []
        result = pipeline.scan(None, document)
        assert result.records == []
        assert result.target is None
        assert result.streaming is False

    def test_strategy_failure_contained(self, document):
        """Test that a raising strategy yields no records."""
        strategy = MagicMock()
        strategy.discover_messages.side_effect = RuntimeError("boom")
        strategy.is_streaming.side_effect = RuntimeError("boom")
        strategy.descriptor.key = "mock"
        result = ExtractionPipeline().scan(strategy, document)
        assert result.records == []
        assert result.streaming is False
        assert result.target == "mock"

    def test_scan(self, document):
        """Test records and streaming flag."""
        result = ExtractionPipeline().scan(FakeStrategy(streaming=[True]), document)
        assert [r.full_content for r in result.records] == ["scan 1"]
        assert result.streaming is True
        assert result.url == URL
        assert result.duration_seconds >= 0


class TestScanScheduler:
    """Tests for ScanScheduler."""

    @pytest.mark.asyncio
    async def test_burst_collapses_into_one_scan(self, document):
        """Test debouncing."""
        strategy = FakeStrategy()
        batches = []
        scheduler = ScanScheduler(strategy, lambda: document, batches.append, debounce_ms=30)

        for _ in range(5):
            scheduler.notify_mutation()
            await asyncio.sleep(0.005)
        assert scheduler.state is SchedulerState.PENDING
        assert strategy.scans == 0

        await asyncio.sleep(0.2)
        assert strategy.scans == 1
        assert len(batches) == 1
        assert scheduler.state is SchedulerState.IDLE
        assert scheduler.stats.batches_delivered == 1

    @pytest.mark.asyncio
    async def test_streaming_delays_delivery(self, document):
        """Test that nothing is delivered while a response streams."""
        strategy = FakeStrategy(streaming=[True, True, False])
        batches = []
        scheduler = ScanScheduler(strategy, lambda: document, batches.append, debounce_ms=20, settle_ms=100)

        scheduler.notify_mutation()
        await asyncio.sleep(0.06)
        assert scheduler.state is SchedulerState.SETTLING
        assert batches == []

        await asyncio.sleep(0.4)
        assert strategy.scans == 3
        assert [[r.full_content for r in batch] for batch in batches] == [["scan 3"]]
        assert scheduler.stats.settle_waits == 2
        assert scheduler.state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_events_ignored_while_settling(self, document):
        """Test that the settle timer is not reset by mutations."""
        strategy = FakeStrategy(streaming=[True])
        events = []
        scheduler = ScanScheduler(
            strategy, lambda: document, lambda records: None, debounce_ms=20, settle_ms=100, emit=events.append
        )

        scheduler.notify_mutation()
        await asyncio.sleep(0.06)
        assert scheduler.state is SchedulerState.SETTLING
        scheduled = sum(1 for e in events if e.type == EventType.SCAN_SCHEDULED)

        scheduler.notify_mutation()
        scheduler.notify_navigation()
        assert scheduler.state is SchedulerState.SETTLING
        assert sum(1 for e in events if e.type == EventType.SCAN_SCHEDULED) == scheduled

        await asyncio.sleep(0.2)
        assert strategy.scans == 2

    @pytest.mark.asyncio
    async def test_settle_retries_bounded(self, document):
        """Test delivery after the retry limit."""
        strategy = FakeStrategy(always_streaming=True)
        batches = []
        scheduler = ScanScheduler(
            strategy, lambda: document, batches.append, debounce_ms=10, settle_ms=20, max_settle_retries=2
        )

        scheduler.notify_mutation()
        await asyncio.sleep(0.3)
        assert strategy.scans == 3
        assert len(batches) == 1
        assert scheduler.state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_scan_now(self, document):
        """Test immediate scans supersede the debounce."""
        strategy = FakeStrategy()
        batches = []
        scheduler = ScanScheduler(strategy, lambda: document, batches.append, debounce_ms=50)

        scheduler.notify_mutation()
        await scheduler.scan_now()
        assert strategy.scans == 1
        assert len(batches) == 1

        await asyncio.sleep(0.12)
        assert strategy.scans == 1
        assert scheduler.last_result is not None
        assert scheduler.last_scan_at is not None

    @pytest.mark.asyncio
    async def test_events_during_scan_rearm(self, document):
        """Test that changes seen during a scan trigger another scan."""
        strategy = FakeStrategy()
        gate = asyncio.Event()
        batches = []

        async def snapshot():
            await gate.wait()
            return document

        scheduler = ScanScheduler(strategy, snapshot, batches.append, debounce_ms=20)
        task = asyncio.create_task(scheduler.scan_now())
        await asyncio.sleep(0.01)
        assert scheduler.is_running

        scheduler.notify_mutation()
        gate.set()
        await task
        assert scheduler.state is SchedulerState.PENDING

        await asyncio.sleep(0.15)
        assert strategy.scans == 2
        assert len(batches) == 2

    @pytest.mark.asyncio
    async def test_change_as_debounce_fires(self, document):
        """Test that a change arriving with the timer never runs two scans at once."""
        strategy = FakeStrategy()
        active = 0
        peak = 0

        async def snapshot():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.1)
            active -= 1
            return document

        scheduler = ScanScheduler(strategy, snapshot, lambda records: None, debounce_ms=10)
        scheduler.notify_mutation()
        asyncio.get_running_loop().call_later(0.010, scheduler.notify_mutation)

        await asyncio.sleep(0.05)
        assert scheduler.is_running
        await asyncio.sleep(0.4)
        assert peak == 1
        assert strategy.scans == 2
        assert scheduler.state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_invalidated_scan_discarded(self, document):
        """Test that a scan started before invalidate() is not delivered."""
        strategy = FakeStrategy()
        gate = asyncio.Event()
        batches = []
        events = []

        async def snapshot():
            await gate.wait()
            return document

        scheduler = ScanScheduler(strategy, snapshot, batches.append, debounce_ms=10, emit=events.append)
        scheduler.notify_mutation()
        await asyncio.sleep(0.05)
        assert scheduler.is_running

        scheduler.invalidate()
        forced = asyncio.create_task(scheduler.scan_now())
        await asyncio.sleep(0.01)
        assert batches == []

        gate.set()
        await forced
        assert strategy.scans == 1
        assert len(batches) == 1
        assert scheduler.stats.scans_discarded == 1
        assert [e.type for e in events].count(EventType.SCAN_DISCARDED) == 1

        await asyncio.sleep(0.05)
        assert len(batches) == 1

    @pytest.mark.asyncio
    async def test_async_consumer(self, document):
        """Test awaiting an async batch consumer."""
        received = []

        async def consumer(records):
            await asyncio.sleep(0)
            received.extend(records)

        scheduler = ScanScheduler(FakeStrategy(), lambda: document, consumer)
        await scheduler.scan_now()
        assert [r.full_content for r in received] == ["scan 1"]

    @pytest.mark.asyncio
    async def test_snapshot_failure(self):
        """Test that a failed snapshot is reported and the scheduler recovers."""

        def snapshot():
            raise RuntimeError("page closed")

        events = []
        batches = []
        scheduler = ScanScheduler(FakeStrategy(), snapshot, batches.append, emit=events.append)
        await scheduler.scan_now()

        assert batches == []
        assert scheduler.state is SchedulerState.IDLE
        assert scheduler.stats.snapshot_failures == 1
        failures = [e for e in events if e.type == EventType.SNAPSHOT_FAILED]
        assert len(failures) == 1
        assert failures[0].error == "page closed"
        assert failures[0].target == "fake"

    @pytest.mark.asyncio
    async def test_delivery_failure(self, document):
        """Test that a raising consumer is reported."""

        def consumer(records):
            raise ValueError("sidebar gone")

        events = []
        scheduler = ScanScheduler(FakeStrategy(), lambda: document, consumer, emit=events.append)
        await scheduler.scan_now()

        assert scheduler.stats.batches_delivered == 0
        assert scheduler.state is SchedulerState.IDLE
        assert [e.type for e in events if e.is_error] == [EventType.DELIVERY_FAILED]

    @pytest.mark.asyncio
    async def test_close(self, document):
        """Test that a closed scheduler ignores events."""
        strategy = FakeStrategy()
        scheduler = ScanScheduler(strategy, lambda: document, lambda records: None, debounce_ms=10)
        scheduler.notify_mutation()
        await scheduler.aclose()
        scheduler.notify_mutation()
        await scheduler.scan_now()
        await asyncio.sleep(0.05)
        assert strategy.scans == 0

    def test_target_timings_used(self):
        """Test that the strategy's timings are the defaults."""
        scheduler = ScanScheduler(ClaudeTarget(), lambda: None, lambda records: None)
        assert scheduler.debounce_seconds == 1.0
        assert scheduler.settle_seconds == 3.0
        overridden = ScanScheduler(ClaudeTarget(), lambda: None, lambda records: None, debounce_ms=250)
        assert overridden.debounce_seconds == 0.25


class TestConversationSwitchDetector:
    """Tests for ConversationSwitchDetector."""

    def test_first_observation_is_baseline(self):
        """Test that the first address never counts as a switch."""
        detector = ConversationSwitchDetector(QwenTarget())
        assert detector.observe("https://chat.qwen.ai/c/abc") is False
        assert detector.current == "/c/abc"

    def test_query_change_is_not_switch(self):
        """Test that query changes within a conversation are ignored."""
        detector = ConversationSwitchDetector(QwenTarget())
        detector.observe("https://chat.qwen.ai/c/abc?x=1")
        assert detector.observe("https://chat.qwen.ai/c/abc?x=2") is False

    def test_conversation_change_is_switch(self):
        """Test that a different conversation is a switch."""
        detector = ConversationSwitchDetector(QwenTarget())
        detector.observe("https://chat.qwen.ai/c/abc")
        assert detector.observe("https://chat.qwen.ai/c/def") is True
        assert detector.observe("https://chat.qwen.ai/c/def") is False

    def test_fragment_and_trailing_slash(self):
        """Test cosmetic differences."""
        detector = ConversationSwitchDetector(ChatGPTTarget())
        detector.observe("https://chatgpt.com/c/abc")
        assert detector.observe("https://chatgpt.com/c/abc/#section") is False

    def test_reset(self):
        """Test forgetting the baseline."""
        detector = ConversationSwitchDetector(ClaudeTarget())
        detector.observe("https://claude.ai/chat/1")
        detector.reset()
        assert detector.current is None
        assert detector.observe("https://claude.ai/chat/2") is False
