"""Tests for ConversationSession wiring."""

import asyncio

import pytest
from turnscout.dom import Document
from turnscout.models import EventType, Role, SchedulerConfig, TurnscoutConfig
from turnscout.scheduler import SchedulerState
from turnscout.session import ConversationSession
from turnscout.storage import MemoryStore, PersistenceRelay
from turnscout.targets import ChatGPTTarget

PAGE = """
<html><body><main>
  <div data-message-author-role="user"><div class="whitespace-pre-wrap">{question}</div></div>
  <div data-message-author-role="assistant"><div class="markdown"><p>{answer}</p></div></div>
</main></body></html>
"""


class FakePage:
    """Page whose address and content tests can change."""

    def __init__(self, url):
        self.url = url
        self.question = "First question"
        self.answer = "First answer"

    def snapshot(self):
        return Document(PAGE.format(question=self.question, answer=self.answer), self.url)


@pytest.fixture
def config():
    """Create a configuration with short timings."""
    return TurnscoutConfig(scheduler=SchedulerConfig(debounce_ms=10, settle_ms=10))


class TestConversationSession:
    """Tests for ConversationSession."""

    @pytest.mark.asyncio
    async def test_inert_on_unknown_site(self, config):
        """Test that unsupported pages are ignored."""
        page = FakePage("https://example.com/")
        session = ConversationSession(page.url, page.snapshot, config=config)
        assert not session.active
        assert session.strategy is None
        session.document_changed()
        assert await session.address_changed("https://example.com/other") is False
        await session.aclose()

    @pytest.mark.asyncio
    async def test_mutation_delivers_and_persists(self, config):
        """Test that a document change ends in a saved batch."""
        page = FakePage("https://chatgpt.com/c/abc")
        relay = PersistenceRelay(MemoryStore())
        batches = []
        session = ConversationSession(page.url, page.snapshot, on_batch=batches.append, relay=relay, config=config)

        assert isinstance(session.strategy, ChatGPTTarget)
        session.document_changed()
        await asyncio.sleep(0.1)

        assert len(batches) == 1
        assert [r.role for r in session.latest] == [Role.USER, Role.ASSISTANT]
        stored = await relay.get_messages()
        assert [r.full_content for r in stored] == ["First question", "First answer"]
        await session.aclose()

    @pytest.mark.asyncio
    async def test_switch_clears_and_rescans(self, config):
        """Test conversation switches."""
        page = FakePage("https://chatgpt.com/c/abc")
        relay = PersistenceRelay(MemoryStore())
        switches = []
        events = []
        session = ConversationSession(
            page.url,
            page.snapshot,
            on_switch=lambda previous, current: switches.append((previous, current)),
            relay=relay,
            config=config,
            emit=events.append,
        )
        await relay.handle({"type": "SAVE_MESSAGES", "messages": [{"id": "stale"}]})

        page.url = "https://chatgpt.com/c/def"
        page.question = "Second question"
        assert await session.address_changed(page.url) is True

        assert switches == [("/c/abc", "/c/def")]
        assert any(e.type == EventType.CONVERSATION_SWITCHED for e in events)
        stored = await relay.get_messages()
        assert [r.full_content for r in stored] == ["Second question", "First answer"]
        await session.aclose()

    @pytest.mark.asyncio
    async def test_switch_during_scan(self, config):
        """Test that a scan of the previous conversation is not saved after a switch."""
        page = FakePage("https://chatgpt.com/c/abc")
        gate = asyncio.Event()
        relay = PersistenceRelay(MemoryStore())
        batches = []

        async def snapshot():
            document = page.snapshot()
            await gate.wait()
            return document

        session = ConversationSession(page.url, snapshot, on_batch=batches.append, relay=relay, config=config)
        session.document_changed()
        await asyncio.sleep(0.05)
        assert session.scheduler.is_running

        page.url = "https://chatgpt.com/c/def"
        page.question = "Second question"
        switch = asyncio.create_task(session.address_changed(page.url))
        await asyncio.sleep(0.01)
        gate.set()
        assert await switch is True

        assert len(batches) == 1
        assert [r.full_content for r in session.latest] == ["Second question", "First answer"]
        stored = await relay.get_messages()
        assert [r.full_content for r in stored] == ["Second question", "First answer"]

        await asyncio.sleep(0.05)
        assert len(batches) == 1
        await session.aclose()

    @pytest.mark.asyncio
    async def test_async_switch_handler(self, config):
        """Test awaiting an async switch handler."""
        page = FakePage("https://chatgpt.com/c/abc")
        seen = []

        async def on_switch(previous, current):
            seen.append(current)

        session = ConversationSession(page.url, page.snapshot, on_switch=on_switch, config=config)
        await session.address_changed("https://chatgpt.com/c/xyz")
        assert seen == ["/c/xyz"]
        await session.aclose()

    @pytest.mark.asyncio
    async def test_same_conversation_navigation(self, config):
        """Test that other navigations are debounced like mutations."""
        page = FakePage("https://chatgpt.com/c/abc")
        batches = []
        session = ConversationSession(page.url, page.snapshot, on_batch=batches.append, config=config)

        assert await session.address_changed("https://chatgpt.com/c/abc#latest") is False
        assert session.scheduler.state is SchedulerState.PENDING
        await asyncio.sleep(0.1)
        assert len(batches) == 1
        await session.aclose()
