"""Target-agnostic extraction driver."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from ..dom.document import Document
from ..models.records import MessageRecord
from ..targets.protocols import TargetStrategy

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """
    Outcome of one scan of one snapshot.

    Attributes:
        url: Address of the scanned snapshot
        target: Key of the strategy used (None when inert)
        records: Turns in document order
        streaming: True if a response was still being generated
        duration_seconds: Time spent in discovery
    """

    url: str
    target: Optional[str] = None
    records: list[MessageRecord] = field(default_factory=list)
    streaming: bool = False
    duration_seconds: float = 0.0


class ExtractionPipeline:
    """
    Stateless orchestrator between a strategy and its consumer.

    The strategy already orders and deduplicates its records, so they are
    passed through unchanged. Nothing is kept between calls: every run is
    a fresh derivation from the snapshot it is given.

    Example:
        pipeline = ExtractionPipeline()
        records = pipeline.run(resolve_target(url), Document(html, url))
    """

    def run(self, strategy: Optional[TargetStrategy], document: Document) -> list[MessageRecord]:
        """
        Discover the turns of a snapshot.

        Args:
            strategy: Active strategy (None when no target matched)
            document: Snapshot to read

        Returns:
            Ordered records ([] when inert or on failure)
        """
        if strategy is None:
            return []
        try:
            return strategy.discover_messages(document)
        except Exception as e:
            # Strategies handle their own failures; this guards third-party ones
            logger.error(f"Discovery raised for {document.url}: {e}")
            return []

    def scan(self, strategy: Optional[TargetStrategy], document: Document) -> ScanResult:
        """Run discovery and the streaming check for one snapshot."""
        started = time.monotonic()
        records = self.run(strategy, document)
        streaming = False
        if strategy is not None:
            try:
                streaming = strategy.is_streaming(document)
            except Exception as e:
                logger.debug(f"Streaming check raised for {document.url}: {e}")

        return ScanResult(
            url=document.url,
            target=strategy.descriptor.key if strategy is not None else None,
            records=records,
            streaming=streaming,
            duration_seconds=time.monotonic() - started,
        )
