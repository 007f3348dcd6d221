"""Event types emitted while watching a conversation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class EventType(str, Enum):
    """Types of events emitted by the scheduler and session."""

    # Scheduling
    SCAN_SCHEDULED = "scan_scheduled"
    SCAN_STARTED = "scan_started"
    SCAN_SETTLING = "scan_settling"
    SCAN_COMPLETED = "scan_completed"
    SCAN_DISCARDED = "scan_discarded"

    # Failures (never fatal; the next scan retries)
    SNAPSHOT_FAILED = "snapshot_failed"
    DELIVERY_FAILED = "delivery_failed"

    # Delivery
    BATCH_DELIVERED = "batch_delivered"

    # Navigation
    CONVERSATION_SWITCHED = "conversation_switched"


@dataclass
class ScanEvent:
    """
    Event emitted while scheduling and running scans.

    Example:
        def on_event(event: ScanEvent) -> None:
            if event.type == EventType.BATCH_DELIVERED:
                print(f"{event.count} messages from {event.url}")
            elif event.is_error:
                print(f"Error: {event.error}")
    """

    type: EventType

    # Timestamp (always UTC)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    url: Optional[str] = None
    target: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    count: Optional[int] = None
    attempt: Optional[int] = None

    @property
    def is_error(self) -> bool:
        """Check if this is an error event."""
        return self.type in (EventType.SNAPSHOT_FAILED, EventType.DELIVERY_FAILED)


@dataclass
class ScanStats:
    """Cumulative statistics for a scheduler."""

    scans_run: int = 0
    batches_delivered: int = 0
    settle_waits: int = 0
    scans_discarded: int = 0
    snapshot_failures: int = 0
    messages_delivered: int = 0

    def to_dict(self) -> dict:
        """Convert stats to dictionary for serialization."""
        return {
            "scans_run": self.scans_run,
            "batches_delivered": self.batches_delivered,
            "settle_waits": self.settle_waits,
            "scans_discarded": self.scans_discarded,
            "snapshot_failures": self.snapshot_failures,
            "messages_delivered": self.messages_delivered,
        }
