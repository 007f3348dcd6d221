"""Turnscout content, configuration and event models."""

from .config import InferenceConfig, SchedulerConfig, StorageConfig, TurnscoutConfig
from .events import EventType, ScanEvent, ScanStats
from .records import (
    PREVIEW_LENGTH,
    MessageRecord,
    NodeAnchor,
    Role,
    TargetDescriptor,
    make_message_id,
)

__all__ = [
    # Content
    "MessageRecord",
    "NodeAnchor",
    "PREVIEW_LENGTH",
    "Role",
    "TargetDescriptor",
    "make_message_id",
    # Config
    "InferenceConfig",
    "SchedulerConfig",
    "StorageConfig",
    "TurnscoutConfig",
    # Events
    "EventType",
    "ScanEvent",
    "ScanStats",
]
