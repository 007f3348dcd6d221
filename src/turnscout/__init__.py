"""
turnscout - Extract the turns of a chat conversation from its rendered page.

Usage:
    from turnscout import Document, ExtractionPipeline, resolve_target

    strategy = resolve_target(url)
    records = ExtractionPipeline().run(strategy, Document(html, url))
    for record in records:
        print(record.role.value, record.content)
"""

__version__ = "0.3.0"

from .dom import Document, Layout, Rect, StampedLayout
from .models.config import InferenceConfig, SchedulerConfig, StorageConfig, TurnscoutConfig
from .models.events import EventType, ScanEvent, ScanStats
from .models.records import MessageRecord, NodeAnchor, Role, TargetDescriptor
from .pipeline import ExtractionPipeline, ScanResult
from .scheduler import ScanScheduler, SchedulerState
from .session import ConversationSession
from .storage import JsonFileStore, MemoryStore, PersistenceRelay, create_store
from .switch import ConversationSwitchDetector
from .targets import TargetStrategy, descriptors, resolve_target

__all__ = [
    "__version__",
    # Snapshot
    "Document",
    "Layout",
    "Rect",
    "StampedLayout",
    # Content
    "MessageRecord",
    "NodeAnchor",
    "Role",
    "TargetDescriptor",
    # Targets
    "TargetStrategy",
    "descriptors",
    "resolve_target",
    # Extraction
    "ExtractionPipeline",
    "ScanResult",
    "ScanScheduler",
    "SchedulerState",
    "ConversationSwitchDetector",
    "ConversationSession",
    # Persistence
    "PersistenceRelay",
    "MemoryStore",
    "JsonFileStore",
    "create_store",
    # Config
    "TurnscoutConfig",
    "SchedulerConfig",
    "InferenceConfig",
    "StorageConfig",
    # Events
    "EventType",
    "ScanEvent",
    "ScanStats",
]
