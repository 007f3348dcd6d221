"""Persistence relay and key-value stores."""

from ..models.config import StorageConfig
from .json_store import JsonFileStore
from .memory import MemoryStore
from .protocols import KeyValueStore
from .relay import (
    DEFAULT_THEME,
    FAVORITES_KEY,
    MESSAGES_KEY,
    THEME_KEY,
    PersistenceRelay,
    UnknownRequestError,
)


def create_store(config: StorageConfig) -> KeyValueStore:
    """Build the store selected by the configuration."""
    if config.backend == "json":
        return JsonFileStore(config.path)
    return MemoryStore()


__all__ = [
    # Protocol
    "KeyValueStore",
    # Implementations
    "JsonFileStore",
    "MemoryStore",
    "PersistenceRelay",
    "create_store",
    # Errors
    "UnknownRequestError",
    # Keys
    "DEFAULT_THEME",
    "FAVORITES_KEY",
    "MESSAGES_KEY",
    "THEME_KEY",
]
