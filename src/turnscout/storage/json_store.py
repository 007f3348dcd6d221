"""Key-value store persisted to a single JSON file."""

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonFileStore:
    """
    Store all keys in one JSON document on disk.

    Features:
    - Lazy load: the file is read on first access
    - Tolerant load: a missing or corrupt file starts an empty store
    - Atomic writes: data goes to a temporary file that replaces the original

    Example:
        store = JsonFileStore(Path("~/.turnscout/store.json").expanduser())
        await store.set({"messages": []})
    """

    def __init__(self, path: Path):
        """
        Initialize the store.

        Args:
            path: JSON file holding the data (created on first write)
        """
        self.path = Path(path)
        self._data: dict[str, Any] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    def _load(self) -> None:
        """Load data from disk (once)."""
        if self._loaded:
            return
        self._loaded = True
        if not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                self._data = data
            else:
                logger.warning(f"Ignoring store file with unexpected content: {self.path}")
        except Exception as e:
            logger.warning(f"Could not load store file {self.path}: {e}")

    def _save(self) -> None:
        """Write data to disk atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        async with self._lock:
            self._load()
            return {key: self._data[key] for key in keys if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        async with self._lock:
            self._load()
            self._data.update(items)
            await asyncio.to_thread(self._save)
