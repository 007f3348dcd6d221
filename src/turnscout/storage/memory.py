"""In-process key-value store."""

import asyncio
import copy
from collections.abc import Iterable, Mapping
from typing import Any


class MemoryStore:
    """
    Dict-backed store; values are deep-copied in and out.

    Example:
        store = MemoryStore()
        await store.set({"themePreference": "light"})
        await store.get(["themePreference"])  # {"themePreference": "light"}
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        async with self._lock:
            return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        async with self._lock:
            for key, value in items.items():
                self._data[key] = copy.deepcopy(value)
