"""Protocol definition for the persistence store."""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol


class KeyValueStore(Protocol):
    """
    Protocol for the asynchronous key-value store behind the relay.

    Keys are logical names (``messages``, ``favorites``, ``themePreference``).
    Missing keys are simply absent from get() results.
    """

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """
        Read several keys.

        Args:
            keys: Keys to read

        Returns:
            Mapping of the keys that exist to their values
        """
        ...

    async def set(self, items: Mapping[str, Any]) -> None:
        """
        Write several keys.

        Args:
            items: Mapping of keys to JSON-serializable values
        """
        ...
