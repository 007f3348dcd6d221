"""Request/response relay between extraction consumers and the store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..models.records import MessageRecord
from .protocols import KeyValueStore

logger = logging.getLogger(__name__)

MESSAGES_KEY = "messages"
FAVORITES_KEY = "favorites"
THEME_KEY = "themePreference"

DEFAULT_THEME = "dark"


class UnknownRequestError(ValueError):
    """Raised for a request whose type the relay does not serve."""


class PersistenceRelay:
    """
    Serve storage requests for extracted messages and user preferences.

    Requests are mappings with a ``type`` field:

    ========================  =====================  ==========================
    type                      payload                response
    ========================  =====================  ==========================
    ``SAVE_MESSAGES``         ``messages``           ``{"success": True}``
    ``GET_MESSAGES``                                 ``{"messages": [...]}``
    ``SAVE_FAVORITES``        ``favorites``          ``{"success": True}``
    ``GET_FAVORITES``                                ``{"favorites": [...]}``
    ``SAVE_THEME``            ``theme``              ``{"success": True}``
    ``GET_THEME``                                    ``{"theme": "dark"}``
    ========================  =====================  ==========================

    Missing keys read as empty collections (and the dark theme).

    Example:
        relay = PersistenceRelay(MemoryStore())
        await relay.save_messages(records)
        response = await relay.handle({"type": "GET_MESSAGES"})
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def handle(self, request: Mapping[str, Any]) -> dict[str, Any]:
        """
        Dispatch one request.

        Raises:
            UnknownRequestError: If the request type is unknown
        """
        request_type = request.get("type")
        if request_type == "SAVE_MESSAGES":
            await self.store.set({MESSAGES_KEY: list(request.get("messages") or [])})
            return {"success": True}
        if request_type == "GET_MESSAGES":
            return {"messages": await self._get_list(MESSAGES_KEY)}
        if request_type == "SAVE_FAVORITES":
            await self.store.set({FAVORITES_KEY: list(request.get("favorites") or [])})
            return {"success": True}
        if request_type == "GET_FAVORITES":
            return {"favorites": await self._get_list(FAVORITES_KEY)}
        if request_type == "SAVE_THEME":
            await self.store.set({THEME_KEY: request.get("theme") or DEFAULT_THEME})
            return {"success": True}
        if request_type == "GET_THEME":
            stored = await self.store.get([THEME_KEY])
            return {"theme": stored.get(THEME_KEY) or DEFAULT_THEME}
        raise UnknownRequestError(f"Unknown request type: {request_type!r}")

    async def _get_list(self, key: str) -> list[Any]:
        stored = await self.store.get([key])
        value = stored.get(key)
        return list(value) if value else []

    # Typed helpers

    async def save_messages(self, records: Iterable[MessageRecord]) -> None:
        await self.handle({"type": "SAVE_MESSAGES", "messages": [r.to_dict() for r in records]})

    async def get_messages(self) -> list[MessageRecord]:
        """Stored messages; entries that no longer parse are skipped."""
        response = await self.handle({"type": "GET_MESSAGES"})
        records = []
        for data in response["messages"]:
            try:
                records.append(MessageRecord.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping stored message that does not parse: {e}")
        return records

    async def clear_messages(self) -> None:
        await self.handle({"type": "SAVE_MESSAGES", "messages": []})
