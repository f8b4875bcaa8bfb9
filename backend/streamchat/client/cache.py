"""
Chat list cache and the sidebar chat list built on it.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from .events import CHAT_TITLE_UPDATED, EventBus, default_bus

logger = logging.getLogger(__name__)


@dataclass
class ChatListCache:
    """
    Last fetched chat list with an explicit staleness window.

    Owned by the UI layer; callers invalidate it on create and delete.
    """
    max_age: float = 5.0
    data: List[Dict[str, Any]] = field(default_factory=list)
    fetched_at: Optional[float] = None
    clock: Callable[[], float] = time.monotonic

    def is_fresh(self) -> bool:
        if self.fetched_at is None:
            return False
        return (self.clock() - self.fetched_at) < self.max_age

    def store(self, data: List[Dict[str, Any]]) -> None:
        self.data = list(data)
        self.fetched_at = self.clock()

    def invalidate(self) -> None:
        self.fetched_at = None

    def remove(self, chat_id: int) -> None:
        self.data = [chat for chat in self.data if chat["id"] != chat_id]

    def apply_title(self, chat_id: int, title: str) -> bool:
        """Patch one cached title in place; False if the chat is not cached."""
        for chat in self.data:
            if chat["id"] == chat_id:
                chat["title"] = title
                return True
        return False


class ChatList:
    """
    Sidebar view of the user's chats.

    Reads through the cache and follows title changes published on the
    event bus by whichever page owns the chat.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: Optional[ChatListCache] = None,
        bus: EventBus = default_bus,
        authenticated: bool = True,
    ):
        self.http = http
        self.cache = cache or ChatListCache()
        self.bus = bus
        self.authenticated = authenticated
        self._unsubscribe = bus.subscribe(CHAT_TITLE_UPDATED, self._on_title_updated)

    @property
    def chats(self) -> List[Dict[str, Any]]:
        return self.cache.data

    async def fetch(self, force: bool = False) -> List[Dict[str, Any]]:
        if not self.authenticated:
            self.cache.store([])
            return self.cache.data
        if not force and self.cache.is_fresh():
            return self.cache.data

        response = await self.http.get("/api/chats")
        response.raise_for_status()
        self.cache.store(response.json())
        return self.cache.data

    async def create(self, title: Optional[str] = None, first_message: Optional[str] = None) -> int:
        """Create a chat and return its id."""
        payload: Dict[str, Any] = {}
        if title:
            payload["title"] = title
        if first_message:
            payload["firstMessage"] = first_message

        response = await self.http.post("/chat", json=payload, follow_redirects=False)
        if response.status_code != 303:
            response.raise_for_status()
        self.cache.invalidate()
        return int(response.headers["location"].rstrip("/").rsplit("/", 1)[-1])

    async def rename(self, chat_id: int, title: str) -> None:
        response = await self.http.patch(f"/chat/{chat_id}", json={"title": title})
        response.raise_for_status()
        self.cache.apply_title(chat_id, title)

    async def delete(self, chat_id: int) -> None:
        response = await self.http.delete(f"/chat/{chat_id}")
        response.raise_for_status()
        self.cache.remove(chat_id)
        self.cache.invalidate()

    def close(self) -> None:
        self._unsubscribe()

    def _on_title_updated(self, chat_id: int, title: str) -> None:
        if not self.cache.apply_title(chat_id, title):
            logger.debug(f"Chat {chat_id} not in list yet, refetch on next read")
            self.cache.invalidate()
