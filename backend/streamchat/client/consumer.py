"""
Client Stream Consumer - drives one chat view against the streaming API.

States: idle -> sending -> streaming -> idle, then title_pending -> idle
when a persisted chat receives its first reply while still untitled.
"""

import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from .events import CHAT_TITLE_UPDATED, EventBus, default_bus
from .sse import iter_sse

logger = logging.getLogger(__name__)

SENTINEL_TITLE = "Untitled"
TITLE_EVENT = "title-update"
END_MARKER = "</stream>"


class ConsumerState(str, Enum):
    idle = "idle"
    sending = "sending"
    streaming = "streaming"
    title_pending = "title_pending"


class ChatStreamConsumer:
    """
    Local state of one chat page.

    Args:
        http: Client pointed at the API, carrying auth headers if any
        chat_id: Persisted chat, or None for an anonymous conversation
        bus: Where title changes are broadcast for other surfaces
        on_fragment: Called with each fragment as it is rendered
        on_state: Called on every state change
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        chat_id: Optional[int] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        title: str = SENTINEL_TITLE,
        bus: EventBus = default_bus,
        on_fragment: Optional[Callable[[str], None]] = None,
        on_state: Optional[Callable[[ConsumerState], None]] = None,
    ):
        self.http = http
        self.chat_id = chat_id
        self.messages: List[Dict[str, Any]] = list(messages or [])
        self.title = title
        self.bus = bus
        self.on_fragment = on_fragment
        self.on_state = on_state
        self.in_progress = ""
        self.state = ConsumerState.idle

    @property
    def stream_url(self) -> str:
        return f"/chat/{self.chat_id}/stream" if self.chat_id is not None else "/chat/stream"

    def _set_state(self, state: ConsumerState) -> None:
        self.state = state
        if self.on_state:
            self.on_state(state)

    async def open(self, chat_id: int) -> Optional[str]:
        """
        Load a persisted chat. A chat that was created with a first message
        and has no reply yet is streamed right away.

        Returns:
            The streamed reply when one was started, None otherwise
        """
        self.chat_id = chat_id
        detail = await self._load()
        if detail.get("auto_stream"):
            self._set_state(ConsumerState.sending)
            return await self._exchange()
        return None

    async def submit(self, text: str) -> Optional[str]:
        """
        Send a prompt and stream the reply.

        The prompt is shown locally before the request is made.

        Returns:
            The full reply text, None for blank input
        """
        text = text.strip()
        if not text:
            return None
        if self.state != ConsumerState.idle:
            raise RuntimeError(f"Cannot submit while {self.state.value}")

        self._set_state(ConsumerState.sending)
        self.messages.append({"type": "prompt", "content": text})
        return await self._exchange()

    async def _exchange(self) -> str:
        payload = {"messages": [self._wire_turn(m) for m in self.messages]}

        self.in_progress = ""
        try:
            async with self.http.stream("POST", self.stream_url, json=payload) as response:
                response.raise_for_status()
                self._set_state(ConsumerState.streaming)
                async for fragment in response.aiter_text():
                    if not fragment:
                        continue
                    self.in_progress += fragment
                    if self.on_fragment:
                        self.on_fragment(fragment)
        except Exception:
            self._set_state(ConsumerState.idle)
            raise

        reply = self.in_progress
        self.in_progress = ""
        if reply:
            self.messages.append({"type": "response", "content": reply})
        self._set_state(ConsumerState.idle)

        if self.chat_id is not None:
            # Pick up server ids so the next request does not re-persist these turns
            await self._load(keep_title=True)
            if reply.strip() and self.title == SENTINEL_TITLE:
                await self.await_title()
        return reply

    async def await_title(self) -> Optional[str]:
        """
        Follow the title channel until its end marker.

        Returns:
            The new title, or None if the server gave up
        """
        if self.chat_id is None:
            return None

        self._set_state(ConsumerState.title_pending)
        new_title: Optional[str] = None
        try:
            async with self.http.stream("GET", f"/chat/{self.chat_id}/title-stream") as response:
                response.raise_for_status()
                async for event in iter_sse(response):
                    if event.event != TITLE_EVENT:
                        continue
                    if event.data == END_MARKER:
                        break
                    try:
                        new_title = json.loads(event.data).get("title") or None
                    except json.JSONDecodeError:
                        logger.warning(f"Unreadable title event: {event.data!r}")
                        continue
                    if new_title:
                        self.title = new_title
                        self.bus.publish(CHAT_TITLE_UPDATED, chat_id=self.chat_id, title=new_title)
        finally:
            self._set_state(ConsumerState.idle)
        return new_title

    async def _load(self, keep_title: bool = False) -> Dict[str, Any]:
        response = await self.http.get(f"/chat/{self.chat_id}")
        response.raise_for_status()
        detail = response.json()
        self.messages = [
            {"id": m["id"], "type": m["type"], "content": m["content"]}
            for m in detail.get("messages", [])
        ]
        if not keep_title:
            self.title = detail.get("title") or SENTINEL_TITLE
        return detail

    @staticmethod
    def _wire_turn(message: Dict[str, Any]) -> Dict[str, Any]:
        turn = {"type": message["type"], "content": message["content"]}
        if message.get("id") is not None:
            turn["id"] = message["id"]
        return turn
