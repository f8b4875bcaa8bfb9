"""
Title notification channel.

Subscribers wait for a chat's title to leave the "Untitled" sentinel. The
channel re-reads the title on a fixed interval and is woken early when the
title generator publishes, so either path satisfies the same contract: at
most one title event, then the end marker, within a hard timeout.
"""

import asyncio
import json
import logging
import threading
from contextlib import contextmanager
from typing import AsyncIterator, Callable, Dict, Iterator, Optional, Set, Tuple

from starlette.concurrency import run_in_threadpool

from ..storage import ChatStorage, SessionLocal, UNTITLED

logger = logging.getLogger(__name__)

TITLE_EVENT = "title-update"
END_MARKER = "</stream>"


def format_sse(data: str, event: Optional[str] = None) -> str:
    """Encode one server-sent event."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    for line in data.splitlines() or [""]:
        lines.append(f"data: {line}")
    return "\n".join(lines) + "\n\n"


class TitleNotifier:
    """
    In-process publish/subscribe of generated titles keyed by chat id.

    Waiters may live on a different event loop than the publisher
    (TestClient runs each request on its own loop), so wake-ups are
    delivered through the waiter's loop.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._waiters: Dict[int, Set[Tuple[asyncio.AbstractEventLoop, asyncio.Event]]] = {}

    @contextmanager
    def subscribe(self, chat_id: int) -> Iterator[asyncio.Event]:
        entry = (asyncio.get_running_loop(), asyncio.Event())
        with self._lock:
            self._waiters.setdefault(chat_id, set()).add(entry)
        try:
            yield entry[1]
        finally:
            with self._lock:
                waiters = self._waiters.get(chat_id)
                if waiters is not None:
                    waiters.discard(entry)
                    if not waiters:
                        del self._waiters[chat_id]

    def publish(self, chat_id: int, title: str) -> int:
        """Wake every subscriber of a chat; returns how many were notified."""
        with self._lock:
            waiters = list(self._waiters.get(chat_id, ()))
        for loop, wakeup in waiters:
            try:
                loop.call_soon_threadsafe(wakeup.set)
            except RuntimeError:
                # Subscriber's loop already closed
                continue
        logger.debug(f"Title published for chat {chat_id} to {len(waiters)} subscriber(s)")
        return len(waiters)

    def subscriber_count(self, chat_id: int) -> int:
        with self._lock:
            return len(self._waiters.get(chat_id, ()))


title_notifier = TitleNotifier()


def _read_title(chat_id: int) -> Optional[str]:
    with SessionLocal() as db:
        return ChatStorage(db).get_title(chat_id)


async def title_events(
    chat_id: int,
    poll_interval: float,
    timeout: float,
    notifier: TitleNotifier = title_notifier,
    read_title: Callable[[int], Optional[str]] = _read_title,
) -> AsyncIterator[str]:
    """
    Yield the SSE frames of one title subscription.

    Emits a title-update event with {"title": ...} as soon as the title is
    not the sentinel, then the end marker. A timeout or a deleted chat
    yields only the end marker.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    with notifier.subscribe(chat_id) as wakeup:
        while True:
            title = await run_in_threadpool(read_title, chat_id)
            if title is None:
                logger.info(f"Title stream for chat {chat_id} closed: chat no longer exists")
                break
            if title != UNTITLED:
                yield format_sse(json.dumps({"title": title}, ensure_ascii=False), TITLE_EVENT)
                break

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info(f"Title stream for chat {chat_id} timed out after {timeout}s")
                break

            try:
                await asyncio.wait_for(wakeup.wait(), timeout=min(poll_interval, remaining))
            except asyncio.TimeoutError:
                pass
            wakeup.clear()

    yield format_sse(END_MARKER, TITLE_EVENT)
