"""
Title Generator - derives a short chat title from the first prompt.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..llm import CompletionGateway, LLMMessage, UPSTREAM_ERROR_TEXT
from ..storage import ChatStorage, SessionLocal, UNTITLED
from .title_channel import TitleNotifier, title_notifier

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
ELLIPSIS = "..."
FALLBACK_TITLE = "New Chat"

TITLE_SYSTEM_PROMPT = (
    "You create titles for a chat history list. Produce a concise title of at most "
    f"{TITLE_MAX_LENGTH} characters that summarizes the user's first message. "
    "Answer with plain text only: no quotes, no punctuation at the end, no explanation."
)


def truncate_title(text: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Fit text into max_length, ending in an ellipsis when cut."""
    text = " ".join(text.split())
    if len(text) <= max_length:
        return text
    return text[:max_length - len(ELLIPSIS)].rstrip() + ELLIPSIS


def fallback_title(prompt: str) -> str:
    """Title derived from the prompt itself, never the sentinel."""
    title = truncate_title(prompt)
    if not title or title == UNTITLED:
        return FALLBACK_TITLE
    return title


def clean_title(raw: str) -> str:
    """Strip whitespace and any quoting the model wrapped around the title."""
    title = raw.strip().splitlines()[0].strip() if raw.strip() else ""
    return title.strip("\"'`“”‘’ ").strip()


class TitleGenerator:
    """
    Computes and stores a chat title, then notifies title subscribers.

    Once a chat has a prompt, generate() always leaves a non-sentinel
    title: a failed or empty completion falls back to the truncated prompt.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        session_factory: Callable[[], Session] = SessionLocal,
        notifier: TitleNotifier = title_notifier,
        max_output_tokens: int = 20,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.notifier = notifier
        self.max_output_tokens = max_output_tokens

    def _first_prompt(self, chat_id: int) -> Optional[str]:
        with self.session_factory() as db:
            return ChatStorage(db).first_prompt(chat_id)

    def _current_title(self, chat_id: int) -> Optional[str]:
        with self.session_factory() as db:
            return ChatStorage(db).get_title(chat_id)

    def _store_title(self, chat_id: int, title: str) -> bool:
        with self.session_factory() as db:
            return ChatStorage(db).set_title(chat_id, title)

    async def generate(self, chat_id: int) -> Optional[str]:
        """
        Generate, store and publish the title of a chat.

        Args:
            chat_id: Chat to title

        Returns:
            The stored title, or None when the chat has no prompt or is gone
        """
        prompt = await run_in_threadpool(self._first_prompt, chat_id)
        if prompt is None:
            logger.debug(f"Chat {chat_id} has no prompt yet, skipping title generation")
            return None

        try:
            raw = await self.gateway.complete(
                [LLMMessage.text("user", prompt)],
                system_prompt=TITLE_SYSTEM_PROMPT,
                max_output_tokens=self.max_output_tokens,
            )
        except Exception as e:
            logger.error(f"Title completion raised for chat {chat_id}: {e}", exc_info=True)
            raw = UPSTREAM_ERROR_TEXT
        title = truncate_title(clean_title(raw or "")) if raw != UPSTREAM_ERROR_TEXT else ""
        if not title or title == UNTITLED:
            logger.warning(f"Title generation failed for chat {chat_id}, using prompt fallback")
            title = fallback_title(prompt)

        stored = await run_in_threadpool(self._store_title, chat_id, title)
        if not stored:
            logger.info(f"Chat {chat_id} deleted before its title was stored")
            return None

        logger.info(f"Title generated for chat {chat_id}: {title!r}")
        self.notifier.publish(chat_id, title)
        return title

    async def generate_if_untitled(self, chat_id: int) -> Optional[str]:
        """Run generate() only while the chat still has the sentinel title."""
        current = await run_in_threadpool(self._current_title, chat_id)
        if current != UNTITLED:
            return None
        return await self.generate(chat_id)
