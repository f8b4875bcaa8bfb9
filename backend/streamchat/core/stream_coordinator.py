"""
Stream Coordinator - one streamed completion request end to end.

Persists the unsaved incoming turns of an owned chat, relays gateway
fragments to the client as they arrive, stores the assembled response and
schedules title generation to run after the response is closed.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional

from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from ..llm import CompletionGateway, LLMMessage
from ..models import Turn
from ..storage import ChatStorage, MessageType, SessionLocal
from .logging_config import LoggerAdapter
from .title_generator import TitleGenerator

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def to_llm_messages(turns: List[Turn]) -> List[LLMMessage]:
    """Map chat turns onto model roles: prompts are user turns, the rest assistant."""
    return [
        LLMMessage.text("user" if turn.type == MessageType.prompt else "assistant", turn.content)
        for turn in turns
    ]



class StreamCoordinator:
    """Handles a single streaming request against an optional chat."""

    def __init__(
        self,
        gateway: CompletionGateway,
        title_generator: Optional[TitleGenerator] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.title_generator = title_generator or TitleGenerator(
            gateway, session_factory=session_factory
        )

    def _persist_turns(self, chat_id: int, turns: List[Turn]) -> int:
        with self.session_factory() as db:
            return ChatStorage(db).append_unsaved_turns(chat_id, turns)

    def _persist_response(self, chat_id: int, content: str) -> None:
        with self.session_factory() as db:
            ChatStorage(db).add_message(chat_id, MessageType.response, content)

    async def stream(
        self,
        turns: List[Turn],
        chat_id: Optional[int] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> AsyncIterator[str]:
        """
        Yield response fragments for the given turns.

        Args:
            turns: Ordered conversation, possibly with already persisted turns
            chat_id: Owned chat to persist into; None streams without persisting
            on_complete: Called once the upstream is exhausted and the reply stored
        """
        log = LoggerAdapter(logger, {"chat_id": chat_id})
        if not turns:
            log.debug("Empty turn list, closing stream without a body")
            return

        if chat_id is not None:
            written = await run_in_threadpool(self._persist_turns, chat_id, turns)
            log.info(f"Persisted {written} incoming turn(s)")

        fragments: List[str] = []
        try:
            async for fragment in self.gateway.complete_streaming(to_llm_messages(turns)):
                fragments.append(fragment)
                yield fragment
        except (GeneratorExit, asyncio.CancelledError):
            # Client went away; nothing is stored for an abandoned stream
            log.info(f"Client disconnected after {len(fragments)} fragment(s)")
            raise

        full_response = "".join(fragments)
        if chat_id is not None and full_response:
            await run_in_threadpool(self._persist_response, chat_id, full_response)
        log.info(
            "Stream completed",
            extra={"extra_fields": {"fragments": len(fragments), "content_length": len(full_response)}},
        )
        if on_complete:
            on_complete()

    async def _title_after_completion(self, chat_id: int, completed: asyncio.Event) -> None:
        if not completed.is_set():
            logger.info(f"Stream for chat {chat_id} was abandoned, skipping title generation")
            return
        await self.title_generator.generate_if_untitled(chat_id)

    def handle_stream(self, turns: List[Turn], chat_id: Optional[int] = None) -> StreamingResponse:
        """
        Build the event-stream response for a request.

        Title generation for an owned chat is attached as a background task.
        Starlette runs it after the body is closed, also when the client
        disconnected, so it only proceeds once the stream has completed.
        """
        completed = asyncio.Event()
        background = None
        if chat_id is not None and turns:
            background = BackgroundTask(self._title_after_completion, chat_id, completed)

        return StreamingResponse(
            self.stream(turns, chat_id, on_complete=completed.set),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
            background=background,
        )
