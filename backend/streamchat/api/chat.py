"""
Chat API endpoints - chat registry, completion streaming and title updates.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse, StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..config import settings
from ..core import StreamCoordinator, TitleGenerator, title_events
from ..core.stream_coordinator import STREAM_HEADERS
from ..llm import CompletionGateway, create_completion_gateway
from ..models import ChatCreate, ChatDetail, ChatSummary, ChatUpdate, MessageOut, StreamRequest
from ..storage import ChatRecord, ChatStorage, MessageType, get_db
from ..utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def get_completion_gateway() -> CompletionGateway:
    """Gateway for the current configuration (stub without an API key)."""
    return create_completion_gateway(settings)


def get_stream_coordinator(
    gateway: CompletionGateway = Depends(get_completion_gateway),
) -> StreamCoordinator:
    return StreamCoordinator(
        gateway,
        TitleGenerator(gateway, max_output_tokens=settings.title_max_tokens),
    )


def get_owned_chat(chats: ChatStorage, chat_id: int, user_id: str) -> ChatRecord:
    """
    Load a chat the caller owns.

    Raises:
        HTTPException: 404 if the chat does not exist, 403 if it belongs to someone else
    """
    chat = chats.get_chat(chat_id)
    if chat is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if chat.user_id != user_id:
        logger.warning(f"User {user_id} denied access to chat {chat_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This action is unauthorized.")
    return chat


def to_chat_detail(chats: ChatStorage, chat: ChatRecord) -> ChatDetail:
    messages = [MessageOut.model_validate(m) for m in chats.list_messages(chat.id)]
    return ChatDetail(
        id=chat.id,
        title=chat.title,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        messages=messages,
        # A chat created with a first message still awaits its first reply
        auto_stream=len(messages) == 1 and messages[0].type == MessageType.prompt,
    )


@router.post("", status_code=status.HTTP_303_SEE_OTHER)
def create_chat(
    body: ChatCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Create a chat, optionally seeded with its first prompt.

    Returns:
        Redirect to the new chat; a seeded chat reports auto_stream=true there
    """
    chats = ChatStorage(db)
    chat = chats.create_chat(user_id, title=body.title)
    if body.first_message:
        chats.add_message(chat.id, MessageType.prompt, body.first_message)
    return RedirectResponse(url=f"/chat/{chat.id}", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/stream")
async def stream_anonymous(
    body: StreamRequest,
    coordinator: StreamCoordinator = Depends(get_stream_coordinator),
):
    """Stream a completion without persisting anything."""
    return coordinator.handle_stream(body.messages)


@router.get("/{chat_id}", response_model=ChatDetail)
def show_chat(
    chat_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Chat with its full ordered history."""
    chats = ChatStorage(db)
    chat = get_owned_chat(chats, chat_id, user_id)
    return to_chat_detail(chats, chat)


@router.patch("/{chat_id}", response_model=ChatSummary)
def rename_chat(
    chat_id: int,
    body: ChatUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    chats = ChatStorage(db)
    get_owned_chat(chats, chat_id, user_id)
    return chats.rename_chat(chat_id, body.title)


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chat(
    chat_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Delete a chat and all of its messages."""
    chats = ChatStorage(db)
    get_owned_chat(chats, chat_id, user_id)
    chats.delete_chat(chat_id)


@router.post("/{chat_id}/stream")
async def stream_chat(
    chat_id: int,
    body: StreamRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    coordinator: StreamCoordinator = Depends(get_stream_coordinator),
):
    """Stream a completion into an owned chat, persisting new turns and the reply."""
    await run_in_threadpool(get_owned_chat, ChatStorage(db), chat_id, user_id)
    return coordinator.handle_stream(body.messages, chat_id=chat_id)


@router.get("/{chat_id}/title-stream")
async def title_stream(
    chat_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Server-sent title-update events for an owned chat."""
    await run_in_threadpool(get_owned_chat, ChatStorage(db), chat_id, user_id)
    return StreamingResponse(
        title_events(
            chat_id,
            poll_interval=settings.title_poll_interval,
            timeout=settings.title_stream_timeout,
        ),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
