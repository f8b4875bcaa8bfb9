"""
Chat history endpoints - the index page data and the sidebar listing.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..models import ChatDetail, ChatSummary
from ..storage import ChatStorage, get_db
from ..utils.auth import get_optional_user_id
from .chat import to_chat_detail

router = APIRouter(tags=["history"])


@router.get("/")
def index(
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
):
    """
    Chats of the current user with their messages, latest first.
    Anonymous callers get an empty list and chat without persistence.
    """
    if user_id is None:
        return {"chats": [], "authenticated": False}

    chats = ChatStorage(db)
    details: List[ChatDetail] = [to_chat_detail(chats, chat) for chat in chats.list_chats(user_id)]
    return {"chats": details, "authenticated": True}


@router.get("/api/chats", response_model=List[ChatSummary])
def list_chats(
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
):
    """Lightweight chat list for the sidebar; empty for anonymous callers."""
    if user_id is None:
        return []
    return ChatStorage(db).list_chats(user_id)
