"""
Chat Storage - the chat registry and its append-only message store.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from .tables import ChatRecord, MessageRecord, MessageType, UNTITLED

logger = logging.getLogger(__name__)


class ChatStorage:
    """
    Chat and message queries for one database session.

    Messages are only ever appended; a chat's history is ordered by
    creation time, then id.
    """

    def __init__(self, db: Session):
        self.db = db

    # Chats

    def create_chat(self, user_id: Optional[str], title: Optional[str] = None) -> ChatRecord:
        chat = ChatRecord(user_id=user_id, title=title or UNTITLED)
        self.db.add(chat)
        self.db.commit()
        self.db.refresh(chat)
        logger.info(f"Chat created: id={chat.id}, user={user_id}")
        return chat

    def get_chat(self, chat_id: int) -> Optional[ChatRecord]:
        return self.db.get(ChatRecord, chat_id)

    def list_chats(self, user_id: str) -> List[ChatRecord]:
        """Chats of a user, latest first."""
        return (
            self.db.query(ChatRecord)
              .filter(ChatRecord.user_id == user_id)
              .order_by(ChatRecord.created_at.desc(), ChatRecord.id.desc())
              .all()
        )

    def rename_chat(self, chat_id: int, title: str) -> Optional[ChatRecord]:
        chat = self.get_chat(chat_id)
        if chat is None:
            return None
        chat.title = title
        self.db.commit()
        self.db.refresh(chat)
        return chat

    def delete_chat(self, chat_id: int) -> bool:
        """Delete a chat together with all of its messages."""
        chat = self.get_chat(chat_id)
        if chat is None:
            return False
        self.db.delete(chat)
        self.db.commit()
        logger.info(f"Chat deleted: id={chat_id}")
        return True

    def get_title(self, chat_id: int) -> Optional[str]:
        """Current title read straight from the database, None if the chat is gone."""
        return (
            self.db.query(ChatRecord.title)
              .filter(ChatRecord.id == chat_id)
              .scalar()
        )

    def set_title(self, chat_id: int, title: str) -> bool:
        chat = self.get_chat(chat_id)
        if chat is None:
            return False
        chat.title = title
        self.db.commit()
        return True

    # Messages

    def list_messages(self, chat_id: int) -> List[MessageRecord]:
        return (
            self.db.query(MessageRecord)
              .filter(MessageRecord.chat_id == chat_id)
              .order_by(MessageRecord.created_at.asc(), MessageRecord.id.asc())
              .all()
        )

    def add_message(self, chat_id: int, message_type: MessageType, content: str) -> MessageRecord:
        message = MessageRecord(chat_id=chat_id, type=MessageType(message_type), content=content)
        self.db.add(message)
        self._touch(chat_id)
        self.db.commit()
        self.db.refresh(message)
        return message

    def append_unsaved_turns(self, chat_id: int, turns: Iterable) -> int:
        """
        Persist every turn that does not carry an id yet.

        Turns with an id are taken as already stored and skipped. A client
        that drops the id on replay gets a duplicate row.

        Returns:
            int: Number of messages written
        """
        written = 0
        for turn in turns:
            if turn.id is not None:
                continue
            self.db.add(MessageRecord(
                chat_id=chat_id,
                type=MessageType(turn.type),
                content=turn.content,
            ))
            written += 1
        if written:
            self._touch(chat_id)
            self.db.commit()
        return written

    def first_prompt(self, chat_id: int) -> Optional[str]:
        """Text of the earliest prompt in a chat."""
        message = (
            self.db.query(MessageRecord)
              .filter(MessageRecord.chat_id == chat_id,
                      MessageRecord.type == MessageType.prompt)
              .order_by(MessageRecord.created_at.asc(), MessageRecord.id.asc())
              .first()
        )
        return message.content if message else None

    def _touch(self, chat_id: int) -> None:
        chat = self.get_chat(chat_id)
        if chat is not None:
            chat.updated_at = datetime.now(timezone.utc)
