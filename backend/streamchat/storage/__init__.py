"""Storage module - database engine, tables and repositories."""

from .database import Base, SessionLocal, engine, get_db, init_db
from .tables import UNTITLED, MessageType, UserRecord, ChatRecord, MessageRecord
from .chat_storage import ChatStorage
from .user_storage import UserStorage

__all__ = [
    'Base', 'SessionLocal', 'engine', 'get_db', 'init_db',
    'UNTITLED', 'MessageType', 'UserRecord', 'ChatRecord', 'MessageRecord',
    'ChatStorage', 'UserStorage',
]
