"""Models module."""

from .user import User, UserCreate, Token, TokenData
from .chat import (
    Turn, StreamRequest, ChatCreate, ChatUpdate,
    MessageOut, ChatSummary, ChatDetail,
)

__all__ = [
    'User', 'UserCreate', 'Token', 'TokenData',
    'Turn', 'StreamRequest', 'ChatCreate', 'ChatUpdate',
    'MessageOut', 'ChatSummary', 'ChatDetail',
]
