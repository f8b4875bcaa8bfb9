"""API module."""

from .auth import router as auth_router
from .chat import router as chat_router
from .history import router as history_router

__all__ = ['auth_router', 'chat_router', 'history_router']
