"""Client module - consumes the streaming chat API from Python."""

from .events import CHAT_TITLE_UPDATED, EventBus, default_bus
from .cache import ChatList, ChatListCache
from .consumer import ChatStreamConsumer, ConsumerState
from .sse import ServerSentEvent, iter_sse

__all__ = [
    'CHAT_TITLE_UPDATED', 'EventBus', 'default_bus',
    'ChatList', 'ChatListCache',
    'ChatStreamConsumer', 'ConsumerState',
    'ServerSentEvent', 'iter_sse',
]
