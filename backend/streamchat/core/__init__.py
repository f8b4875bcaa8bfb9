"""Core module - the streaming chat pipeline."""

from .title_channel import TitleNotifier, title_notifier, title_events, format_sse
from .title_generator import TitleGenerator, truncate_title
from .stream_coordinator import StreamCoordinator

__all__ = [
    'TitleNotifier', 'title_notifier', 'title_events', 'format_sse',
    'TitleGenerator', 'truncate_title', 'StreamCoordinator',
]
