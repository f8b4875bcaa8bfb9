"""
Minimal server-sent events reader over an httpx response.
"""

from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import httpx


@dataclass
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: Optional[str] = None


async def iter_sse(response: httpx.Response) -> AsyncIterator[ServerSentEvent]:
    """Yield events as blank-line-terminated blocks arrive."""
    event: Optional[str] = None
    event_id: Optional[str] = None
    data: List[str] = []

    async for line in response.aiter_lines():
        if not line:
            if data or event:
                yield ServerSentEvent(event=event or "message", data="\n".join(data), id=event_id)
            event, event_id, data = None, None, []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
        elif field == "id":
            event_id = value

    if data or event:
        yield ServerSentEvent(event=event or "message", data="\n".join(data), id=event_id)
