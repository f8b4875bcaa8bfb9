"""
Tests for the Python client: stream consumer, chat list cache and event bus.
Runs against the app in-process through httpx's ASGI transport.
"""

import httpx
import pytest

from streamchat.client import (
    CHAT_TITLE_UPDATED,
    ChatList,
    ChatListCache,
    ChatStreamConsumer,
    ConsumerState,
    EventBus,
    iter_sse,
)
from streamchat.llm import STUB_RESPONSE_TEXT, StubCompletionGateway
from streamchat.main import app


def api_client(headers=None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        headers=headers or {},
    )


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestEventBus:

    def test_publish_reaches_subscribers(self):
        bus = EventBus()
        seen = []
        bus.subscribe(CHAT_TITLE_UPDATED, lambda **payload: seen.append(payload))

        assert bus.publish(CHAT_TITLE_UPDATED, chat_id=1, title="T") == 1
        assert seen == [{"chat_id": 1, "title": "T"}]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe("evt", lambda **payload: seen.append(payload))
        unsubscribe()
        unsubscribe()

        assert bus.publish("evt") == 0
        assert seen == []

    def test_failing_listener_does_not_stop_others(self):
        bus = EventBus()
        seen = []

        def broken(**payload):
            raise ValueError("boom")

        bus.subscribe("evt", broken)
        bus.subscribe("evt", lambda **payload: seen.append(payload))

        assert bus.publish("evt", x=1) == 2
        assert seen == [{"x": 1}]


class TestChatListCache:

    def test_freshness_window(self):
        clock = FakeClock()
        cache = ChatListCache(max_age=5.0, clock=clock)
        assert not cache.is_fresh()

        cache.store([{"id": 1, "title": "a"}])
        assert cache.is_fresh()

        clock.now += 5.0
        assert not cache.is_fresh()

    def test_invalidate_and_remove(self):
        cache = ChatListCache(clock=FakeClock())
        cache.store([{"id": 1, "title": "a"}, {"id": 2, "title": "b"}])

        cache.remove(1)
        cache.invalidate()

        assert [chat["id"] for chat in cache.data] == [2]
        assert not cache.is_fresh()

    def test_apply_title(self):
        cache = ChatListCache()
        cache.store([{"id": 1, "title": "Untitled"}])

        assert cache.apply_title(1, "Named")
        assert not cache.apply_title(2, "Other")
        assert cache.data[0]["title"] == "Named"


class TestIterSSE:

    @pytest.mark.asyncio
    async def test_parses_events(self):
        body = (
            b": keep-alive\n\n"
            b"event: title-update\ndata: {\"title\": \"A\"}\n\n"
            b"data: line one\ndata: line two\nid: 7\n\n"
            b"event: title-update\ndata: </stream>"
        )
        response = httpx.Response(200, content=body)

        events = [event async for event in iter_sse(response)]

        assert [(e.event, e.data) for e in events] == [
            ("title-update", '{"title": "A"}'),
            ("message", "line one\nline two"),
            ("title-update", "</stream>"),
        ]
        assert events[1].id == "7"


class TestChatStreamConsumer:

    @pytest.mark.asyncio
    async def test_anonymous_submit(self, message_count):
        states = []
        fragments = []
        async with api_client() as http:
            consumer = ChatStreamConsumer(http, on_fragment=fragments.append, on_state=states.append)

            reply = await consumer.submit("Hello")

        assert reply == STUB_RESPONSE_TEXT
        assert "".join(fragments) == STUB_RESPONSE_TEXT
        assert states == [ConsumerState.sending, ConsumerState.streaming, ConsumerState.idle]
        assert [m["type"] for m in consumer.messages] == ["prompt", "response"]
        assert consumer.title == "Untitled"
        assert message_count() == 0

    @pytest.mark.asyncio
    async def test_blank_input_is_ignored(self):
        async with api_client() as http:
            consumer = ChatStreamConsumer(http)
            assert await consumer.submit("   ") is None
        assert consumer.messages == []
        assert consumer.state == ConsumerState.idle

    @pytest.mark.asyncio
    async def test_submit_while_busy_is_rejected(self):
        async with api_client() as http:
            consumer = ChatStreamConsumer(http)
            consumer.state = ConsumerState.streaming
            with pytest.raises(RuntimeError):
                await consumer.submit("again")

    @pytest.mark.asyncio
    async def test_first_message_flow(self, auth_headers, use_gateway, message_count):
        use_gateway(StubCompletionGateway(fragments=["Sure, ", "here you go"], reply="Weekly Plan"))
        bus = EventBus()
        titles = []
        bus.subscribe(CHAT_TITLE_UPDATED, lambda chat_id, title: titles.append((chat_id, title)))
        states = []

        async with api_client(auth_headers) as http:
            chat_list = ChatList(http, cache=ChatListCache(clock=FakeClock()), bus=bus)
            chat_id = await chat_list.create(first_message="Plan my week")
            listed = await chat_list.fetch()
            assert listed[0]["title"] == "Untitled"

            consumer = ChatStreamConsumer(http, bus=bus, on_state=states.append)
            reply = await consumer.open(chat_id)

            assert reply == "Sure, here you go"
            assert consumer.title == "Weekly Plan"
            assert titles == [(chat_id, "Weekly Plan")]
            assert chat_list.chats[0]["title"] == "Weekly Plan"
            assert all(m.get("id") for m in consumer.messages)
            assert states == [
                ConsumerState.sending,
                ConsumerState.streaming,
                ConsumerState.idle,
                ConsumerState.title_pending,
                ConsumerState.idle,
            ]

            await consumer.submit("Add a gym day")
            chat_list.close()

        assert message_count(chat_id=chat_id) == 4
        assert [m["content"] for m in consumer.messages] == [
            "Plan my week", "Sure, here you go", "Add a gym day", "Sure, here you go",
        ]

    @pytest.mark.asyncio
    async def test_open_without_pending_prompt_does_not_stream(self, auth_headers, use_gateway):
        gateway = use_gateway(StubCompletionGateway())
        async with api_client(auth_headers) as http:
            chat_id = await ChatList(http, bus=EventBus()).create(title="Empty")
            consumer = ChatStreamConsumer(http)

            assert await consumer.open(chat_id) is None

        assert consumer.title == "Empty"
        assert consumer.messages == []
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_titled_chat_skips_title_channel(self, auth_headers):
        states = []
        async with api_client(auth_headers) as http:
            chat_id = await ChatList(http, bus=EventBus()).create(title="Named")
            consumer = ChatStreamConsumer(http, on_state=states.append)
            await consumer.open(chat_id)
            await consumer.submit("hello")

        assert ConsumerState.title_pending not in states
        assert consumer.title == "Named"


class TestChatList:

    @pytest.mark.asyncio
    async def test_anonymous_list_is_empty(self):
        async with api_client() as http:
            chat_list = ChatList(http, bus=EventBus(), authenticated=False)
            assert await chat_list.fetch() == []

    @pytest.mark.asyncio
    async def test_fetch_uses_cache_until_stale(self, auth_headers):
        clock = FakeClock()
        async with api_client(auth_headers) as http:
            chat_list = ChatList(http, cache=ChatListCache(max_age=5.0, clock=clock), bus=EventBus())
            await chat_list.create(title="one")
            assert len(await chat_list.fetch()) == 1

            await ChatList(http, bus=EventBus()).create(title="two")
            assert len(await chat_list.fetch()) == 1

            clock.now += 10
            assert len(await chat_list.fetch()) == 2

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, auth_headers):
        async with api_client(auth_headers) as http:
            chat_list = ChatList(http, cache=ChatListCache(clock=FakeClock()), bus=EventBus())
            first = await chat_list.create(title="first")
            second = await chat_list.create(title="second")
            await chat_list.fetch()

            await chat_list.rename(first, "renamed")
            assert {c["id"]: c["title"] for c in chat_list.chats}[first] == "renamed"

            await chat_list.delete(second)
            assert [c["id"] for c in chat_list.chats] == [first]
            assert [c["id"] for c in await chat_list.fetch()] == [first]

    @pytest.mark.asyncio
    async def test_title_event_for_unknown_chat_invalidates(self, auth_headers):
        bus = EventBus()
        async with api_client(auth_headers) as http:
            chat_list = ChatList(http, cache=ChatListCache(clock=FakeClock()), bus=bus)
            await chat_list.fetch()
            assert chat_list.cache.is_fresh()

            bus.publish(CHAT_TITLE_UPDATED, chat_id=12345, title="Elsewhere")

            assert not chat_list.cache.is_fresh()
            chat_list.close()
