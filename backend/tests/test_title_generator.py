"""
Tests for title generation and the title notification channel.
"""

import asyncio
import json
import threading

import pytest
from unittest.mock import AsyncMock

from streamchat.core.title_channel import (
    END_MARKER, TITLE_EVENT, TitleNotifier, format_sse, title_events,
)
from streamchat.core.title_generator import (
    FALLBACK_TITLE, TitleGenerator, clean_title, fallback_title, truncate_title,
)
from streamchat.llm import CompletionGateway, StubCompletionGateway, UPSTREAM_ERROR_TEXT
from streamchat.storage import ChatStorage, MessageType, SessionLocal, UNTITLED

LONG_PROMPT = "This is a very long message that should be truncated for the title"


def make_chat(prompt=None, title=None) -> int:
    with SessionLocal() as db:
        chats = ChatStorage(db)
        chat = chats.create_chat(None, title=title)
        if prompt is not None:
            chats.add_message(chat.id, MessageType.prompt, prompt)
        return chat.id


def title_of(chat_id: int) -> str:
    with SessionLocal() as db:
        return ChatStorage(db).get_title(chat_id)


async def collect(iterator):
    return [item async for item in iterator]


class TestTitleHelpers:

    def test_truncate_short_text_unchanged(self):
        assert truncate_title("Hello there") == "Hello there"

    def test_truncate_long_text(self):
        title = truncate_title(LONG_PROMPT)
        assert len(title) <= 50
        assert title.endswith("...")
        assert title.startswith("This is a very long message that should be")

    def test_truncate_collapses_whitespace(self):
        assert truncate_title("  two\n\nlines  ") == "two lines"

    def test_clean_title_strips_quotes(self):
        assert clean_title('  "Quantum Basics"\n') == "Quantum Basics"
        assert clean_title("“Trip to Rome”") == "Trip to Rome"

    def test_clean_title_keeps_first_line(self):
        assert clean_title("Title\nExplanation of the title") == "Title"

    def test_clean_title_blank(self):
        assert clean_title("   ") == ""

    def test_fallback_never_sentinel(self):
        assert fallback_title("   ") == FALLBACK_TITLE
        assert fallback_title(UNTITLED) == FALLBACK_TITLE
        assert fallback_title("Plan my week") == "Plan my week"


class TestTitleGenerator:

    @pytest.mark.asyncio
    async def test_generate_stores_cleaned_title(self):
        chat_id = make_chat(prompt="Explain quantum computing")
        generator = TitleGenerator(StubCompletionGateway(reply='"Quantum Computing Basics"'))

        title = await generator.generate(chat_id)

        assert title == "Quantum Computing Basics"
        assert title_of(chat_id) == "Quantum Computing Basics"

    @pytest.mark.asyncio
    async def test_generate_sends_prompt_with_system_instruction(self):
        chat_id = make_chat(prompt="Explain quantum computing")
        gateway = StubCompletionGateway(reply="Quantum")

        await TitleGenerator(gateway, max_output_tokens=20).generate(chat_id)

        messages = gateway.calls[-1]
        assert messages[0].role == "system"
        assert "50 characters" in messages[0].content
        assert messages[1].role == "user"
        assert messages[1].content == "Explain quantum computing"

    @pytest.mark.asyncio
    async def test_generate_truncates_long_completion(self):
        chat_id = make_chat(prompt="hi")
        generator = TitleGenerator(StubCompletionGateway(reply="word " * 30))

        title = await generator.generate(chat_id)

        assert len(title) == 50
        assert title.endswith("...")

    @pytest.mark.asyncio
    async def test_upstream_error_falls_back_to_prompt(self):
        chat_id = make_chat(prompt=LONG_PROMPT)
        generator = TitleGenerator(StubCompletionGateway(reply=UPSTREAM_ERROR_TEXT))

        title = await generator.generate(chat_id)

        assert title == LONG_PROMPT[:47] + "..."
        assert title_of(chat_id) == title

    @pytest.mark.asyncio
    async def test_raising_gateway_falls_back_to_prompt(self):
        chat_id = make_chat(prompt="Short prompt")
        gateway = AsyncMock(spec=CompletionGateway)
        gateway.complete.side_effect = RuntimeError("boom")

        assert await TitleGenerator(gateway).generate(chat_id) == "Short prompt"

    @pytest.mark.asyncio
    async def test_empty_completion_falls_back_to_prompt(self):
        chat_id = make_chat(prompt="Recipe ideas")
        assert await TitleGenerator(StubCompletionGateway(reply="  ")).generate(chat_id) == "Recipe ideas"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", [
        "a",
        "Hello",
        LONG_PROMPT,
        "x" * 500,
        "Untitled",
        "   spaced   out   ",
        "Ünïcødé prompt with émojis 🎉 " * 3,
    ])
    @pytest.mark.parametrize("reply", ["Good title", UPSTREAM_ERROR_TEXT, "", "Untitled", "y" * 80])
    async def test_title_always_leaves_sentinel(self, prompt, reply):
        chat_id = make_chat(prompt=prompt)

        await TitleGenerator(StubCompletionGateway(reply=reply)).generate(chat_id)

        stored = title_of(chat_id)
        assert stored != UNTITLED
        assert 0 < len(stored) <= 50

    @pytest.mark.asyncio
    async def test_chat_without_prompt_is_left_untitled(self):
        chat_id = make_chat()
        gateway = StubCompletionGateway()

        assert await TitleGenerator(gateway).generate(chat_id) is None
        assert title_of(chat_id) == UNTITLED
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_only_prompts_are_used(self):
        with SessionLocal() as db:
            chats = ChatStorage(db)
            chat_id = chats.create_chat(None).id
            chats.add_message(chat_id, MessageType.response, "assistant spoke first")
            chats.add_message(chat_id, MessageType.prompt, "first question")
            chats.add_message(chat_id, MessageType.prompt, "second question")
        gateway = StubCompletionGateway(reply=UPSTREAM_ERROR_TEXT)

        assert await TitleGenerator(gateway).generate(chat_id) == "first question"

    @pytest.mark.asyncio
    async def test_generate_if_untitled_skips_titled_chat(self):
        chat_id = make_chat(prompt="hello", title="Named by user")
        gateway = StubCompletionGateway()

        assert await TitleGenerator(gateway).generate_if_untitled(chat_id) is None
        assert title_of(chat_id) == "Named by user"
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_generate_publishes_to_notifier(self):
        chat_id = make_chat(prompt="hello")
        notifier = TitleNotifier()
        generator = TitleGenerator(StubCompletionGateway(reply="Greeting"), notifier=notifier)

        with notifier.subscribe(chat_id) as wakeup:
            await generator.generate(chat_id)
            await asyncio.wait_for(wakeup.wait(), timeout=1.0)
            assert wakeup.is_set()

        assert notifier.subscriber_count(chat_id) == 0


class TestTitleChannel:

    def test_format_sse(self):
        assert format_sse("hello", "title-update") == "event: title-update\ndata: hello\n\n"
        assert format_sse("a\nb") == "data: a\ndata: b\n\n"

    @pytest.mark.asyncio
    async def test_existing_title_is_emitted_immediately(self):
        frames = await collect(title_events(
            1, poll_interval=10.0, timeout=10.0, read_title=lambda chat_id: "Ready",
        ))
        assert frames == [
            format_sse(json.dumps({"title": "Ready"}), TITLE_EVENT),
            format_sse(END_MARKER, TITLE_EVENT),
        ]

    @pytest.mark.asyncio
    async def test_timeout_closes_with_end_marker_only(self):
        loop = asyncio.get_running_loop()
        started = loop.time()

        frames = await collect(title_events(
            1, poll_interval=0.02, timeout=0.1, read_title=lambda chat_id: UNTITLED,
        ))

        assert frames == [format_sse(END_MARKER, TITLE_EVENT)]
        assert loop.time() - started >= 0.1

    @pytest.mark.asyncio
    async def test_polling_picks_up_title_change(self):
        reads = []

        def read_title(chat_id):
            reads.append(chat_id)
            return "Later" if len(reads) >= 3 else UNTITLED

        frames = await collect(title_events(
            7, poll_interval=0.01, timeout=5.0, read_title=read_title,
        ))

        assert json.loads(frames[0].split("data: ", 1)[1]) == {"title": "Later"}
        assert len(frames) == 2

    @pytest.mark.asyncio
    async def test_publish_wakes_subscriber_before_poll_interval(self):
        notifier = TitleNotifier()
        state = {"title": UNTITLED}
        loop = asyncio.get_running_loop()

        async def publish_soon():
            await asyncio.sleep(0.05)
            state["title"] = "Pushed"
            notifier.publish(3, "Pushed")

        started = loop.time()
        publisher = asyncio.create_task(publish_soon())
        frames = await collect(title_events(
            3, poll_interval=30.0, timeout=60.0, notifier=notifier,
            read_title=lambda chat_id: state["title"],
        ))
        await publisher

        assert '"Pushed"' in frames[0]
        assert loop.time() - started < 5.0

    @pytest.mark.asyncio
    async def test_deleted_chat_closes_channel(self):
        frames = await collect(title_events(
            1, poll_interval=0.01, timeout=5.0, read_title=lambda chat_id: None,
        ))
        assert frames == [format_sse(END_MARKER, TITLE_EVENT)]

    @pytest.mark.asyncio
    async def test_title_reads_run_off_the_event_loop_thread(self):
        loop_thread = threading.get_ident()
        reader_threads = []

        def read_title(chat_id):
            reader_threads.append(threading.get_ident())
            return "Done" if len(reader_threads) >= 2 else UNTITLED

        await collect(title_events(1, poll_interval=0.01, timeout=5.0, read_title=read_title))

        assert len(reader_threads) == 2
        assert loop_thread not in reader_threads
