import pytest
from pydantic import ValidationError
from unittest.mock import AsyncMock, MagicMock

from jarvis_agent.core.assistant import Assistant, AssistantStatus, Session, should_use_tools
from jarvis_agent.core.errors import TransportError
from jarvis_agent.core.models import ChunkType, Role
from jarvis_agent.memory.keyword import KeywordMemory
from jarvis_agent.tools.builtin import build_registry


async def collect(agen):
    return [chunk async for chunk in agen]


def statuses(chunks):
    return [c.content for c in chunks if c.type == ChunkType.STATUS and c.content in {s.value for s in AssistantStatus}]


@pytest.fixture
def calc_registry():
    return build_registry(["get_current_time", "calculate"])


@pytest.mark.parametrize("text, expected", [
    ("calculate 2+2", True),
    ("what time is it?", True),
    ("open Safari please", True),
    ("summarise https://example.com", True),
    ("hello there", False),
    ("tell me a joke", False),
])
def test_should_use_tools(text, expected):
    assert should_use_tools(text) is expected


@pytest.mark.asyncio
async def test_plain_chat_streams_without_tools(scripted, calc_registry):
    gateway = scripted.gateway([scripted.text("Hello", "!")])
    assistant = Assistant(gateway, calc_registry)
    session = Session()

    chunks = await collect(assistant.process(session, "hello there"))

    assert statuses(chunks) == ["thinking", "ready"]
    assert "".join(c.content for c in chunks if c.type == ChunkType.CONTENT) == "Hello!"
    assert gateway.requests[0].tools == []
    assert [m.role for m in session.history] == [Role.USER, Role.ASSISTANT]
    assert session.history[-1].content == "Hello!"
    assert session.status == AssistantStatus.READY


@pytest.mark.asyncio
async def test_action_request_goes_through_the_orchestrator(scripted, calc_registry):
    gateway = scripted.gateway([
        scripted.tools(("calculate", {"expression": "2+2"})),
        scripted.text("It's 4."),
    ])
    assistant = Assistant(gateway, calc_registry)
    session = Session()

    chunks = await collect(assistant.process(session, "calculate 2+2"))

    assert statuses(chunks) == ["thinking", "executing", "ready"]
    assert [t.name for t in gateway.requests[0].tools] == ["get_current_time", "calculate"]
    assert any(c.type == ChunkType.TOOL_RESULT and c.content == "2+2 = 4" for c in chunks)
    assert session.history[-1].content == "It's 4."


@pytest.mark.asyncio
async def test_system_prompt_lists_capabilities(scripted, calc_registry):
    gateway = scripted.gateway([scripted.text("hi")])
    assistant = Assistant(gateway, calc_registry)

    await collect(assistant.process(Session(), "hello there"))

    system = gateway.requests[0].messages[0]
    assert system.role == Role.SYSTEM
    assert "- calculate: Perform a mathematical calculation" in system.content
    assert "{{" not in system.content


@pytest.mark.asyncio
async def test_exchanges_are_remembered_and_recalled(scripted, calc_registry, tmp_path):
    memory = KeywordMemory(tmp_path / "memory.json")
    gateway = scripted.gateway([scripted.text("Noted, blue it is.")])
    assistant = Assistant(gateway, calc_registry, memory=memory)
    session = Session()

    await collect(assistant.process(session, "my favourite colour is blue", {"attachments": [{"data": "QUJD"}], "mood": "calm"}))
    await collect(assistant.process(session, "which colour do I like?"))

    assert memory.size == 2
    assert memory.memories[0]["context"] == {"mood": "calm"}
    memory_messages = [m for m in gateway.requests[1].messages if m.role == Role.SYSTEM][1:]
    assert len(memory_messages) == 1
    assert "[Memory] Q: my favourite colour is blue" in memory_messages[0].content


@pytest.mark.asyncio
async def test_attachments_ride_on_the_latest_user_message(scripted, calc_registry):
    gateway = scripted.gateway([scripted.text("A cat.")])
    assistant = Assistant(gateway, calc_registry)
    session = Session()

    await collect(assistant.process(session, "describe this", {"attachments": [{"data": "QUJD"}], "task_type": "vision"}))

    last = gateway.requests[0].messages[-1]
    assert last.role == Role.USER
    assert last.attachments[0].as_url() == "data:image/png;base64,QUJD"
    assert gateway.requests[0].task_hint == "vision"
    assert session.history[0].attachments == []


@pytest.mark.asyncio
async def test_context_window_is_bounded(scripted, calc_registry):
    gateway = scripted.gateway([scripted.text("ok")])
    assistant = Assistant(gateway, calc_registry, max_context_messages=4)
    session = Session()

    for i in range(5):
        await collect(assistant.process(session, f"hello {i}"))

    sent = gateway.requests[-1].messages
    assert len(sent) == 1 + 4
    assert sent[-1].content == "hello 4"


@pytest.mark.asyncio
async def test_transport_failure_reports_error_status(scripted, calc_registry, transport_error):
    gateway = scripted.gateway([transport_error])
    assistant = Assistant(gateway, calc_registry)
    session = Session()
    seen = []

    with pytest.raises(TransportError):
        async for chunk in assistant.process(session, "hello there"):
            seen.append(chunk)

    assert statuses(seen) == ["thinking", "error"]
    assert session.status == AssistantStatus.ERROR


@pytest.mark.asyncio
async def test_process_sync_returns_full_text(scripted, calc_registry):
    gateway = scripted.gateway([scripted.text("Good ", "morning")])
    assistant = Assistant(gateway, calc_registry)

    assert await assistant.process_sync(Session(), "hello there") == "Good morning"


def test_get_status_with_session(scripted, calc_registry):
    assistant = Assistant(scripted.gateway([]), calc_registry)
    session = Session("session_fixed")
    session.message_count = 3

    status = assistant.get_status(session)

    assert status["name"] == "JARVIS"
    assert status["tools"] == 2
    assert status["memory_size"] == 0
    assert status["session_id"] == "session_fixed"
    assert status["message_count"] == 3
    assert status["status"] == "ready"


def test_session_reset_starts_a_new_conversation():
    session = Session()
    old_id = session.session_id
    session.history.append(MagicMock())

    session.reset()

    assert session.history == []
    assert session.session_id != old_id


@pytest.mark.asyncio
async def test_shutdown_releases_resources(calc_registry):
    gateway = MagicMock()
    gateway.close = AsyncMock()
    memory = MagicMock()
    assistant = Assistant(gateway, calc_registry, memory=memory)

    await assistant.shutdown()

    gateway.close.assert_awaited_once()
    memory.close.assert_called_once()
    assert assistant.status == AssistantStatus.OFFLINE
    assert len(calc_registry) == 0


@pytest.mark.parametrize("context", [
    "oops",
    {"attachments": "nope"},
    {"attachments": [{"data": 5}]},
    {"task_type": ["vision"]},
])
@pytest.mark.asyncio
async def test_bad_context_is_rejected_before_streaming(scripted, calc_registry, context):
    gateway = scripted.gateway([scripted.text("never")])
    assistant = Assistant(gateway, calc_registry)
    session = Session()
    seen = []

    with pytest.raises(ValidationError):
        async for chunk in assistant.process(session, "describe this", context):
            seen.append(chunk)

    assert seen == []
    assert gateway.calls == 0
    assert session.history == []
    assert session.message_count == 0


@pytest.mark.asyncio
async def test_abandoned_reply_closes_the_model_stream(scripted, calc_registry):
    gateway = scripted.gateway([scripted.text("one ", "two")])
    assistant = Assistant(gateway, calc_registry)

    stream = assistant.process(Session(), "hello there")
    async for chunk in stream:
        if chunk.type == ChunkType.CONTENT:
            break
    await stream.aclose()

    assert gateway.closed == 1


@pytest.mark.asyncio
async def test_forget_wipes_memory(scripted, calc_registry, tmp_path):
    memory = KeywordMemory(tmp_path / "memory.json")
    assistant = Assistant(scripted.gateway([scripted.text("Noted.")]), calc_registry, memory=memory)
    await collect(assistant.process(Session(), "my favourite colour is blue"))

    assert await assistant.forget() == 1
    assert memory.size == 0
    assert await Assistant(scripted.gateway([]), calc_registry).forget() == 0
