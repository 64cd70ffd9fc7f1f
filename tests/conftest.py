import json
import pytest
from typing import Any, Dict, List, Optional
from types import SimpleNamespace

import httpx

from jarvis_agent.config import GatewaySettings
from jarvis_agent.core.errors import TransportError
from jarvis_agent.core.gateway import ModelGateway
from jarvis_agent.core.models import ChunkType, StreamChunk
from jarvis_agent.tools.registry import ToolRegistry


# --- SSE helpers for the wire-level gateway tests ---

def content_event(text: str) -> Dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": None}]}

def tool_delta(index: int, call_id: Optional[str] = None, name: Optional[str] = None, args: Optional[str] = None) -> Dict[str, Any]:
    fn = {}
    if name is not None: fn["name"] = name
    if args is not None: fn["arguments"] = args
    tc = {"index": index, "function": fn}
    if call_id: tc["id"] = call_id
    return {"choices": [{"index": 0, "delta": {"tool_calls": [tc]}, "finish_reason": None}]}

def finish_event(reason: str = "stop") -> Dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {}, "finish_reason": reason}]}

def sse_response(*events: Dict[str, Any]) -> httpx.Response:
    body = "".join(f"data: {json.dumps(e)}\n\n" for e in events) + "data: [DONE]\n\n"
    return httpx.Response(200, content=body.encode("utf-8"), headers={"content-type": "text/event-stream"})


@pytest.fixture
def settings():
    return GatewaySettings(api_key="test-key", base_url="https://llm.test/v1")

@pytest.fixture
def sse():
    return sse_response

@pytest.fixture
def events():
    return SimpleNamespace(content=content_event, tool=tool_delta, finish=finish_event)

@pytest.fixture
def make_gateway(settings):
    """Builds a real ModelGateway whose HTTP traffic goes to `handler`."""
    def _make(handler):
        client = httpx.AsyncClient(base_url=settings.base_url, transport=httpx.MockTransport(handler))
        return ModelGateway(settings, http_client=client)
    return _make


# --- Scripted gateway for orchestrator / assistant tests ---

class ScriptedGateway:
    """
    Stands in for ModelGateway.stream: each call replays the next scripted
    turn (a list of chunks, or an exception to raise). The last turn repeats.
    """

    def __init__(self, turns: List[Any]):
        self.turns = turns
        self.calls = 0
        self.closed = 0
        self.requests = []
        self.transcribe_result = "hello there"

    async def stream(self, request, override_model=None):
        self.requests.append(request.model_copy(update={"messages": list(request.messages)}))
        turn = self.turns[min(self.calls, len(self.turns) - 1)]
        self.calls += 1
        if isinstance(turn, Exception):
            raise turn
        try:
            for chunk in turn:
                yield chunk
            yield StreamChunk(type=ChunkType.DONE, model="scripted-model")
        finally:
            self.closed += 1

    async def transcribe(self, audio, language="en", filename="audio.webm"):
        return self.transcribe_result

    async def close(self):
        pass


def text_turn(*parts: str) -> List[StreamChunk]:
    return [StreamChunk(type=ChunkType.CONTENT, content=p) for p in parts]

def tool_turn(*calls, text: str = "") -> List[StreamChunk]:
    chunks = text_turn(text) if text else []
    for i, call in enumerate(calls):
        name, args = call[0], call[1]
        error = call[2] if len(call) > 2 else None
        chunks.append(StreamChunk(
            type=ChunkType.TOOL_CALL, tool=name, arguments=None if error else args,
            id=f"call_{name}_{i}", error=error,
        ))
    return chunks


@pytest.fixture
def scripted():
    return SimpleNamespace(gateway=ScriptedGateway, text=text_turn, tools=tool_turn)

@pytest.fixture
def transport_error():
    return TransportError("upstream unavailable", model="scripted-model", status=503)

@pytest.fixture
def registry():
    reg = ToolRegistry()
    return reg

