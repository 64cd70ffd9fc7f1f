import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .errors import MalformedToolArguments, TransportError
from .models import (
    ChunkType, CompletionResult, GatewayRequest, Message, Role, StreamChunk,
)
from ..config import GatewaySettings
from ..utils.logging import Icons, pretty_log

logger = logging.getLogger("Jarvis")


class _ToolCallAccumulator:
    """Collects the fragments of one streamed tool call (one per delta index)."""

    def __init__(self, call_id: Optional[str] = None):
        self.id = call_id
        self.name = ""
        self.arguments = ""

    def feed(self, delta: Dict[str, Any]):
        if delta.get("id"):
            self.id = delta["id"]
        fn = delta.get("function") or {}
        if fn.get("name"):
            self.name += str(fn["name"])
        if fn.get("arguments"):
            self.arguments += str(fn["arguments"])

    def finalize(self, model: str) -> StreamChunk:
        try:
            args = json.loads(self.arguments or "{}")
            if not isinstance(args, dict):
                raise ValueError(f"expected a JSON object, got {type(args).__name__}")
        except ValueError as e:
            err = MalformedToolArguments(self.name, self.arguments, str(e))
            pretty_log("Malformed Args", str(err), level="WARN", icon=Icons.WARN)
            return StreamChunk(type=ChunkType.TOOL_CALL, tool=self.name, id=self.id, model=model, error=str(err))
        return StreamChunk(type=ChunkType.TOOL_CALL, tool=self.name, arguments=args, id=self.id, model=model)


def _split_choice(choices: Any, data: str, model: str):
    """First choice and its delta, checked for shape. Anything else is a broken stream."""
    choice = choices[0] if isinstance(choices, list) else None
    delta = None
    if isinstance(choice, dict):
        delta = choice.get("delta")
        if delta is None:
            delta = {}
    tool_deltas = delta.get("tool_calls") if isinstance(delta, dict) else None
    well_formed = isinstance(delta, dict) and (
        tool_deltas is None
        or (isinstance(tool_deltas, list) and all(
            isinstance(tc, dict) and isinstance(tc.get("function") or {}, dict) for tc in tool_deltas
        ))
    )
    if not well_formed:
        raise TransportError(f"Malformed stream choice: {data[:200]}", model=model)
    return choice, delta


class ModelGateway:
    def __init__(self, settings: GatewaySettings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
        self.http_client = http_client or httpx.AsyncClient(
            base_url=settings.base_url,
            headers={"Authorization": f"Bearer {settings.api_key}"},
            timeout=settings.timeout,
            limits=limits,
            follow_redirects=True,
        )

    async def close(self):
        await self.http_client.aclose()

    def select_model(self, task_hint: Optional[str] = None) -> str:
        if task_hint and task_hint in self.settings.routing:
            return self.settings.routing[task_hint]
        return self.settings.default_model

    @staticmethod
    def format_messages(messages: List[Message]) -> List[Dict[str, Any]]:
        formatted = []
        for m in messages:
            out: Dict[str, Any] = {"role": m.role.value, "content": m.content}
            if m.attachments:
                out["content"] = [{"type": "text", "text": m.content}] + [
                    {"type": "image_url", "image_url": {"url": a.as_url()}} for a in m.attachments
                ]
            if m.role == Role.ASSISTANT and m.tool_calls:
                out["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments),
                        },
                    }
                    for tc in m.tool_calls
                ]
            if m.role == Role.TOOL:
                out["tool_call_id"] = m.tool_call_id
            formatted.append(out)
        return formatted

    def build_payload(self, request: GatewayRequest, model: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": self.format_messages(request.messages),
            "stream": True,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }
        if request.tools:
            payload["tools"] = [t.to_openai() for t in request.tools]
            payload["tool_choice"] = "auto"
        return payload

    async def stream(self, request: GatewayRequest, override_model: Optional[str] = None) -> AsyncIterator[StreamChunk]:
        """
        Streams one model turn as chunks, ending with exactly one `done` chunk.
        A failing primary model is retried once on the fast model; a failing
        fast model raises TransportError.
        """
        model = override_model or self.select_model(request.task_hint)
        attempts = [model] if model == self.settings.fast_model else [model, self.settings.fast_model]

        for attempt, active_model in enumerate(attempts):
            try:
                async for chunk in self._stream_once(request, active_model):
                    yield chunk
            except TransportError as e:
                pretty_log("Model Failed", f"{active_model}: {e}", level="ERROR", icon=Icons.FAIL)
                if attempt + 1 < len(attempts):
                    pretty_log("Model Fallback", f"Falling back to {attempts[attempt + 1]}", icon=Icons.LLM_SWAP)
                    continue
                raise
            yield StreamChunk(type=ChunkType.DONE, model=active_model)
            return

    async def _stream_once(self, request: GatewayRequest, model: str) -> AsyncIterator[StreamChunk]:
        payload = self.build_payload(request, model)
        pretty_log("LLM Request", f"{model} | {len(payload['messages'])} msgs | {len(request.tools)} tools", icon=Icons.LLM_ASK)

        tool_calls: Dict[int, _ToolCallAccumulator] = {}
        try:
            async with self.http_client.stream("POST", "/chat/completions", json=payload) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    raise TransportError(
                        f"HTTP {resp.status_code}: {resp.text[:500]}", model=model, status=resp.status_code
                    )
                async for line in resp.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    try:
                        event = json.loads(data)
                    except ValueError as e:
                        raise TransportError(f"Malformed stream event: {e}", model=model) from e
                    if not isinstance(event, dict):
                        raise TransportError(f"Malformed stream event: {data[:200]}", model=model)

                    if event.get("error"):
                        raise TransportError(str(event["error"]), model=model)

                    choices = event.get("choices") or []
                    if not choices:
                        continue
                    choice, delta = _split_choice(choices, data, model)

                    if delta.get("content"):
                        yield StreamChunk(type=ChunkType.CONTENT, content=delta["content"], model=model)

                    for tc in delta.get("tool_calls") or []:
                        index = tc.get("index")
                        if index is None:
                            continue
                        if index not in tool_calls:
                            tool_calls[index] = _ToolCallAccumulator(tc.get("id"))
                        tool_calls[index].feed(tc)

                    if choice.get("finish_reason") == "tool_calls":
                        for index in sorted(tool_calls):
                            acc = tool_calls[index]
                            if acc.name:
                                yield acc.finalize(model)
                        tool_calls.clear()
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}", model=model) from e

    async def complete(self, request: GatewayRequest, override_model: Optional[str] = None) -> CompletionResult:
        result = CompletionResult()
        async for chunk in self.stream(request, override_model):
            if chunk.type == ChunkType.CONTENT:
                result.content += chunk.content or ""
            elif chunk.type == ChunkType.TOOL_CALL:
                result.tool_calls.append(chunk)
        return result

    async def transcribe(self, audio: bytes, language: str = "en", filename: str = "audio.webm") -> str:
        pretty_log("Transcribe", f"{len(audio)} bytes ({language})", icon=Icons.TOOL_EAR)
        try:
            resp = await self.http_client.post(
                "/audio/transcriptions",
                files={"file": (filename, audio)},
                data={"model": self.settings.whisper_model, "language": language, "response_format": "text"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Transcription failed: {e}", model=self.settings.whisper_model) from e
        return resp.text.strip()

    async def analyze_image(self, image_base64: str, prompt: str = "Describe this image in detail.", mime_type: str = "image/png") -> str:
        pretty_log("Vision", prompt, icon=Icons.TOOL_VISION)
        payload = {
            "model": self.settings.vision_model,
            "messages": [{
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_base64}"}},
                ],
            }],
            "max_tokens": 1024,
        }
        try:
            resp = await self.http_client.post("/chat/completions", json=payload)
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"].get("content")
        except httpx.HTTPError as e:
            raise TransportError(f"Vision request failed: {e}", model=self.settings.vision_model) from e
        except (ValueError, LookupError, TypeError, AttributeError) as e:
            raise TransportError(f"Malformed vision response: {e}", model=self.settings.vision_model) from e
        return content or ""

    async def health_check(self) -> Dict[str, Any]:
        try:
            resp = await self.http_client.post("/chat/completions", json={
                "model": self.settings.fast_model,
                "max_tokens": 10,
                "messages": [{"role": "user", "content": "hi"}],
            })
            resp.raise_for_status()
            return {"status": "ok", "provider": self.settings.base_url}
        except httpx.HTTPError as e:
            return {"status": "error", "message": str(e)}
