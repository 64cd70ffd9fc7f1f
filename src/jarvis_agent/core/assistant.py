import asyncio
import datetime
import logging
import platform
import re
import time
from contextlib import aclosing
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from .errors import TransportError
from .gateway import ModelGateway
from .models import (
    ChunkType, GatewayRequest, Message, OrchestrationContext, Role, StreamChunk, TurnContext,
)
from .orchestrator import TaskOrchestrator
from .prompts import MEMORY_PROMPT, SYSTEM_PROMPT
from ..config import MAX_CONTEXT_MESSAGES, MAX_ITERATIONS, MAX_MEMORY_RESULTS, VERSION
from ..memory.keyword import MemoryStore
from ..tools.registry import ToolRegistry
from ..utils.helpers import new_session_id
from ..utils.logging import Icons, pretty_log

logger = logging.getLogger("Jarvis")


class AssistantStatus(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    THINKING = "thinking"
    EXECUTING = "executing"
    ERROR = "error"
    OFFLINE = "offline"


TOOL_TRIGGERS = [
    re.compile(p, re.IGNORECASE) for p in [
        r"open|launch|start|run|execute",
        r"search|find|look up|google",
        r"read|write|create|delete|move|copy",
        r"turn on|turn off|set|adjust|control",
        r"play|pause|stop|next|previous",
        r"send|email|message|call",
        r"schedule|remind|calendar|event",
        r"screenshot|capture|screen",
        r"generate|create image|draw",
        r"what's on my screen|what do you see",
        r"install|download|update",
        r"calculate|math|compute",
        r"what time|current time|date today",
        r"https?://|browse|website|web ?page",
    ]
]


def should_use_tools(text: str) -> bool:
    return any(p.search(text) for p in TOOL_TRIGGERS)


class Session:
    """One client's conversation. Never shared between connections."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or new_session_id()
        self.history: List[Message] = []
        self.message_count = 0
        self.status = AssistantStatus.READY

    def reset(self):
        self.history = []
        self.session_id = new_session_id()
        self.status = AssistantStatus.READY
        pretty_log("Context Reset", self.session_id, icon=Icons.RETRY)


class Assistant:
    name = "JARVIS"
    version = VERSION

    def __init__(
        self,
        gateway: ModelGateway,
        registry: ToolRegistry,
        memory: Optional[MemoryStore] = None,
        max_iterations: int = MAX_ITERATIONS,
        max_context_messages: int = MAX_CONTEXT_MESSAGES,
        max_memory_results: int = MAX_MEMORY_RESULTS,
    ):
        self.gateway = gateway
        self.registry = registry
        self.memory = memory
        self.orchestrator = TaskOrchestrator(gateway, registry, max_iterations)
        self.max_context_messages = max_context_messages
        self.max_memory_results = max_memory_results
        self.status = AssistantStatus.READY
        self.started_at = time.monotonic()

    def system_prompt(self) -> str:
        return (
            SYSTEM_PROMPT
            .replace("{{CAPABILITIES}}", self.registry.capability_summary() or "- (no tools available)")
            .replace("{{CURRENT_TIME}}", datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S'))
            .replace("{{PLATFORM}}", platform.system() or "unknown")
        )

    def build_context(self, session: Session, memories: List[Dict[str, Any]], context: TurnContext) -> OrchestrationContext:
        messages = [Message(role=Role.SYSTEM, content=self.system_prompt())]
        if memories:
            memory_text = "\n".join(f"[Memory] {m['content']}" for m in memories)
            messages.append(Message(role=Role.SYSTEM, content=MEMORY_PROMPT.replace("{{MEMORIES}}", memory_text)))

        messages.extend(m.model_copy() for m in session.history[-self.max_context_messages:])

        if context.attachments and messages[-1].role == Role.USER:
            messages[-1].attachments = list(context.attachments)

        return OrchestrationContext(
            messages=messages,
            tools=self.registry.definitions(),
            task_hint=context.task_type,
        )

    def _status_chunk(self, session: Session, status: AssistantStatus) -> StreamChunk:
        session.status = status
        return StreamChunk(type=ChunkType.STATUS, content=status.value)

    async def process(self, session: Session, text: str, context: Optional[Dict[str, Any]] = None) -> AsyncIterator[StreamChunk]:
        # raises pydantic.ValidationError before anything is streamed
        turn = TurnContext.model_validate(context or {})
        session.message_count += 1
        start = time.monotonic()
        yield self._status_chunk(session, AssistantStatus.THINKING)

        try:
            session.history.append(Message(role=Role.USER, content=text))

            memories = []
            if self.memory:
                memories = await asyncio.to_thread(self.memory.recall, text, self.max_memory_results)
            request = self.build_context(session, memories, turn)

            if should_use_tools(text):
                yield self._status_chunk(session, AssistantStatus.EXECUTING)
                source = self.orchestrator.execute(request)
            else:
                source = self.gateway.stream(GatewayRequest(messages=request.messages, task_hint=request.task_hint))

            response = ""
            async with aclosing(source) as replies:
                async for chunk in replies:
                    if chunk.type == ChunkType.CONTENT:
                        response += chunk.content or ""
                    yield chunk

            session.history.append(Message(role=Role.ASSISTANT, content=response))

            if self.memory:
                await asyncio.to_thread(self.memory.store, {
                    "input": text,
                    "response": response,
                    "context": turn.model_dump(exclude={"attachments"}, exclude_none=True),
                    "session_id": session.session_id,
                })

            pretty_log("Response Done", f"{(time.monotonic() - start) * 1000:.0f}ms", icon=Icons.REQ_DONE)
            yield self._status_chunk(session, AssistantStatus.READY)
        except TransportError as e:
            pretty_log("Processing Error", str(e), level="ERROR", icon=Icons.FAIL)
            yield self._status_chunk(session, AssistantStatus.ERROR)
            raise
        finally:
            if session.status in (AssistantStatus.THINKING, AssistantStatus.EXECUTING):
                session.status = AssistantStatus.READY

    async def process_sync(self, session: Session, text: str, context: Optional[Dict[str, Any]] = None) -> str:
        full_response = ""
        async for chunk in self.process(session, text, context):
            if chunk.type == ChunkType.CONTENT:
                full_response += chunk.content or ""
        return full_response

    def get_status(self, session: Optional[Session] = None) -> Dict[str, Any]:
        status = {
            "name": self.name,
            "version": self.version,
            "status": self.status.value,
            "tools": len(self.registry),
            "memory_size": getattr(self.memory, "size", 0) if self.memory else 0,
            "uptime": round(time.monotonic() - self.started_at, 1),
        }
        if session is not None:
            status.update({
                "status": session.status.value,
                "session_id": session.session_id,
                "message_count": session.message_count,
            })
        return status

    async def forget(self) -> int:
        """Wipes long-term memory. Returns how many exchanges were dropped."""
        if not self.memory:
            return 0
        dropped = getattr(self.memory, "size", 0)
        await asyncio.to_thread(self.memory.wipe)
        return dropped

    async def shutdown(self):
        pretty_log("Shutdown", "Closing assistant services", icon=Icons.SYSTEM_SHUT)
        self.status = AssistantStatus.OFFLINE
        if self.memory:
            await asyncio.to_thread(self.memory.close)
        self.registry.unregister_all()
        await self.gateway.close()
