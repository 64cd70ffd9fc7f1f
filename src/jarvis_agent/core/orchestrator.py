import logging
from contextlib import aclosing
from typing import AsyncIterator, List

from .errors import JarvisError
from .gateway import ModelGateway
from .models import (
    ChunkType, GatewayRequest, Message, OrchestrationContext, OrchestrationRun,
    Role, StreamChunk, ToolCallRequest,
)
from ..config import MAX_ITERATIONS
from ..tools.registry import ToolRegistry
from ..utils.helpers import format_result, new_run_id, serialize_result
from ..utils.logging import Icons, pretty_log, run_id_context

logger = logging.getLogger("Jarvis")


class TaskOrchestrator:
    """
    Drives the tool-calling loop: one gateway turn per iteration, every
    requested tool executed in order, results folded back into the history.
    Stops on a turn without tool calls (`done`) or at the iteration ceiling
    (`warning`).
    """

    def __init__(self, gateway: ModelGateway, registry: ToolRegistry, max_iterations: int = MAX_ITERATIONS):
        self.gateway = gateway
        self.registry = registry
        self.max_iterations = max_iterations

    async def execute(self, context: OrchestrationContext) -> AsyncIterator[StreamChunk]:
        run = OrchestrationRun(messages=list(context.messages))
        tools = list(context.tools)
        run_id_context.set(new_run_id())
        pretty_log("Run Initialized", special_marker="BEGIN")

        while run.iteration_count < self.max_iterations:
            response_text = ""
            tool_calls: List[StreamChunk] = []

            request = GatewayRequest(messages=run.messages, tools=tools, task_hint=context.task_hint)
            async with aclosing(self.gateway.stream(request)) as turn:
                async for chunk in turn:
                    if chunk.type == ChunkType.CONTENT:
                        response_text += chunk.content or ""
                        yield chunk
                    elif chunk.type == ChunkType.TOOL_CALL:
                        tool_calls.append(chunk)

            if not tool_calls:
                run.done = True
                pretty_log("Run Finished", special_marker="END")
                yield StreamChunk(type=ChunkType.DONE)
                return

            yield StreamChunk(type=ChunkType.STATUS, content="\n\n🔧 *Executing tools...*\n")

            requests = [
                ToolCallRequest(id=tc.id or f"call_{run.iteration_count}_{i}", name=tc.tool, arguments=tc.arguments or {})
                for i, tc in enumerate(tool_calls)
            ]
            run.messages.append(Message(role=Role.ASSISTANT, content=response_text, tool_calls=requests))

            for call, chunk in zip(requests, tool_calls):
                async for event in self._run_tool(run, call, chunk.error):
                    yield event

            yield StreamChunk(type=ChunkType.STATUS, content="\n")
            run.iteration_count += 1

        pretty_log("Loop Breaker", f"Iteration ceiling reached ({self.max_iterations})", level="WARN", icon=Icons.STOP)
        pretty_log("Run Finished", special_marker="END")
        yield StreamChunk(
            type=ChunkType.WARNING,
            content="\n⚠️ *Task reached maximum iterations. Please refine your request.*\n",
        )

    async def _run_tool(self, run: OrchestrationRun, call: ToolCallRequest, parse_error=None) -> AsyncIterator[StreamChunk]:
        yield StreamChunk(type=ChunkType.TOOL_START, tool=call.name, content=f"Running `{call.name}`...")

        error = parse_error
        if error is None:
            try:
                result = await self.registry.execute(call.name, call.arguments)
            except JarvisError as e:
                error = str(e)

        if error is not None:
            pretty_log("Tool Error", f"{call.name}: {error}", level="WARN", icon=Icons.WARN)
            yield StreamChunk(type=ChunkType.TOOL_ERROR, tool=call.name, content=error)
            run.messages.append(Message(role=Role.TOOL, tool_call_id=call.id, content=f"Error: {error}"))
            return

        preview = format_result(result)
        pretty_log("Tool Result", preview, icon=Icons.OK)
        yield StreamChunk(type=ChunkType.TOOL_RESULT, tool=call.name, content=preview)
        run.messages.append(Message(role=Role.TOOL, tool_call_id=call.id, content=serialize_result(result)))
