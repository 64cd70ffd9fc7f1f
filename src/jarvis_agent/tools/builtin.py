from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from .calculator import tool_calculate
from .file_system import tool_list_directory, tool_read_file, tool_write_file
from .registry import ToolInvoker, ToolRegistry
from .schemas import (
    AnalyzeImage, BrowseWebpage, Calculate, GetCurrentTime, ListDirectory, OpenApp,
    ReadFile, ReadImageText, RunCommand, WebSearch, WriteFile,
)
from .shell import DEFAULT_TIMEOUT, tool_open_app, tool_run_command
from .system import tool_get_current_time
from .vision import tool_analyze_image, tool_read_image_text
from .web import tool_browse_webpage, tool_web_search
from ..config import jarvis_home
from ..utils.logging import Icons, pretty_log


@dataclass
class ToolContext:
    """What the built-in tools are bound to: the file workspace and, for image tools, the gateway."""
    workspace: Path = field(default_factory=lambda: jarvis_home() / "workspace")
    gateway: Optional[Any] = None


def builtin_tools(context: ToolContext) -> List[Tuple[str, type[BaseModel], ToolInvoker]]:
    ws = context.workspace
    tools: List[Tuple[str, type[BaseModel], ToolInvoker]] = [
        ("get_current_time", GetCurrentTime, lambda: tool_get_current_time()),
        ("calculate", Calculate, lambda expression: tool_calculate(expression)),
        ("open_app", OpenApp, lambda app_name: tool_open_app(app_name)),
        ("run_command", RunCommand, lambda command, timeout=None: tool_run_command(command, timeout=timeout or DEFAULT_TIMEOUT)),
        ("web_search", WebSearch, lambda query: tool_web_search(query)),
        ("browse_webpage", BrowseWebpage, lambda url: tool_browse_webpage(url)),
        ("read_file", ReadFile, lambda path: tool_read_file(path, ws)),
        ("write_file", WriteFile, lambda path, content: tool_write_file(path, content, ws)),
        ("list_directory", ListDirectory, lambda path=".", detailed=False: tool_list_directory(ws, path, detailed)),
    ]
    # image tools need a model to look with
    if context.gateway is not None:
        gw = context.gateway
        tools += [
            ("analyze_image", AnalyzeImage, lambda path, prompt=None: tool_analyze_image(path, ws, gw, prompt)),
            ("read_image_text", ReadImageText, lambda path: tool_read_image_text(path, ws, gw)),
        ]
    return tools


def build_registry(enabled: Optional[Iterable[str]] = None, context: Optional[ToolContext] = None) -> ToolRegistry:
    """Registers the built-in tools named in `enabled` (all of them when None)."""
    registry = ToolRegistry()
    wanted = set(enabled) if enabled is not None else None
    for name, schema, invoker in builtin_tools(context or ToolContext()):
        if wanted is None or name in wanted:
            registry.register_model(name, schema, invoker)
    pretty_log("Tools Ready", f"Registered {len(registry)} built-in tools", icon=Icons.OK)
    return registry
