import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Union

from pydantic import BaseModel

from ..core.errors import ToolExecutionError, ToolNotFound
from ..core.models import ToolDefinition
from ..utils.logging import Icons, pretty_log

logger = logging.getLogger("Jarvis")

ToolInvoker = Callable[..., Union[Any, Awaitable[Any]]]


def pydantic_to_definition(name: str, model: type[BaseModel]) -> ToolDefinition:
    schema = model.model_json_schema()
    # Cleanup schema for cleaner LLM context
    schema.pop("title", None)
    schema.pop("description", None)
    schema.setdefault("properties", {})
    return ToolDefinition(name=name, description=inspect.cleandoc(model.__doc__ or ""), parameters=schema)


class ToolRegistry:
    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}
        self._invokers: Dict[str, ToolInvoker] = {}

    def register(self, definition: ToolDefinition, invoker: ToolInvoker):
        if definition.name in self._tools:
            logger.info(f"Tool '{definition.name}' re-registered; previous definition replaced")
        self._tools[definition.name] = definition
        self._invokers[definition.name] = invoker

    def register_model(self, name: str, schema_model: type[BaseModel], invoker: ToolInvoker):
        self.register(pydantic_to_definition(name, schema_model), invoker)

    def definitions(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    async def execute(self, name: str, arguments: Dict[str, Any]) -> Any:
        invoker = self._invokers.get(name)
        if invoker is None:
            raise ToolNotFound(name)

        pretty_log("Tool Exec", name, icon=Icons.TOOL_RUN)
        try:
            result = invoker(**(arguments or {}))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            pretty_log("Tool Failed", f"{name}: {e}", level="ERROR", icon=Icons.FAIL)
            raise ToolExecutionError(name, e) from e
        return result

    def capability_summary(self) -> str:
        return "\n".join(f"- {d.name}: {d.description}" for d in self._tools.values())

    def unregister_all(self):
        self._tools.clear()
        self._invokers.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
