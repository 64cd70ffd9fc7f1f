"""
Pydantic models shared by the gateway, the orchestrator and the registry.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ChunkType(str, Enum):
    CONTENT = "content"
    TOOL_CALL = "tool_call"
    TOOL_START = "tool_start"
    TOOL_RESULT = "tool_result"
    TOOL_ERROR = "tool_error"
    STATUS = "status"
    WARNING = "warning"
    DONE = "done"


class Attachment(BaseModel):
    type: str = "image/png"
    data: Optional[str] = None
    url: Optional[str] = None

    def as_url(self) -> str:
        return self.url or f"data:{self.type};base64,{self.data}"


class TurnContext(BaseModel):
    """Client-supplied context for one message. Unknown keys are kept and stored with the exchange."""
    model_config = ConfigDict(extra="allow")

    attachments: List[Attachment] = Field(default_factory=list)
    task_type: Optional[str] = None


class ToolCallRequest(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    role: Role
    content: str = ""
    tool_call_id: Optional[str] = None
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)


class ToolDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_openai(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class StreamChunk(BaseModel):
    type: ChunkType
    content: Optional[str] = None
    tool: Optional[str] = None
    arguments: Optional[Dict[str, Any]] = None
    id: Optional[str] = None
    model: Optional[str] = None
    error: Optional[str] = None

    def to_event(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class GatewayRequest(BaseModel):
    messages: List[Message]
    tools: List[ToolDefinition] = Field(default_factory=list)
    task_hint: Optional[str] = None


class CompletionResult(BaseModel):
    content: str = ""
    tool_calls: List[StreamChunk] = Field(default_factory=list)


class OrchestrationContext(BaseModel):
    messages: List[Message]
    tools: List[ToolDefinition] = Field(default_factory=list)
    task_hint: Optional[str] = None


class OrchestrationRun(BaseModel):
    messages: List[Message]
    iteration_count: int = 0
    done: bool = False
