import datetime
import json
import uuid
from typing import Any

RESULT_PREVIEW_LIMIT = 200

def get_utc_timestamp():
    """Returns strict ISO8601 UTC timestamp."""
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

def new_run_id() -> str:
    return str(uuid.uuid4())[:8]

def new_session_id() -> str:
    return f"session_{int(datetime.datetime.now().timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"

def serialize_result(result: Any) -> str:
    """Full text form of a tool result, as handed back to the model."""
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)

def format_result(result: Any, limit: int = RESULT_PREVIEW_LIMIT) -> str:
    """Short, human-facing rendering of a tool result."""
    if isinstance(result, str):
        text = result
    else:
        text = json.dumps(result, indent=2, ensure_ascii=False, default=str)
    return text[:limit] + "..." if len(text) > limit else text

def truncate_query(query: str, limit: int = 35) -> str:
    return (query[:limit] + "..") if len(query) > limit else query
