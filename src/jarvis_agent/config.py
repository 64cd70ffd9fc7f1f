import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

VERSION = "1.0.0"

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.3-70b-versatile"
FAST_MODEL = "llama-3.1-8b-instant"
VISION_MODEL = "llama-3.2-90b-vision-preview"
WHISPER_MODEL = "whisper-large-v3-turbo"

DEFAULT_ROUTING: Dict[str, str] = {
    "general": "llama-3.3-70b-versatile",
    "reasoning": "deepseek-r1-distill-llama-70b",
    "coding": "llama-3.3-70b-versatile",
    "vision": "llama-3.2-90b-vision-preview",
    "fast": "llama-3.1-8b-instant",
}

MAX_ITERATIONS = 10
MAX_CONTEXT_MESSAGES = 20
MAX_MEMORY_RESULTS = 5
MAX_HTTP_SESSIONS = 100

ENABLED_TOOLS: List[str] = [
    "get_current_time",
    "calculate",
    "open_app",
    "run_command",
    "web_search",
    "browse_webpage",
    "read_file",
    "write_file",
    "list_directory",
    "analyze_image",
    "read_image_text",
]


@dataclass(frozen=True)
class GatewaySettings:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    default_model: str = DEFAULT_MODEL
    fast_model: str = FAST_MODEL
    vision_model: str = VISION_MODEL
    whisper_model: str = WHISPER_MODEL
    routing: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ROUTING))
    max_tokens: int = 4096
    temperature: float = 0.7
    timeout: float = 120.0

    @classmethod
    def from_env(cls, base_url: Optional[str] = None, default_model: Optional[str] = None) -> "GatewaySettings":
        api_key = os.getenv("GROQ_API_KEY", "")
        if not api_key:
            raise RuntimeError("GROQ_API_KEY is required. Get one at https://console.groq.com")
        return cls(
            api_key=api_key,
            base_url=base_url or os.getenv("JARVIS_BASE_URL", DEFAULT_BASE_URL),
            default_model=default_model or os.getenv("DEFAULT_MODEL", DEFAULT_MODEL),
        )


def jarvis_home() -> Path:
    return Path(os.getenv("JARVIS_HOME", Path.home() / ".jarvis"))
