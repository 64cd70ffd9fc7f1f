import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Protocol

from ..utils.helpers import get_utc_timestamp
from ..utils.logging import Icons, pretty_log

logger = logging.getLogger("Jarvis")

MAX_MEMORIES = 1000
MAX_KEYWORDS = 20

STOP_WORDS = {
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been',
    'being', 'have', 'has', 'had', 'do', 'does', 'did', 'will',
    'would', 'could', 'should', 'may', 'might', 'can', 'must',
    'to', 'of', 'in', 'for', 'on', 'with', 'at', 'by', 'from',
    'as', 'into', 'through', 'during', 'before', 'after',
    'here', 'there', 'when', 'where', 'why', 'how', 'all',
    'and', 'but', 'if', 'or', 'because', 'about', 'not',
    'this', 'that', 'what', 'which', 'who', 'i', 'me', 'my',
    'you', 'your', 'he', 'she', 'it', 'we', 'they', 'them',
}


class MemoryStore(Protocol):
    def recall(self, query: str, limit: int = 5) -> List[Dict[str, Any]]: ...

    def store(self, exchange: Dict[str, Any]) -> None: ...

    def wipe(self) -> None: ...

    def close(self) -> None: ...


def extract_keywords(text: str) -> List[str]:
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS][:MAX_KEYWORDS]


class KeywordMemory:
    """
    Conversation exchanges in a JSON file, recalled by keyword overlap.
    Keeps the most recent MAX_MEMORIES entries.
    """

    def __init__(self, path: Path):
        self.file_path = Path(path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self.memories: List[Dict[str, Any]] = []

        if self.file_path.exists():
            try:
                data = json.loads(self.file_path.read_text())
                self.memories = data.get("memories", [])
            except (OSError, ValueError) as e:
                pretty_log("Memory Reset", f"Starting with fresh memory ({e})", level="WARN", icon=Icons.WARN)

        pretty_log("Memory Ready", f"{len(self.memories)} entries", icon=Icons.MEM_READ)

    @property
    def size(self) -> int:
        return len(self.memories)

    def save(self):
        data = {"memories": self.memories}
        self.file_path.write_text(json.dumps(data, indent=2, default=str))

    def store(self, exchange: Dict[str, Any]):
        user_input = exchange.get("input", "")
        response = exchange.get("response", "")
        with self._lock:
            self.memories.append({
                "session_id": exchange.get("session_id"),
                "input": user_input,
                "response": response,
                "context": exchange.get("context", {}),
                "keywords": extract_keywords(f"{user_input} {response}"),
                "created_at": get_utc_timestamp(),
            })
            self.memories = self.memories[-MAX_MEMORIES:]
            self.save()
        pretty_log("Memory Store", user_input, icon=Icons.MEM_SAVE)

    def recall(self, query: str, limit: int = 5) -> List[Dict[str, Any]]:
        query_keywords = extract_keywords(query)

        def as_result(m):
            return {"content": f"Q: {m['input']}\nA: {m['response']}", "timestamp": m["created_at"]}

        if not query_keywords:
            return [as_result(m) for m in reversed(self.memories[-limit:])] if limit > 0 else []

        scored = []
        # index order doubles as recency order
        for i, m in enumerate(self.memories):
            overlap = sum(1 for k in query_keywords if k in m.get("keywords", []))
            if overlap > 0:
                scored.append((overlap, i, m))
        scored.sort(key=lambda s: (s[0], s[1]), reverse=True)
        return [as_result(m) for _, _, m in scored[:limit]]

    def wipe(self):
        with self._lock:
            self.memories = []
            self.save()
        pretty_log("Memory Wipe", "All exchanges removed", icon=Icons.MEM_WIPE)

    def close(self):
        with self._lock:
            self.save()
