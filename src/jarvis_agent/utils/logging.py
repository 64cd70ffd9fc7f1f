import contextvars
import json
import logging
import os
import time
from typing import Any, Optional

run_id_context = contextvars.ContextVar("run_id", default="SYSTEM")
CONSOLE_PREVIEW_LIMIT = 300
VERBOSE = False

logger = logging.getLogger("Jarvis")


class Icons:
    # Service
    SYSTEM_BOOT = "🔋"
    SYSTEM_READY = "🟢"
    SYSTEM_SHUT = "🔻"
    CLIENT_IN = "🔗"
    MSG_IN = "💬"

    # Runs
    REQ_START = "▶️"
    REQ_DONE = "⏹️"
    LLM_ASK = "🧠"
    LLM_SWAP = "🪂"

    # Tools
    TOOL_RUN = "🛠️"
    TOOL_SEARCH = "🔍"
    TOOL_SHELL = "💻"
    TOOL_CALC = "➗"
    TOOL_APP = "🪟"
    TOOL_CLOCK = "⏰"
    TOOL_FILE = "📄"
    TOOL_VISION = "🖼️"
    TOOL_EAR = "🎤"

    # Memory
    MEM_SAVE = "💾"
    MEM_READ = "📚"
    MEM_WIPE = "🗑️"

    # Outcomes
    OK = "✔️"
    FAIL = "✖️"
    WARN = "❗"
    STOP = "⛔"
    RETRY = "🔁"


_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.access", "asyncio")


def setup_logging(log_file: str, debug: bool = False, daemon: bool = False):
    """
    File handler always (DEBUG and up); console handler unless running as a
    daemon. Third-party chatter is held at WARNING.
    """
    global VERBOSE
    VERBOSE = debug
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    handlers = []

    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    handlers.append(file_handler)

    if not daemon:
        console = logging.StreamHandler()
        console.setLevel(logger.level)
        handlers.append(console)

    for handler in handlers:
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _preview(text: str) -> str:
    if VERBOSE or len(text) <= CONSOLE_PREVIEW_LIMIT:
        return text
    return f"{text[:CONSOLE_PREVIEW_LIMIT]}... [TRUNCATED]"


def pretty_log(title: str, content: Any = None, icon: str = "•", level: str = "INFO", special_marker: Optional[str] = None):
    """
    One console line per event, tagged with the current run id:
    `[LEVEL] ICON HH:MM:SS [run] TITLE : content`. Structured content is
    written to the log file and only echoed for errors or in verbose mode.
    """
    run_id = run_id_context.get()
    stamp = time.strftime("%H:%M:%S")

    def head(mark: str) -> str:
        return f"[{level:<5}] {mark} {stamp} [{run_id}]"

    if special_marker in ("BEGIN", "END"):
        banner = "RUN STARTED" if special_marker == "BEGIN" else "RUN FINISHED"
        marker_icon = Icons.REQ_START if special_marker == "BEGIN" else Icons.REQ_DONE
        print(f"{head(marker_icon)} ---------- {banner} ----------", flush=True)
        logger.debug(f"[{run_id}] {banner}")
        return

    line = f"{head(icon)} {title.upper():<22}"

    if content is None:
        print(line, flush=True)
        return

    if isinstance(content, (dict, list)):
        dumped = json.dumps(content, indent=2, default=str)
        print(line, flush=True)
        logger.debug(f"[{run_id}] {title}:\n{dumped}")
        if level == "ERROR" or VERBOSE:
            for row in _preview(dumped).splitlines():
                print(f"    {row}", flush=True)
        return

    text = str(content)
    print(f"{line} : {_preview(text)}", flush=True)
    logger.debug(f"[{run_id}] {title}: {text}")
