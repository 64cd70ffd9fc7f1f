import asyncio
import json
from pathlib import Path
from typing import Any

from ..utils.logging import Icons, pretty_log

READ_LIMIT = 10000


def resolve_in_workspace(workspace: Path, path: str) -> Path:
    """
    Resolves `path` against the workspace root. Leading slashes and `~` are
    treated as workspace-relative; anything resolving outside the root is refused.
    """
    root = Path(workspace).resolve()
    clean = str(path).strip().lstrip("~").lstrip("/") or "."
    target = (root / clean).resolve()
    try:
        target.relative_to(root)
    except ValueError:
        raise ValueError(f"Security Error: Path '{path}' is outside the workspace.")
    return target


async def tool_read_file(path: str, workspace: Path):
    pretty_log("File Read", path, icon=Icons.TOOL_FILE)
    try:
        target = resolve_in_workspace(workspace, path)
        if not target.exists():
            return f"Error: '{path}' not found."
        if target.is_dir():
            return f"Error: '{path}' is a directory. Use list_directory instead."
        content = await asyncio.to_thread(target.read_text, encoding="utf-8", errors="replace")
    except ValueError as e:
        return str(e)
    except OSError as e:
        return f"Failed to read file: {e}"

    if len(content) > READ_LIMIT:
        return content[:READ_LIMIT] + "\n\n[File truncated...]"
    return content


async def tool_write_file(path: str, content: Any, workspace: Path):
    pretty_log("File Write", path, icon=Icons.TOOL_FILE)
    # models sometimes send structured data instead of text
    if isinstance(content, (dict, list)):
        content = json.dumps(content, indent=2, ensure_ascii=False)
    elif content is None:
        content = ""
    else:
        content = str(content)

    try:
        target = resolve_in_workspace(workspace, path)
        if target.is_dir():
            return f"Error: '{path}' is a directory."
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_text, content, encoding="utf-8")
    except ValueError as e:
        return str(e)
    except OSError as e:
        return f"Failed to write file: {e}"
    return f"File written: {path} ({len(content)} chars)"


def _describe(entry: Path) -> str:
    if entry.is_dir():
        return f"📁 {entry.name}/"
    return f"📄 {entry.name} ({entry.stat().st_size / 1024:.1f}KB)"


async def tool_list_directory(workspace: Path, path: str = ".", detailed: bool = False):
    pretty_log("List Dir", path, icon=Icons.TOOL_FILE)
    try:
        target = resolve_in_workspace(workspace, path)
        if not target.is_dir():
            return f"Error: '{path}' is not a directory."
        entries = sorted((e for e in target.iterdir() if not e.name.startswith(".")), key=lambda e: e.name)
        lines = [_describe(e) if detailed else e.name for e in entries]
    except ValueError as e:
        return str(e)
    except OSError as e:
        return f"Failed to list directory: {e}"
    return "\n".join(lines) if lines else "[Empty]"
