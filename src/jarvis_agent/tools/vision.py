import asyncio
import base64
import mimetypes
from pathlib import Path
from typing import Optional

from .file_system import resolve_in_workspace
from ..core.errors import TransportError
from ..utils.logging import Icons, pretty_log

MAX_IMAGE_BYTES = 4 * 1024 * 1024
DESCRIBE_PROMPT = (
    "Describe what you see in this image in detail. Include any text, "
    "applications, windows, or important elements visible."
)
OCR_PROMPT = (
    "Extract and list ALL text visible in this image. Be thorough and include "
    "every piece of text you can see, organized by location."
)


async def _load_image(path: str, workspace: Path):
    target = resolve_in_workspace(workspace, path)
    if not target.is_file():
        raise FileNotFoundError(f"'{path}' not found.")
    mime_type = mimetypes.guess_type(target.name)[0] or ""
    if not mime_type.startswith("image/"):
        raise ValueError(f"'{path}' is not an image.")
    data = await asyncio.to_thread(target.read_bytes)
    if len(data) > MAX_IMAGE_BYTES:
        raise ValueError(f"'{path}' is too large ({len(data) // 1024}KB, limit {MAX_IMAGE_BYTES // 1024}KB).")
    return base64.b64encode(data).decode("ascii"), mime_type


async def tool_analyze_image(path: str, workspace: Path, gateway, prompt: Optional[str] = None):
    pretty_log("Analyze Image", path, icon=Icons.TOOL_VISION)
    try:
        image, mime_type = await _load_image(path, workspace)
        return await gateway.analyze_image(image, prompt or DESCRIBE_PROMPT, mime_type=mime_type)
    except (OSError, ValueError, TransportError) as e:
        return f"Image analysis failed: {e}"


async def tool_read_image_text(path: str, workspace: Path, gateway):
    pretty_log("Read Image Text", path, icon=Icons.TOOL_VISION)
    try:
        image, mime_type = await _load_image(path, workspace)
        return await gateway.analyze_image(image, OCR_PROMPT, mime_type=mime_type)
    except (OSError, ValueError, TransportError) as e:
        return f"OCR failed: {e}"
