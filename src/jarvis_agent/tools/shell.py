import asyncio
import os
import sys
from typing import Optional

from ..utils.logging import Icons, pretty_log

DEFAULT_TIMEOUT = 30


async def tool_run_command(command: str, timeout: int = DEFAULT_TIMEOUT, cwd: Optional[str] = None):
    """
    Executes a shell command once and returns stdout (plus stderr when present).
    Failures are reported as text so the model can read them.
    """
    work_dir = cwd or os.getcwd()
    pretty_log("Shell Exec", f"[{work_dir}] $ {command}", icon=Icons.TOOL_SHELL)

    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
        )
    except OSError as e:
        return f"Error: {e}"

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        # communicate() closes the pipes once the process is gone
        await proc.communicate()
        return f"Error: Command timed out after {timeout} seconds."

    output = stdout.decode(errors="replace").strip()
    error = stderr.decode(errors="replace").strip()

    if proc.returncode != 0:
        return f"Error: exit code {proc.returncode}\n{error or output}".strip()

    result = output
    if error:
        result += f"\nSTDERR: {error}"
    return result or "Command completed"


async def tool_open_app(app_name: str, platform: Optional[str] = None):
    platform = platform or sys.platform
    pretty_log("Open App", app_name, icon=Icons.TOOL_APP)

    if platform not in ("darwin", "win32"):
        # Desktop launchers on Linux do not return until the app exits
        try:
            await asyncio.create_subprocess_exec(
                app_name,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            return f"Could not open {app_name}: {e}"
        return f"Opened {app_name}"

    args = ["open", "-a", app_name] if platform == "darwin" else ["cmd", "/c", "start", "", app_name]
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=10)
    except (OSError, asyncio.TimeoutError) as e:
        return f"Could not open {app_name}: {e or type(e).__name__}"

    if proc.returncode != 0:
        return f"Could not open {app_name}: {stderr.decode(errors='replace').strip()}"
    return f"Opened {app_name}"
