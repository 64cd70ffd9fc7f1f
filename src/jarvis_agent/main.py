import argparse
import os
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn

from .api.app import create_app
from .config import ENABLED_TOOLS, MAX_ITERATIONS, GatewaySettings, jarvis_home
from .core.assistant import Assistant, AssistantStatus
from .core.gateway import ModelGateway
from .memory.keyword import KeywordMemory
from .tools.builtin import ToolContext, build_registry
from .utils.logging import Icons, pretty_log, setup_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="J.A.R.V.I.S.: streaming tool-calling assistant")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "3141")))
    parser.add_argument("--base-url", default=None, help="OpenAI-compatible endpoint (default: Groq)")
    parser.add_argument("--default-model", default=None)
    parser.add_argument("--max-iterations", type=int, default=MAX_ITERATIONS)
    parser.add_argument("--memory-file", default=None)
    parser.add_argument("--no-memory", action="store_true")
    parser.add_argument("--workspace", default=None, help="Directory the file and image tools work in (default: ~/.jarvis/workspace)")
    parser.add_argument("--tools", default=",".join(ENABLED_TOOLS), help="Comma separated built-in tools to enable")
    parser.add_argument("--daemon", "-d", action="store_true")
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


def build_assistant(args) -> Assistant:
    settings = GatewaySettings.from_env(base_url=args.base_url, default_model=args.default_model)
    gateway = ModelGateway(settings)
    pretty_log("Gateway Ready", f"{settings.base_url} ({settings.default_model})", icon=Icons.OK)

    workspace = Path(args.workspace).expanduser() if args.workspace else jarvis_home() / "workspace"
    workspace.mkdir(parents=True, exist_ok=True)
    context = ToolContext(workspace=workspace, gateway=gateway)
    registry = build_registry([t.strip() for t in args.tools.split(",") if t.strip()], context)

    memory = None
    if not args.no_memory:
        memory_file = args.memory_file or str(jarvis_home() / "memory.json")
        memory = KeywordMemory(memory_file)

    return Assistant(gateway, registry, memory=memory, max_iterations=args.max_iterations)


@asynccontextmanager
async def lifespan(app):
    assistant = app.state.assistant
    assistant.status = AssistantStatus.READY
    pretty_log("System Ready", "J.A.R.V.I.S. is online and ready to assist", icon=Icons.SYSTEM_READY)
    yield
    await assistant.shutdown()


def main(argv=None):
    args = parse_args(argv)
    home = jarvis_home()
    setup_logging(str(home / "jarvis.log"), args.debug, args.daemon)

    pretty_log("System Boot", "Initializing J.A.R.V.I.S.", icon=Icons.SYSTEM_BOOT)
    assistant = build_assistant(args)
    assistant.status = AssistantStatus.INITIALIZING

    app = create_app()
    app.router.lifespan_context = lifespan
    app.state.assistant = assistant

    print(f"🌐 Server running at http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
