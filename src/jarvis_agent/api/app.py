import base64
import binascii
import json
import logging
import time
from collections import OrderedDict
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from ..config import MAX_HTTP_SESSIONS
from ..core.assistant import Session
from ..core.errors import TransportError
from ..utils.logging import Icons, pretty_log

logger = logging.getLogger("Jarvis")


class ChatRequest(BaseModel):
    text: str
    context: Dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None


class MessageFrame(BaseModel):
    text: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


def describe_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        where = ".".join(str(p) for p in err["loc"])
        parts.append(f"{where}: {err['msg']}" if where else err["msg"])
    return "Invalid request: " + "; ".join(parts)


def http_session(sessions: "OrderedDict[str, Session]", session_id: Optional[str]) -> Session:
    """Least recently used sessions are dropped once MAX_HTTP_SESSIONS is exceeded."""
    session = sessions.get(session_id) if session_id else None
    if session is None:
        session = Session(session_id)
        sessions[session.session_id] = session
    sessions.move_to_end(session.session_id)
    while len(sessions) > MAX_HTTP_SESSIONS:
        evicted, _ = sessions.popitem(last=False)
        pretty_log("Session Evicted", evicted, icon=Icons.WARN)
    return session


def create_app() -> FastAPI:
    app = FastAPI(title="J.A.R.V.I.S.")
    app.state.http_sessions = OrderedDict()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health(request: Request, upstream: bool = False):
        assistant = request.app.state.assistant
        report = {
            "status": assistant.status.value,
            "version": assistant.version,
            "uptime": round(time.monotonic() - assistant.started_at, 1),
        }
        if upstream:
            report["upstream"] = await assistant.gateway.health_check()
        return report

    @app.get("/status")
    async def status(request: Request):
        return request.app.state.assistant.get_status()

    @app.post("/api/chat")
    async def chat(body: ChatRequest, request: Request):
        if not body.text.strip():
            raise HTTPException(status_code=400, detail="No message provided")
        assistant = request.app.state.assistant
        session = http_session(request.app.state.http_sessions, body.session_id)
        try:
            response = await assistant.process_sync(session, body.text, body.context)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=describe_validation_error(e))
        except TransportError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"response": response, "session_id": session.session_id}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        assistant = websocket.app.state.assistant
        session = Session()
        pretty_log("Client Connected", session.session_id, icon=Icons.CLIENT_IN)
        await websocket.send_json({"event": "status", **assistant.get_status(session)})

        async def send_error(message: str):
            await websocket.send_json({"event": "error", "message": message})

        async def stream_reply(text: str, context: Dict[str, Any]):
            try:
                async for chunk in assistant.process(session, text, context):
                    await websocket.send_json({"event": "chunk", **chunk.to_event()})
            except ValidationError as e:
                await send_error(describe_validation_error(e))
            except TransportError as e:
                await send_error(str(e))

        try:
            while True:
                try:
                    frame = json.loads(await websocket.receive_text())
                except ValueError:
                    await send_error("Frames must be JSON objects")
                    continue
                if not isinstance(frame, dict):
                    await send_error("Frames must be JSON objects")
                    continue
                kind = frame.get("type", "message")

                if kind == "message":
                    try:
                        message = MessageFrame.model_validate(frame)
                    except ValidationError as e:
                        await send_error(describe_validation_error(e))
                        continue
                    text = (message.text or "").strip()
                    if not text:
                        await send_error("No message provided")
                        continue
                    pretty_log("Message In", text, icon=Icons.MSG_IN)
                    await stream_reply(text, message.context or {})

                elif kind == "audio":
                    try:
                        audio = base64.b64decode(frame.get("data") or "", validate=True)
                    except (binascii.Error, ValueError, TypeError):
                        await send_error("Audio must be base64 encoded")
                        continue
                    try:
                        text = await assistant.gateway.transcribe(audio, language=frame.get("language") or "en")
                    except TransportError as e:
                        await send_error(str(e))
                        continue
                    await websocket.send_json({"event": "transcript", "text": text})
                    if text:
                        await stream_reply(text, {"source": "voice"})

                elif kind == "reset":
                    session.reset()
                    await websocket.send_json({"event": "status", **assistant.get_status(session)})

                elif kind == "forget":
                    dropped = await assistant.forget()
                    await websocket.send_json({"event": "forgotten", "dropped": dropped})

                else:
                    await send_error(f"Unknown frame type: {kind}")
        except WebSocketDisconnect:
            pretty_log("Client Gone", session.session_id, icon=Icons.CLIENT_IN)

    return app
