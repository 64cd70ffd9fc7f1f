from typing import Optional


class JarvisError(Exception):
    """Base class for every error raised by the agent core."""


class TransportError(JarvisError):
    """
    The call to the model endpoint failed (network, auth, rate limit, bad stream).
    Carries the model that was in use and the HTTP status when there was one.
    """
    def __init__(self, message: str, *, model: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.model = model
        self.status = status

    def __repr__(self):
        return f"TransportError({str(self)!r}, model={self.model}, status={self.status})"


class ToolNotFound(JarvisError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


UnknownTool = ToolNotFound


class ToolExecutionError(JarvisError):
    def __init__(self, name: str, cause: Exception):
        super().__init__(str(cause) or type(cause).__name__)
        self.name = name
        self.cause = cause


class MalformedToolArguments(JarvisError):
    def __init__(self, name: str, raw: str, reason: str):
        super().__init__(f"Malformed arguments for {name}: {reason}")
        self.name = name
        self.raw = raw
