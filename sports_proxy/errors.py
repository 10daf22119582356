"""Typed error taxonomy shared by every layer of the orchestrator.

Each error carries a machine-readable ``kind``, a ``fatal`` flag that tells the
orchestrator whether the Turn can continue, and the HTTP status the web adapter
should answer with. Messages that may reach a client are passed through
:func:`sanitize_message` first.
"""

from __future__ import annotations

import re

MAX_MESSAGE_CHARS = 300

_TRACEBACK_LINE = re.compile(r"^\s*(Traceback \(most recent call last\):|File \".*\", line \d+.*|at .+\(.+:\d+:\d+\))\s*$")
_SECRET_SUBSTITUTIONS = [
    (re.compile(r"sk-[A-Za-z0-9_\-]{8,}"), "[redacted]"),
    (re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]+"), "Bearer [redacted]"),
    (re.compile(r"(?i)\b(api[_-]?key|token|secret|password|passwd|authorization)\b(\s*[:=]\s*)\S+"), r"\1\2[redacted]"),
    (re.compile(r"(https?://)[^/\s:@]+:[^/\s@]+@"), r"\1[redacted]@"),
]


def sanitize_message(message: object, limit: int = MAX_MESSAGE_CHARS) -> str:
    """Strip stack frames and credentials from *message* and bound its length."""
    text = str(message) if message is not None else ""
    lines = [line for line in text.splitlines() if not _TRACEBACK_LINE.match(line)]
    text = " ".join(line.strip() for line in lines if line.strip())
    for pattern, replacement in _SECRET_SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    if len(text) > limit:
        text = text[: limit - 3].rstrip() + "..."
    return text


class OrchestratorError(Exception):
    """Base class for every error the orchestrator reports by kind."""

    kind: str = "internal_error"
    fatal: bool = True
    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        self.message = sanitize_message(message) or self.kind.replace("_", " ")
        self.detail = detail or {}
        super().__init__(self.message)

    def to_payload(self, request_id: str) -> dict:
        return {"kind": self.kind, "message": self.message, "request_id": request_id}


class TurnValidationError(OrchestratorError):
    kind = "validation_error"
    http_status = 400


class UnresolvableToolError(OrchestratorError):
    kind = "unresolvable_tool"
    fatal = False
    http_status = 422


class BackendUnavailableError(OrchestratorError):
    """Timeout or 5xx after the single permitted retry."""

    kind = "backend_unavailable"
    fatal = False
    http_status = 503


class BackendRejectedError(OrchestratorError):
    """4xx from a backend, or arguments that failed schema validation. Never retried."""

    kind = "backend_rejected"
    fatal = False
    http_status = 422


class ToolCallLoopExceededError(OrchestratorError):
    kind = "tool_call_loop_exceeded"
    http_status = 508


class ConversationStateMiss(OrchestratorError):
    kind = "conversation_state_miss"
    fatal = False
    http_status = 404


class UpstreamModelError(OrchestratorError):
    kind = "upstream_model_error"
    http_status = 502


class TurnTimeoutError(OrchestratorError):
    kind = "turn_timeout"
    http_status = 504


class InternalError(OrchestratorError):
    kind = "internal_error"

    def __init__(self, message: str = "Unexpected internal error", **kwargs) -> None:
        super().__init__(message, **kwargs)


class ConfigurationError(Exception):
    """Raised at startup when components are wired with an invalid configuration."""


class RegistryConfigError(ConfigurationError):
    """Tool registry declarations violate a structural invariant."""
