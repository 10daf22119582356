"""Core data models — no internal dependencies, only Pydantic + stdlib."""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Inbound turn (adapter → orchestrator)
# ---------------------------------------------------------------------------

MAX_MEMORY_HINTS = 20
MAX_HINT_KEY_CHARS = 64
MAX_HINT_VALUE_CHARS = 500
REQUEST_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


class TurnRequest(BaseModel):
    """One incoming request cycle. Frozen once constructed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    input: str = Field(min_length=1)
    domain: str | None = None
    previous_turn_id: str | None = None
    continue_conversation: bool = False
    user_id: str | None = None
    memories: dict[str, str] = Field(default_factory=dict)
    stream: bool = False
    request_id: str = Field(default_factory=new_request_id, pattern=REQUEST_ID_PATTERN)

    @field_validator("input")
    @classmethod
    def _input_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("input must not be blank")
        return v

    @field_validator("memories")
    @classmethod
    def _memories_small(cls, v: dict[str, str]) -> dict[str, str]:
        if len(v) > MAX_MEMORY_HINTS:
            raise ValueError(f"at most {MAX_MEMORY_HINTS} memory hints are accepted")
        for key, value in v.items():
            if not key or len(key) > MAX_HINT_KEY_CHARS:
                raise ValueError(f"memory hint keys must be 1-{MAX_HINT_KEY_CHARS} characters")
            if len(value) > MAX_HINT_VALUE_CHARS:
                raise ValueError(f"memory hint '{key}' exceeds {MAX_HINT_VALUE_CHARS} characters")
        return v


# ---------------------------------------------------------------------------
# Outbound events (orchestrator → adapter)
# ---------------------------------------------------------------------------

class EngineEventType(str, Enum):
    CREATED = "response.created"
    IN_PROGRESS = "response.in_progress"
    TEXT_DELTA = "response.output_text.delta"
    TOOL_CALL_STARTED = "response.tool_call.started"
    TOOL_CALL_COMPLETED = "response.tool_call.completed"
    COMPLETED = "response.completed"
    ERROR = "error"


class EngineEvent(BaseModel):
    type: EngineEventType
    sequence: int
    request_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


# ---------------------------------------------------------------------------
# Tool calls and results
# ---------------------------------------------------------------------------

class ToolCall(BaseModel):
    """A single tool invocation requested by the model."""

    call_id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    domain: str = "general"


class ToolResult(BaseModel):
    """Normalized outcome of dispatching one ToolCall."""

    call_id: str
    name: str
    ok: bool
    source: Literal["cache", "live", "none"] = "live"
    backend: str | None = None
    content: str
    error_kind: str | None = None
    error_message: str | None = None
    latency_ms: float = 0.0

    def summary(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "call_id": self.call_id,
            "name": self.name,
            "ok": self.ok,
            "source": self.source,
            "backend": self.backend,
        }
        if not self.ok:
            data["error"] = {"kind": self.error_kind, "message": self.error_message}
        return data


# ---------------------------------------------------------------------------
# Model I/O
# ---------------------------------------------------------------------------

class ModelRequest(BaseModel):
    instructions: str
    input: str | list[dict[str, Any]]
    tools: list[dict[str, Any]] = Field(default_factory=list)
    previous_response_id: str | None = None


class ModelToolCall(BaseModel):
    call_id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ModelResult(BaseModel):
    """Complete model response: final text, tool calls, or both."""

    id: str
    text: str = ""
    tool_calls: list[ModelToolCall] = Field(default_factory=list)
    usage: dict[str, Any] | None = None


class ModelStreamEventType(str, Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    TEXT_DELTA = "text_delta"
    TOOL_CALL = "tool_call"
    COMPLETED = "completed"
    ERROR = "error"


class ModelStreamEvent(BaseModel):
    type: ModelStreamEventType
    response_id: str | None = None
    delta: str | None = None
    tool_call: ModelToolCall | None = None
    result: ModelResult | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Conversation continuity
# ---------------------------------------------------------------------------

class ConversationContext(BaseModel):
    previous_response_id: str | None = None
    conversation_key: str | None = None
    fresh: bool = True
    missed: bool = False


# ---------------------------------------------------------------------------
# Non-streaming answer payload
# ---------------------------------------------------------------------------

class TurnResponse(BaseModel):
    id: str
    request_id: str
    object: Literal["turn"] = "turn"
    status: Literal["completed"] = "completed"
    domain: str
    output_text: str = ""
    tool_results: list[dict[str, Any]] = Field(default_factory=list)
    continued_from: str | None = None
    conversation_miss: bool = False
    rounds: int = 0
    usage: dict[str, Any] | None = None
    created_at: float = Field(default_factory=time.time)
