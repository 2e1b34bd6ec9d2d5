"""Shared data types for the chat client."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable


# ---------------------------------------------------------------------------
# Conversation types
# ---------------------------------------------------------------------------

class Role(str, enum.Enum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """One turn of a conversation."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


# ---------------------------------------------------------------------------
# Stream types
# ---------------------------------------------------------------------------

class StreamMode(enum.Enum):
    """Framing of a streamed response body."""

    UNDETERMINED = "undetermined"
    NDJSON = "ndjson"
    SSE = "sse"


@dataclass
class SSEEvent:
    """Server-Sent Event being accumulated between blank lines."""

    event: str | None = None
    data: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.event is None and not self.data

    def reset(self) -> None:
        self.event = None
        self.data = []


@dataclass(frozen=True)
class Envelope:
    """One parsed upstream message before text extraction.

    ``payload`` is the decoded JSON value, or the raw string when an SSE
    event's data is not JSON.
    """

    payload: Any
    event: str | None = None
    done: bool = False


@dataclass(frozen=True)
class StreamResult:
    """Outcome of one chat call."""

    full_response: str
    raw: Any = None
    completed: bool = False  # an explicit done signal was seen


ChunkCallback = Callable[[dict[str, str]], Any]


# ---------------------------------------------------------------------------
# Request types
# ---------------------------------------------------------------------------

@dataclass
class ChatRequest:
    """Everything needed to issue a single chat call."""

    prompt: str
    model: str
    history: list[ChatMessage] = field(default_factory=list)
    stream: bool = True
    temperature: float | None = None
    max_tokens: int | None = None
    max_duration: float | None = None
    on_chunk: ChunkCallback | None = None


class RequestState(enum.Enum):
    """Lifecycle of one chat call."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETING = "completing"
    FAILED = "failed"
