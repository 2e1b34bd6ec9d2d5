"""Exception hierarchy for the chat client."""

from __future__ import annotations


class ChatError(Exception):
    """Base class for all client errors."""


class ConfigurationError(ChatError):
    """Credentials, model or config file are missing or invalid."""


class ValidationError(ChatError):
    """The caller supplied an unusable argument, e.g. an empty prompt."""


class TransportError(ChatError):
    """The request failed on the wire or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.body = body


class StreamUnsupported(ChatError):
    """Streaming was requested but the response carries no readable body."""


class ChatTimeout(ChatError, TimeoutError):
    """The guard duration elapsed and the request was aborted."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Request to {url} timed out after {timeout:g}s")
        self.url = url
        self.timeout = timeout


class MalformedChunk(ChatError):
    """A complete stream line could not be decoded as JSON."""

    def __init__(self, line: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"Malformed stream line {line[:80]!r}{detail}")
        self.line = line
