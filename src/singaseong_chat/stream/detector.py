"""Sticky NDJSON / SSE framing detection."""

from __future__ import annotations

import json
import logging

from singaseong_chat.types import StreamMode

_logger = logging.getLogger(__name__)

_SSE_CONTENT_TYPE = "text/event-stream"
_SSE_PREFIXES = ("data:", "event:", "id:", "retry:", ":")


class FormatDetector:
    """Decide once per stream whether lines are NDJSON or SSE.

    The ``Content-Type`` header wins when it names ``text/event-stream``.
    Otherwise lines are sniffed until either an SSE field/comment line or
    a valid JSON line shows up.  Blank and unrecognisable lines leave the
    decision open.  Once set, the mode never changes.
    """

    def __init__(self, content_type: str | None = None) -> None:
        self._mode = StreamMode.UNDETERMINED
        if content_type and _SSE_CONTENT_TYPE in content_type.lower():
            self._set(StreamMode.SSE, "content type")

    @property
    def mode(self) -> StreamMode:
        return self._mode

    @property
    def decided(self) -> bool:
        return self._mode is not StreamMode.UNDETERMINED

    def observe(self, line: str) -> StreamMode:
        """Classify *line* if undecided and return the current mode."""
        if self.decided:
            return self._mode
        stripped = line.strip()
        if not stripped:
            return self._mode
        if line.startswith(_SSE_PREFIXES):
            self._set(StreamMode.SSE, "line prefix")
        elif _is_json(stripped):
            self._set(StreamMode.NDJSON, "json line")
        return self._mode

    def finalize(self) -> StreamMode:
        """Settle an undecided stream as NDJSON at end of input."""
        if not self.decided:
            self._set(StreamMode.NDJSON, "default")
        return self._mode

    def _set(self, mode: StreamMode, reason: str) -> None:
        self._mode = mode
        _logger.debug("Stream mode %s (%s)", mode.value, reason)


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True
