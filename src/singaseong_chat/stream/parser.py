"""Line-to-envelope parsers for NDJSON and Server-Sent Event streams."""

from __future__ import annotations

import json
import logging
from typing import Any

from singaseong_chat.errors import MalformedChunk
from singaseong_chat.types import Envelope, SSEEvent

_logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


def _is_done(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("done") is True


def parse_json_line(line: str) -> Any:
    """Decode one stream line, raising ``MalformedChunk`` on failure."""
    try:
        return json.loads(line)
    except ValueError as e:
        raise MalformedChunk(line, str(e)) from e


# ---------------------------------------------------------------------------
# NDJSON
# ---------------------------------------------------------------------------

class NDJSONParser:
    """One JSON document per line."""

    def __init__(self) -> None:
        self.malformed = 0

    def feed_line(self, line: str, *, final: bool = False) -> list[Envelope]:
        """Parse *line*; *final* marks an unterminated tail at stream end.

        A complete line that is not JSON is logged and skipped.  The tail
        may simply be truncated, so it is dropped quietly.
        """
        stripped = line.strip()
        if not stripped:
            return []
        try:
            payload = parse_json_line(stripped)
        except MalformedChunk as e:
            if final:
                _logger.debug("Dropping unterminated tail line: %r", stripped[:80])
            else:
                self.malformed += 1
                _logger.warning("%s", e)
            return []
        return [Envelope(payload=payload, done=_is_done(payload))]


# ---------------------------------------------------------------------------
# Server-Sent Events
# ---------------------------------------------------------------------------

class SSEParser:
    """Group ``field: value`` lines into events delimited by blank lines.

    Comment lines (leading ``:``) are heartbeats and never flush.  ``id``
    and ``retry`` are accepted and discarded.  ``data: [DONE]`` ends the
    payload stream and is not forwarded as data.
    """

    def __init__(self) -> None:
        self._event = SSEEvent()
        self.done = False

    def feed_line(self, line: str) -> list[Envelope]:
        if self.done:
            return []
        if not line.strip():
            return self._flush()
        if line.startswith(":"):
            return []

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            if value.strip() == DONE_SENTINEL:
                envelopes = self._flush()
                self.done = True
                envelopes.append(Envelope(payload=None, done=True))
                return envelopes
            self._event.data.append(value)
        elif field == "event":
            self._event.event = value.strip() or None
        elif field in ("id", "retry"):
            pass
        else:
            _logger.debug("Ignoring unknown SSE field %r", field)
        return []

    def finish(self) -> list[Envelope]:
        """Flush an event left open by a stream without a final blank line."""
        if self.done:
            return []
        return self._flush()

    def _flush(self) -> list[Envelope]:
        event = self._event
        if not event.data:
            # An event name alone carries nothing to deliver.
            event.reset()
            return []
        joined = "\n".join(event.data)
        try:
            payload: Any = json.loads(joined)
        except ValueError:
            payload = joined
        envelope = Envelope(payload=payload, event=event.event, done=_is_done(payload))
        event.reset()
        return [envelope]
