"""Drive decoder, detector, parser and extractor over a response body.

``StreamSession`` is the push side: feed it byte chunks and collect
envelopes.  ``iter_envelopes`` / ``iter_text`` wrap it as async generators
for callers that want to pull, and ``aggregate`` consumes a whole stream
into a ``StreamResult`` while reporting each text increment to a callback.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, AsyncIterable, AsyncIterator

from singaseong_chat.types import ChunkCallback, Envelope, StreamMode, StreamResult

from .decoder import LineDecoder
from .detector import FormatDetector
from .extractor import extract_text, is_control
from .parser import NDJSONParser, SSEParser

_logger = logging.getLogger(__name__)


class StreamSession:
    """Per-stream parsing state.  Not shared between streams."""

    def __init__(self, content_type: str | None = None) -> None:
        self._decoder = LineDecoder()
        self._detector = FormatDetector(content_type)
        self._ndjson = NDJSONParser()
        self._sse = SSEParser()
        self._finished = False

    @property
    def mode(self) -> StreamMode:
        return self._detector.mode

    @property
    def malformed_lines(self) -> int:
        return self._ndjson.malformed

    def feed(self, chunk: bytes) -> list[Envelope]:
        envelopes: list[Envelope] = []
        for line in self._decoder.feed(chunk):
            envelopes.extend(self._parse_line(line))
        return envelopes

    def finish(self) -> list[Envelope]:
        """Flush the tail line and any open SSE event.  Idempotent."""
        if self._finished:
            return []
        self._finished = True
        envelopes: list[Envelope] = []
        for line in self._decoder.flush():
            envelopes.extend(self._parse_line(line, final=True))
        if self._detector.mode is StreamMode.SSE:
            envelopes.extend(self._sse.finish())
        self._detector.finalize()
        return envelopes

    def _parse_line(self, line: str, final: bool = False) -> list[Envelope]:
        mode = self._detector.observe(line)
        if mode is StreamMode.SSE:
            return self._sse.feed_line(line)
        return self._ndjson.feed_line(line, final=final)


async def iter_envelopes(
    chunks: AsyncIterable[bytes], content_type: str | None = None,
) -> AsyncIterator[Envelope]:
    """Yield envelopes until a done signal or the end of *chunks*."""
    session = StreamSession(content_type)
    async for chunk in chunks:
        for envelope in session.feed(chunk):
            yield envelope
            if envelope.done:
                return
    for envelope in session.finish():
        yield envelope
        if envelope.done:
            return


async def iter_text(
    chunks: AsyncIterable[bytes], content_type: str | None = None,
) -> AsyncIterator[str]:
    """Yield each non-empty text increment in arrival order."""
    async for envelope in iter_envelopes(chunks, content_type):
        text = extract_text(envelope.payload, envelope.event)
        if text:
            yield text


async def aggregate(
    chunks: AsyncIterable[bytes],
    *,
    content_type: str | None = None,
    on_chunk: ChunkCallback | None = None,
) -> StreamResult:
    """Consume *chunks* and return the concatenated response text.

    *on_chunk* receives ``{"response": text}`` once per non-empty increment,
    in order.  Control envelopes and the SSE ``[DONE]`` sentinel never reach
    it.  An awaitable return value is awaited before the next chunk.
    """
    parts: list[str] = []
    last: Any = None
    completed = False

    async for envelope in iter_envelopes(chunks, content_type):
        if envelope.payload is not None and not is_control(
            envelope.payload, envelope.event,
        ):
            last = envelope.payload
        text = extract_text(envelope.payload, envelope.event)
        if text:
            parts.append(text)
            if on_chunk is not None:
                result = on_chunk({"response": text})
                if inspect.isawaitable(result):
                    await result
        if envelope.done:
            completed = True

    full = "".join(parts)
    _logger.debug(
        "Stream finished (%s): %d chars in %d chunks",
        "done" if completed else "eof", len(full), len(parts),
    )
    return StreamResult(full_response=full, raw=last, completed=completed)
