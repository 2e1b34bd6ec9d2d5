"""Tests for the stream aggregation pipeline."""

import json

from singaseong_chat.stream.aggregator import (
    StreamSession,
    aggregate,
    iter_envelopes,
    iter_text,
)
from singaseong_chat.types import StreamMode


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def _split(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


NDJSON_BODY = (
    '{"response": "안녕"}\n'
    '{"response": "하세요"}\n'
    '{"response": "!", "done": true}\n'
).encode("utf-8")


class TestAggregateNDJSON:
    async def test_round_trip(self):
        seen = []
        body = b'{"response": "Hi"}\n{"response": " there","done":true}\n'
        result = await aggregate(_chunks(body), on_chunk=seen.append)
        assert result.full_response == "Hi there"
        assert result.completed is True
        assert result.raw == {"response": " there", "done": True}
        assert seen == [{"response": "Hi"}, {"response": " there"}]

    async def test_split_points_do_not_matter(self):
        expected = await aggregate(_chunks(NDJSON_BODY))
        for size in range(1, len(NDJSON_BODY)):
            result = await aggregate(_chunks(*_split(NDJSON_BODY, size)))
            assert result.full_response == expected.full_response == "안녕하세요!"

    async def test_stops_reading_after_done(self):
        consumed = []

        async def body():
            for part in (b'{"response": "a", "done": true}\n', b'{"response": "b"}\n'):
                consumed.append(part)
                yield part

        result = await aggregate(body())
        assert result.full_response == "a"
        assert len(consumed) == 1

    async def test_eof_without_done(self):
        result = await aggregate(_chunks(b'{"response": "x"}\n{"response": "y"}'))
        assert result.full_response == "xy"
        assert result.completed is False

    async def test_malformed_trailing_line_dropped(self):
        body = b'{"response": "kept"}\n{"response": "trunc'
        result = await aggregate(_chunks(body))
        assert result.full_response == "kept"

    async def test_malformed_middle_line_skipped(self):
        body = b'{"response": "a"}\nnot json\n{"response": "b"}\n'
        result = await aggregate(_chunks(body))
        assert result.full_response == "ab"

    async def test_meta_never_reaches_callback(self):
        seen = []
        body = b'{"event":"meta","info":"x"}\n{"response": "ok"}\n'
        result = await aggregate(_chunks(body), on_chunk=seen.append)
        assert result.full_response == "ok"
        assert seen == [{"response": "ok"}]

    async def test_empty_stream(self):
        result = await aggregate(_chunks())
        assert result.full_response == ""
        assert result.raw is None

    async def test_async_callback_awaited(self):
        seen = []

        async def on_chunk(chunk):
            seen.append(chunk["response"])

        await aggregate(_chunks(b'{"response": "a"}\n{"response": "b"}\n'), on_chunk=on_chunk)
        assert seen == ["a", "b"]


class TestAggregateSSE:
    async def test_openai_deltas_and_done(self):
        seen = []
        body = (
            b'data: {"choices":[{"delta":{"content":"A"}}]}\n\n'
            b"data: [DONE]\n\n"
        )
        result = await aggregate(_chunks(body), on_chunk=seen.append)
        assert result.full_response == "A"
        assert result.completed is True
        assert seen == [{"response": "A"}]

    async def test_event_split_across_many_chunks(self):
        event = {"choices": [{"delta": {"content": "조각"}}]}
        body = f"event: message\ndata: {json.dumps(event)}\n\n".encode("utf-8")
        whole = [e async for e in iter_envelopes(_chunks(body))]
        pieces = [e async for e in iter_envelopes(_chunks(*_split(body, 3)))]
        assert len(whole) == len(pieces) == 1
        assert whole == pieces

    async def test_heartbeats_ignored(self):
        body = b": keep-alive\n\ndata: {\"response\": \"x\"}\n\n: ping\n\n"
        result = await aggregate(_chunks(body))
        assert result.full_response == "x"

    async def test_content_type_header(self):
        body = b'data: {"response": "hi"}\n\n'
        result = await aggregate(_chunks(body), content_type="text/event-stream")
        assert result.full_response == "hi"

    async def test_unflushed_event_at_eof(self):
        result = await aggregate(_chunks(b'data: {"response": "tail"}'))
        assert result.full_response == "tail"

    async def test_plain_text_data(self):
        result = await aggregate(_chunks(b"data: Hello\n\ndata:  world\n\n"))
        assert result.full_response == "Hello world"

    async def test_meta_event_name(self):
        body = b'event: meta\ndata: {"response": "hidden"}\n\ndata: {"response": "shown"}\n\n'
        result = await aggregate(_chunks(body))
        assert result.full_response == "shown"


class TestStreamSession:
    def test_mode_settles_once(self):
        s = StreamSession()
        assert s.mode is StreamMode.UNDETERMINED
        s.feed(b'{"response": "x"}\n')
        assert s.mode is StreamMode.NDJSON

    def test_finish_idempotent(self):
        s = StreamSession()
        s.feed(b'{"response": "x"}')
        assert len(s.finish()) == 1
        assert s.finish() == []

    def test_malformed_count(self):
        s = StreamSession()
        s.feed(b'{"response": "x"}\n{oops}\n')
        assert s.malformed_lines == 1


class TestIterText:
    async def test_yields_increments(self):
        body = b'{"response": "a"}\n{"response": ""}\n{"response": "b", "done": true}\n'
        assert [t async for t in iter_text(_chunks(body))] == ["a", "b"]
