"""Tests for SSE framing, the in-memory channel and the event emitter."""

import dataclasses

import pytest

from turnstream.sse import (
    EventEmitter,
    QueueChannel,
    SSEChunk,
    encode_sse_chunk,
    format_sse_chunk,
)

from tests.conftest import RecordingChannel


class TestFraming:
    def test_data_prefix_and_blank_line(self):
        frame = format_sse_chunk(SSEChunk(type="start"))
        assert frame == 'data: {"type": "start"}\n\n'

    def test_unset_fields_omitted(self):
        chunk = SSEChunk(type="text-delta", id="text-1", delta="hi")
        assert chunk.to_dict() == {"type": "text-delta", "id": "text-1", "delta": "hi"}

    def test_finish_reason_is_camel_case(self):
        chunk = SSEChunk(type="finish", finish_reason="stop")
        assert chunk.to_dict() == {"type": "finish", "finishReason": "stop"}

    def test_wire_fields(self):
        assert [f.name for f in dataclasses.fields(SSEChunk)] == [
            "type", "id", "delta", "finish_reason",
        ]

    def test_encodes_utf8(self):
        frame = encode_sse_chunk(SSEChunk(type="text-delta", id="t", delta="héllo ❌"))
        assert "héllo ❌".encode("utf-8") in frame


class TestEventEmitter:
    @pytest.mark.asyncio
    async def test_full_bracket(self):
        channel = RecordingChannel()
        emitter = EventEmitter(channel)

        await emitter.start()
        await emitter.text_delta("Hello")
        await emitter.end()

        assert channel.events() == [
            {"type": "start"},
            {"type": "start-step"},
            {"type": "text-start", "id": "text-1"},
            {"type": "text-delta", "id": "text-1", "delta": "Hello"},
            {"type": "text-end", "id": "text-1"},
            {"type": "finish-step"},
            {"type": "finish", "finishReason": "stop"},
        ]
        assert channel.closed

    @pytest.mark.asyncio
    async def test_error_is_an_inline_delta(self):
        channel = RecordingChannel()
        await EventEmitter(channel).error(RuntimeError("backend down"))

        [event] = channel.events()
        assert event["type"] == "text-delta"
        assert event["delta"] == "❌ System Error: backend down"

    @pytest.mark.asyncio
    async def test_error_without_message_uses_type_name(self):
        channel = RecordingChannel()
        await EventEmitter(channel).error(TimeoutError())

        assert channel.events()[0]["delta"].endswith("TimeoutError")


class TestQueueChannel:
    @pytest.mark.asyncio
    async def test_iterates_until_closed(self):
        channel = QueueChannel()
        await channel.write(b"a")
        await channel.write(b"b")
        await channel.close()

        assert [d async for d in channel] == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_writes_after_close_dropped(self):
        channel = QueueChannel()
        await channel.close()
        await channel.write(b"late")
        await channel.close()

        assert [d async for d in channel] == []
