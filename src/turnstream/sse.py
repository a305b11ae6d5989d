"""Server-Sent Events framing and the event emitter."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

TEXT_ID = "text-1"
ERROR_PREFIX = "❌ System Error: "


@dataclass
class SSEChunk:
    """One wire event.  Unset fields are left out of the JSON body."""

    type: str
    id: str | None = None
    delta: str | None = None
    finish_reason: str | None = None

    def to_dict(self) -> dict:
        body = {"type": self.type}
        if self.id is not None:
            body["id"] = self.id
        if self.delta is not None:
            body["delta"] = self.delta
        if self.finish_reason is not None:
            body["finishReason"] = self.finish_reason
        return body


def format_sse_chunk(chunk: SSEChunk) -> str:
    return f"data: {json.dumps(chunk.to_dict(), ensure_ascii=False)}\n\n"


def encode_sse_chunk(chunk: SSEChunk) -> bytes:
    return format_sse_chunk(chunk).encode("utf-8")


class OutputChannel(Protocol):
    """Where encoded events go: incremental writes, then one close."""

    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


class QueueChannel:
    """An in-memory channel whose writes are read back by iterating it.

    Iteration ends once the channel is closed and drained.  Writes after
    close are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self.closed = False

    async def write(self, data: bytes) -> None:
        if not self.closed:
            await self._queue.put(data)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self._queue.put(None)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            data = await self._queue.get()
            if data is None:
                return
            yield data


class EventEmitter:
    """Writes the lifecycle bracket and text deltas to a channel.

    A stream always reads ``start``, ``start-step``, ``text-start``,
    any number of ``text-delta`` events, then ``text-end``,
    ``finish-step``, ``finish``.
    """

    def __init__(self, channel: OutputChannel, text_id: str = TEXT_ID):
        self.channel = channel
        self.text_id = text_id

    async def send(self, *chunks: SSEChunk) -> None:
        for chunk in chunks:
            await self.channel.write(encode_sse_chunk(chunk))

    async def start(self) -> None:
        await self.send(
            SSEChunk(type="start"),
            SSEChunk(type="start-step"),
            SSEChunk(type="text-start", id=self.text_id),
        )

    async def text_delta(self, delta: str) -> None:
        await self.send(SSEChunk(type="text-delta", id=self.text_id, delta=delta))

    async def error(self, exc: BaseException) -> None:
        """Surface a fatal error inline, as text the client will render."""
        await self.text_delta(f"{ERROR_PREFIX}{str(exc) or type(exc).__name__}")

    async def end(self, finish_reason: str = "stop") -> None:
        await self.send(
            SSEChunk(type="text-end", id=self.text_id),
            SSEChunk(type="finish-step"),
            SSEChunk(type="finish", finish_reason=finish_reason),
        )
        await self.channel.close()
