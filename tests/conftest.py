import json

import pytest

from turnstream.agent import Agent
from turnstream.message import TextPart, ToolCallRequest
from turnstream.provider import ModelProvider
from turnstream.streaming import ModelChunk
from turnstream.tools import tool


# ---------------------------------------------------------------------------
# Scripted provider
# ---------------------------------------------------------------------------

class ScriptedProvider(ModelProvider):
    """Provider that replays pre-queued turns. No network calls.

    Each queued turn is a list of :class:`ModelChunk`; an exception in
    the list is raised when the stream reaches it.
    """

    system = "scripted"

    def __init__(self):
        self.responses: list[list] = []
        self.call_log: list[dict] = []

    async def stream_content(self, model, contents, tools=None):
        self.call_log.append({
            "model": model, "contents": list(contents), "tools": tools,
        })
        for item in self.responses.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item


# ---------------------------------------------------------------------------
# Turn builder helpers
# ---------------------------------------------------------------------------

def text_turn(*fragments: str) -> list[ModelChunk]:
    """A turn streaming one text fragment per chunk."""
    return [ModelChunk(parts=[TextPart(text=f)]) for f in fragments]


def tool_turn(*calls: tuple[str, dict]) -> list[ModelChunk]:
    """A turn requesting every ``(name, args)`` in *calls* in one chunk."""
    return [ModelChunk(parts=[
        ToolCallRequest(name=name, arguments=args) for name, args in calls
    ])]


# ---------------------------------------------------------------------------
# Recording output channel
# ---------------------------------------------------------------------------

class RecordingChannel:
    """Output channel that keeps everything written to it."""

    def __init__(self):
        self.frames: list[bytes] = []
        self.closed = False
        self.close_count = 0

    async def write(self, data: bytes) -> None:
        assert not self.closed, "write after close"
        self.frames.append(data)

    async def close(self) -> None:
        self.closed = True
        self.close_count += 1

    def events(self) -> list[dict]:
        return [parse_frame(f) for f in self.frames]


def parse_frame(frame: bytes) -> dict:
    text = frame.decode("utf-8")
    assert text.startswith("data: ")
    assert text.endswith("\n\n")
    return json.loads(text.removeprefix("data: ").strip())


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@tool
def echo(text: str):
    """Echo text back."""
    return text


@tool
def explode():
    """Always fails."""
    raise RuntimeError("boom")


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def make_agent(provider):
    """Factory fixture to build agents around the scripted provider."""
    def _make(tools=None, name="test_agent", model="mock-model"):
        return Agent(name=name, model=model, provider=provider, tools=tools or [])
    return _make
