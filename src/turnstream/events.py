"""Events yielded by the runner while a conversation executes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from turnstream.message import ToolCallRequest, ToolCallResult


@dataclass
class StreamEvent:
    """Base for all runner events."""


@dataclass
class TextDeltaEvent(StreamEvent):
    """Reconciled text the client has not seen yet."""

    delta: str = ""


@dataclass
class ToolResultsEvent(StreamEvent):
    """A tool batch settled; ``results[i]`` answers ``calls[i]``."""

    turn: int = 0
    calls: list[ToolCallRequest] = field(default_factory=list)
    results: list[ToolCallResult] = field(default_factory=list)


@dataclass
class TurnCompleteEvent(StreamEvent):
    """Last event of a single turn.  Consumed by the loop, not re-yielded."""

    result: Any = None


@dataclass
class RunCompleteEvent(StreamEvent):
    """Final event — always the last event yielded by ``Runner.iter``."""

    result: Any = None
