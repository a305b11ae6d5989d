"""Streaming primitives for model responses.

Providers yield :class:`ModelChunk` objects.  :func:`reconcile` turns the
text fragments inside those chunks into true deltas, and the
:class:`ToolCallAccumulator` reassembles tool calls whose arguments
arrive in fragments across multiple chunks.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from turnstream.message import Part, TextPart, ToolCallRequest


@dataclass
class ModelChunk:
    """Normalised streaming chunk from any provider.

    A chunk may carry text parts, tool-call parts, or both.
    """

    parts: list[Part] = field(default_factory=list)

    @property
    def texts(self) -> list[str]:
        return [p.text for p in self.parts if isinstance(p, TextPart)]

    @property
    def tool_calls(self) -> list[ToolCallRequest]:
        return [p for p in self.parts if isinstance(p, ToolCallRequest)]


def reconcile(acc: str, frag: str) -> tuple[str | None, str]:
    """Reduce one text fragment to the delta the client has not seen yet.

    Some backends stream true deltas, others resend the whole text
    accumulated so far on every chunk.  Both reduce to the same output:
    a fragment that extends *acc* contributes only its new suffix, an
    exact repeat contributes nothing, and anything else is taken
    verbatim as a new increment (no fuzzy diffing).

    Args:
        acc: Text emitted so far in this turn.
        frag: Newly received fragment.

    Returns:
        ``(delta, new_acc)`` where *delta* is ``None`` when nothing
        should be emitted.
    """
    if not frag:
        return None, acc
    if acc:
        if frag == acc:
            return None, acc
        if frag.startswith(acc):
            residual = frag[len(acc):]
            return residual, frag
    return frag, acc + frag


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class ToolCall:
    """A tool call being assembled from fragments."""

    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments."""

    def __init__(self) -> None:
        self._pending: dict[int, ToolCall] = {}

    def feed(self, fragment: ToolCallFragment) -> None:
        if fragment.index not in self._pending:
            self._pending[fragment.index] = ToolCall()
        tc = self._pending[fragment.index]
        if fragment.call_id is not None:
            tc.id = fragment.call_id
        if fragment.name is not None:
            tc.name = fragment.name
        if fragment.arguments_delta is not None:
            tc.arguments += fragment.arguments_delta

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order."""
        return [self._pending[i] for i in sorted(self._pending)]
