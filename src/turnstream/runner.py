import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from turnstream.agent import Agent
from turnstream.events import (
    RunCompleteEvent,
    StreamEvent,
    TextDeltaEvent,
    ToolResultsEvent,
    TurnCompleteEvent,
)
from turnstream.instrumentation import (
    conversation_span,
    record_error,
    record_tool_calls,
    turn_span,
)
from turnstream.message import Content, ContentRole, ToolCallRequest
from turnstream.streaming import reconcile

logger = logging.getLogger(__name__)

MAX_TURNS = 5


@dataclass
class TurnResult:
    """What one model turn produced."""

    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)


@dataclass
class RunResult:
    """The result of a single Runner.run() invocation."""

    text: str
    turns_taken: int
    history: list[Content]


class Runner:
    """Executes the bounded tool-calling loop for one request.

    Each turn streams the model's answer, reconciling text fragments into
    deltas, and collects tool calls.  A turn with tool calls appends the
    calls and their results to the history and loops; a turn without
    tool calls ends the conversation.  Hitting ``max_turns`` also ends it,
    without error.

    ``run()`` drains ``iter()``.  ``iter()`` is the streaming entry point.

    Args:
        max_turns: Maximum number of model turns per conversation.
    """

    def __init__(self, max_turns: int = MAX_TURNS):
        self.max_turns = max_turns

    async def run(self, agent: Agent, contents: list[Content]) -> RunResult:
        """Run the loop to completion and return its result."""
        result: RunResult | None = None
        async for event in self.iter(agent, contents):
            if isinstance(event, RunCompleteEvent):
                result = event.result
        if result is None:
            raise RuntimeError("iter() ended without emitting RunCompleteEvent")
        return result

    async def iter(
        self, agent: Agent, contents: list[Content],
    ) -> AsyncIterator[StreamEvent]:
        """Run the loop, yielding events as execution proceeds.

        Yields :class:`TextDeltaEvent` for every reconciled delta,
        :class:`ToolResultsEvent` after each tool batch, and finally one
        :class:`RunCompleteEvent`.  Backend errors propagate.
        """
        history = list(contents)
        turns_taken = 0
        text = ""

        async with conversation_span(agent.model, self.max_turns):
            while turns_taken < self.max_turns:
                turns_taken += 1
                turn = TurnResult()
                async for event in self.stream_turn(agent, history, turns_taken):
                    if isinstance(event, TurnCompleteEvent):
                        turn = event.result
                    else:
                        yield event
                text = turn.text

                if not turn.tool_calls:
                    break

                history.append(Content(role=ContentRole.MODEL, parts=turn.tool_calls))
                results = await agent.dispatcher.run_batch(turn.tool_calls)
                history.append(Content(role=ContentRole.TOOL, parts=results))
                yield ToolResultsEvent(
                    turn=turns_taken, calls=turn.tool_calls, results=results,
                )
            else:
                logger.warning(
                    f"{agent.name} reached the turn limit ({self.max_turns})"
                )

        yield RunCompleteEvent(result=RunResult(
            text=text, turns_taken=turns_taken, history=history,
        ))

    async def stream_turn(
        self, agent: Agent, history: list[Content], turn: int = 1,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one model turn.

        Text parts are handled before tool-call parts within a chunk.
        Ends with a :class:`TurnCompleteEvent` carrying the
        :class:`TurnResult`.
        """
        acc = ""
        tool_calls: list[ToolCallRequest] = []

        async with turn_span(agent.provider.system, agent.model, turn) as span:
            try:
                async for chunk in agent.provider.stream_content(
                    model=agent.model,
                    contents=history,
                    tools=agent.tool_catalog or None,
                ):
                    for frag in chunk.texts:
                        delta, acc = reconcile(acc, frag)
                        if delta:
                            yield TextDeltaEvent(delta=delta)
                    tool_calls.extend(chunk.tool_calls)
            except Exception as e:
                record_error(span, e)
                raise
            record_tool_calls(span, len(tool_calls))

        logger.debug(f"Turn {turn}: {len(acc)} chars, {len(tool_calls)} tool calls")
        yield TurnCompleteEvent(result=TurnResult(text=acc, tool_calls=tool_calls))
