import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any

from turnstream.instrumentation import record_error, tool_span
from turnstream.message import ResultEnvelope, ToolCallRequest, ToolCallResult
from turnstream.tools import Tool, ToolDeclarationError, ToolSpec

logger = logging.getLogger(__name__)

TOOL_NOT_FOUND = "Tool not found"


class ToolDispatcher:
    """Resolves tool calls by name and runs them.

    Tool failures never escape: a missing tool or a raising tool both
    come back as a failed :class:`ResultEnvelope` so the model can decide
    what to do next.

    Args:
        tools: The tool catalog.  Only :class:`Tool` entries are
            invocable; pre-formatted declarations are skipped.

    Raises:
        ToolDeclarationError: If two tools share a name.
    """

    def __init__(self, tools: Sequence[ToolSpec] = ()):
        self._registry: dict[str, Tool] = {}
        for t in tools:
            if not isinstance(t, Tool):
                continue
            if t.name in self._registry:
                raise ToolDeclarationError(f"Duplicate tool name: {t.name}")
            self._registry[t.name] = t

    def resolve(self, name: str) -> Tool | None:
        return self._registry.get(name)

    async def invoke(
        self, tool: Tool, arguments: dict[str, Any] | str,
    ) -> ResultEnvelope:
        async with tool_span(tool.name) as span:
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments) if arguments else {}
                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid JSON in arguments for {tool.name}: {e}")
                    record_error(span, e)
                    return ResultEnvelope.failure(f"Invalid arguments: {e}")
            if not isinstance(arguments, dict):
                logger.warning(f"Arguments for {tool.name} are not an object: {arguments!r}")
                return ResultEnvelope.failure(
                    f"Invalid arguments: expected an object, got {type(arguments).__name__}"
                )

            logger.info(f"Calling {tool.name} with {arguments}")
            try:
                payload = await tool(**arguments)
            except Exception as e:
                logger.error(f"Tool {tool.name} raised: {e}")
                record_error(span, e)
                return ResultEnvelope.failure(str(e))
            return ResultEnvelope.success(payload)

    async def dispatch(self, call: ToolCallRequest) -> ToolCallResult:
        tool = self.resolve(call.name)
        if tool is None:
            logger.warning(f"Tool not found: {call.name}")
            envelope = ResultEnvelope.failure(TOOL_NOT_FOUND)
        else:
            envelope = await self.invoke(tool, call.arguments)
        return ToolCallResult(name=call.name, result=envelope)

    async def run_batch(
        self, calls: Sequence[ToolCallRequest],
    ) -> list[ToolCallResult]:
        """Run every call concurrently; results follow call order."""
        return list(await asyncio.gather(*(self.dispatch(c) for c in calls)))
