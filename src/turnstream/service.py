import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from starlette.responses import JSONResponse, Response, StreamingResponse

from turnstream.agent import Agent
from turnstream.events import TextDeltaEvent
from turnstream.message import Content, UIMessage
from turnstream.runner import Runner
from turnstream.sse import EventEmitter, OutputChannel, QueueChannel
from turnstream.transcript import MessageValidationError, to_contents, validate_messages

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class AgentService:
    """Streams an agent's answer to a chat client.

    The service validates the client's messages, adapts them to model
    content, runs the conversation loop and writes the event stream.
    Validation failures are rejected before any streaming starts; a
    failure during the conversation is reported inline and the stream
    still ends with the normal closing events.

    Args:
        agent: The agent configuration to run.
        runner: Loop runner, or a default ``Runner()``.
    """

    def __init__(self, agent: Agent, runner: Runner | None = None):
        self.agent = agent
        self.runner = runner or Runner()

    async def respond(self, contents: list[Content], channel: OutputChannel) -> None:
        """Run the conversation and write every event to *channel*.

        The channel is always closed on return.
        """
        emitter = EventEmitter(channel)
        try:
            await emitter.start()
            async for event in self.runner.iter(self.agent, contents):
                if isinstance(event, TextDeltaEvent):
                    await emitter.text_delta(event.delta)
            await emitter.end()
        except Exception as e:
            logger.exception(f"Error streaming response: {e}")
            await emitter.error(e)
            await emitter.end()

    def create_streaming_response(
        self, messages: Sequence[UIMessage | dict[str, Any]] | None,
    ) -> StreamingResponse:
        """Build the SSE response for *messages*.

        Raises:
            MessageValidationError: If *messages* is missing or empty.
        """
        contents = to_contents(validate_messages(messages))

        async def body() -> AsyncIterator[bytes]:
            channel = QueueChannel()
            task = asyncio.create_task(self.respond(contents, channel))
            try:
                async for data in channel:
                    yield data
                await task
            finally:
                if not task.done():
                    logger.info("Client disconnected, cancelling conversation")
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        return StreamingResponse(
            body(), media_type="text/event-stream", headers=SSE_HEADERS,
        )

    def handle(self, messages: Sequence[UIMessage | dict[str, Any]] | None) -> Response:
        """Return the streaming response, or a 400 for unusable input."""
        try:
            return self.create_streaming_response(messages)
        except MessageValidationError as e:
            return self.create_error_response(str(e), 400, e.details)

    @staticmethod
    def create_error_response(
        message: str, status: int, details: str | None = None,
    ) -> JSONResponse:
        body = {"error": message}
        if details:
            body["details"] = details
        return JSONResponse(body, status_code=status)
