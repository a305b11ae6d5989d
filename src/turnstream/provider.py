import asyncio
import json
import logging
import os
from collections import deque
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from turnstream.message import (
    Content,
    ContentRole,
    TextPart,
    ToolCallRequest,
)
from turnstream.streaming import ModelChunk, ToolCallAccumulator, ToolCallFragment
from turnstream.tools import FunctionDeclarations

logger = logging.getLogger(__name__)


class ModelProvider:
    """Interface every model backend implements.

    ``stream_content`` submits the conversation and yields
    :class:`ModelChunk` objects as the backend produces them.  Errors are
    raised to the caller unchanged; providers make no retry decisions
    beyond what their client library does.
    """

    system = "unknown"

    async def stream_content(
            self,
            model: str,
            contents: list[Content],
            tools: list[FunctionDeclarations] | None = None,
    ) -> AsyncIterator[ModelChunk]:
        raise NotImplementedError
        yield  # pragma: no cover


def sanitize_schema(schema: Any) -> Any:
    """Lower-case every ``type`` in a JSON schema, recursively.

    Declarations written for Gemini use ``"STRING"``/``"OBJECT"``;
    OpenAI-style backends reject those.
    """
    if isinstance(schema, list):
        return [sanitize_schema(s) for s in schema]
    if not isinstance(schema, dict):
        return schema
    cleaned = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            cleaned[key] = value.lower()
        elif key == "properties" and isinstance(value, dict):
            cleaned[key] = {k: sanitize_schema(v) for k, v in value.items()}
        elif isinstance(value, (dict, list)):
            cleaned[key] = sanitize_schema(value)
        else:
            cleaned[key] = value
    return cleaned


def to_chat_tools(tools: list[FunctionDeclarations] | None) -> list[dict]:
    """Flatten declaration groups into OpenAI function tools."""
    chat_tools = []
    for group in tools or []:
        for decl in group.function_declarations:
            if not decl.get("name"):
                continue
            chat_tools.append({
                "type": "function",
                "function": {
                    "name": decl["name"],
                    "description": decl.get("description") or "",
                    "parameters": sanitize_schema(
                        decl.get("parameters") or {"type": "object", "properties": {}}
                    ),
                },
            })
    return chat_tools


def to_chat_messages(contents: list[Content]) -> list[dict]:
    """Convert content history into chat-completions messages.

    Each tool result becomes its own ``tool`` message.  Tool call ids are
    synthesised here and paired with results in order, since the history
    correlates calls and results by position.
    """
    messages = []
    pending_ids: deque[str] = deque()
    call_seq = 0
    for content in contents:
        if content.role == ContentRole.TOOL:
            for part in content.parts:
                msg = {"role": "tool", "content": json.dumps(part.response(), default=str)}
                if pending_ids:
                    msg["tool_call_id"] = pending_ids.popleft()
                messages.append(msg)
            continue

        role = "assistant" if content.role == ContentRole.MODEL else "user"
        text = "\n".join(p.text for p in content.parts if isinstance(p, TextPart))
        message: dict[str, Any] = {"role": role, "content": text}
        calls = [p for p in content.parts if isinstance(p, ToolCallRequest)]
        if calls:
            message["tool_calls"] = []
            for call in calls:
                call_seq += 1
                call_id = f"call_{call_seq}"
                pending_ids.append(call_id)
                arguments = call.arguments
                if not isinstance(arguments, str):
                    arguments = json.dumps(arguments)
                message["tool_calls"].append({
                    "id": call_id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": arguments},
                })
        if message["content"] or calls:
            messages.append(message)
    return messages


def _decode_arguments(name: str, raw: str) -> dict[str, Any] | str:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not decode arguments for {name}: {e}")
        return raw
    if not isinstance(decoded, dict):
        logger.warning(f"Arguments for {name} are not a JSON object: {raw}")
        return raw
    return decoded


class OpenAICompatibleProvider(ModelProvider):
    """Any backend speaking the OpenAI chat-completions protocol.

    Text deltas are yielded as they arrive.  Tool calls stream in
    fragments, so they are assembled and yielded together once the
    backend's stream ends.

    Args:
        base_url: Endpoint root, e.g. ``http://localhost:11434/v1``.
        api_key: API key; servers without auth accept any value.
    """

    system = "openai"

    def __init__(
            self,
            base_url: str,
            api_key: str | None = None,
            max_retries: int = 5,
            timeout: float = 600.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key or "DUMMY",
            max_retries=max_retries,
            timeout=timeout,
        )

    async def stream_content(
            self,
            model: str,
            contents: list[Content],
            tools: list[FunctionDeclarations] | None = None,
    ) -> AsyncIterator[ModelChunk]:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": to_chat_messages(contents),
            "stream": True,
        }
        chat_tools = to_chat_tools(tools)
        if chat_tools:
            kwargs["tools"] = chat_tools
            kwargs["tool_choice"] = "auto"

        stream = await self.client.chat.completions.create(**kwargs)
        acc = ToolCallAccumulator()
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            for tc in delta.tool_calls or []:
                function = tc.function
                acc.feed(ToolCallFragment(
                    index=tc.index,
                    call_id=tc.id,
                    name=function.name if function else None,
                    arguments_delta=function.arguments if function else None,
                ))
            if delta.content:
                yield ModelChunk(parts=[TextPart(text=delta.content)])

        calls = acc.finalize()
        if calls:
            yield ModelChunk(
                parts=[
                    ToolCallRequest(
                        name=tc.name,
                        arguments=_decode_arguments(tc.name, tc.arguments),
                    )
                    for tc in calls
                ],
            )


class OpenAIProvider(OpenAICompatibleProvider):

    def __init__(self, api_key: str | None = None):
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        super().__init__(base_url="https://api.openai.com/v1", api_key=api_key)


class OllamaProvider(OpenAICompatibleProvider):
    """Local or hosted Ollama through its OpenAI-compatible endpoint."""

    system = "ollama"
    default_model = "qwen3:0.6b"

    def __init__(
            self,
            base_url: str = "http://localhost:11434/v1",
            api_key: str | None = None,
    ):
        if not api_key:
            api_key = os.getenv("OLLAMA_API_KEY")
        super().__init__(base_url=base_url, api_key=api_key)


class MockProvider(ModelProvider):
    """Streams a fixed list of text chunks. No network calls.

    Args:
        chunks: Text fragments to stream, one per chunk.
        delay: Seconds to wait before the response and between chunks.
    """

    system = "mock"

    def __init__(
            self,
            chunks: list[str] | None = None,
            delay: float = 0.0,
    ):
        self.chunks = list(chunks) if chunks is not None else ["Hello", " world", "!"]
        self.delay = delay

    def set_response(self, chunks: list[str]) -> None:
        self.chunks = list(chunks)

    def set_delay(self, delay: float) -> None:
        self.delay = delay

    async def stream_content(
            self,
            model: str,
            contents: list[Content],
            tools: list[FunctionDeclarations] | None = None,
    ) -> AsyncIterator[ModelChunk]:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        for text in self.chunks:
            if self.delay > 0:
                await asyncio.sleep(self.delay)
            yield ModelChunk(parts=[TextPart(text=text)])
