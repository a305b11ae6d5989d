from turnstream.agent import Agent
from turnstream.dispatcher import ToolDispatcher
from turnstream.instrumentation import instrument, uninstrument
from turnstream.message import (
    Content,
    ContentRole,
    ResultEnvelope,
    TextPart,
    ToolCallRequest,
    ToolCallResult,
    UIMessage,
)
from turnstream.provider import (
    MockProvider,
    ModelProvider,
    OllamaProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
)
from turnstream.runner import MAX_TURNS, Runner, RunResult
from turnstream.service import AgentService
from turnstream.streaming import ModelChunk, reconcile
from turnstream.tools import FunctionDeclarations, Tool, ToolDeclarationError, tool
from turnstream.transcript import MessageValidationError

__all__ = [
    "Agent",
    "AgentService",
    "Content",
    "ContentRole",
    "FunctionDeclarations",
    "MAX_TURNS",
    "MessageValidationError",
    "MockProvider",
    "ModelChunk",
    "ModelProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "ResultEnvelope",
    "RunResult",
    "Runner",
    "TextPart",
    "Tool",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDeclarationError",
    "ToolDispatcher",
    "UIMessage",
    "instrument",
    "reconcile",
    "tool",
    "uninstrument",
]
