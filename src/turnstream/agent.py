import logging

from turnstream.dispatcher import ToolDispatcher
from turnstream.provider import ModelProvider
from turnstream.tools import FunctionDeclarations, ToolSpec, format_tools

logger = logging.getLogger(__name__)


class Agent:
    """
    The configuration a conversation runs against: which model to call,
    through which provider, with which tools.

    Tool declarations are resolved when the agent is built, so a tool
    without a usable description fails here rather than mid-conversation.

    Args:
        name: Agent name, used in logs.
        model: Model name passed to the provider.
        provider: Model backend.
        tools: Invocable tools and/or pre-formatted declaration groups.

    Raises:
        ToolDeclarationError: If any tool cannot be declared.
    """

    def __init__(
        self,
        name: str,
        model: str,
        provider: ModelProvider,
        tools: list[ToolSpec] | None = None,
    ):
        self.name = name
        self.model = model
        self.provider = provider
        self.tools: list[ToolSpec] = list(tools or [])
        self.tool_catalog: list[FunctionDeclarations] = format_tools(self.tools)
        self.dispatcher = ToolDispatcher(self.tools)
        logger.debug(f"Agent {name} ready with {len(self.tool_catalog)} tool groups")
