"""Chat endpoint example: stream a tool-calling agent to a browser client.

Demonstrates:
- Defining tools with @tool
- Building an Agent around a local Ollama model (or the mock provider)
- Serving AgentService over a Starlette route

Usage:
    uv run examples/chat_server_example.py --provider ollama --model qwen3:0.6b
    uv run examples/chat_server_example.py --provider mock --trace

    curl -N localhost:8000/api/chat -H 'content-type: application/json' \\
        -d '{"messages": [{"role": "user", "parts": [{"type": "text", "text": "What time is it?"}]}]}'
"""

import argparse
import json
import logging
from datetime import datetime, timezone

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.routing import Route

from turnstream.agent import Agent
from turnstream.provider import MockProvider, ModelProvider, OllamaProvider, OpenAIProvider
from turnstream.service import AgentService
from turnstream.tools import tool

PROVIDERS = {
    "ollama": lambda url: OllamaProvider(url) if url else OllamaProvider(),
    "openai": lambda url: OpenAIProvider(),
    "mock": lambda url: MockProvider(delay=0.05),
}


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from turnstream.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


@tool
def current_time(timezone_name: str = "UTC"):
    """Return the current time as an ISO 8601 string.

    Args:
        timezone_name: Only ``UTC`` is supported.
    """
    if timezone_name != "UTC":
        raise ValueError(f"Unsupported timezone: {timezone_name}")
    return datetime.now(timezone.utc).isoformat()


@tool
def add(a: float, b: float):
    """Add two numbers."""
    return a + b


def make_app(service: AgentService) -> Starlette:
    async def chat(request: Request):
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            return service.create_error_response("Invalid JSON", 400, str(e))
        if not isinstance(body, dict):
            return service.create_error_response("Messages are required", 400)
        return service.handle(body.get("messages"))

    return Starlette(routes=[Route("/api/chat", chat, methods=["POST"])])


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--provider", choices=PROVIDERS, default="ollama")
    parser.add_argument("--url", default=None)
    parser.add_argument("--model", default=OllamaProvider.default_model)
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--trace", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s:%(name)s:%(levelname)s:%(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.trace:
        setup_tracing("turnstream-chat")

    provider: ModelProvider = PROVIDERS[args.provider](args.url)
    agent = Agent(
        name="assistant",
        model=args.model,
        provider=provider,
        tools=[current_time, add],
    )
    uvicorn.run(make_app(AgentService(agent)), port=args.port)


if __name__ == "__main__":
    main()
