import asyncio

import pytest

from turnstream.tools import (
    FunctionDeclarations,
    Tool,
    ToolDeclarationError,
    _build_parameters_schema,
    _parse_param_descriptions,
    format_tools,
    tool,
)


# ---------------------------------------------------------------------------
# Schema generation (_build_parameters_schema)
# ---------------------------------------------------------------------------


class TestBuildParametersSchema:
    def test_python_types_map_to_json_schema_types(self):
        def func(a: str, b: int, c: float, d: bool, e: list, f: dict):
            pass

        schema, _ = _build_parameters_schema(func)
        types = {k: v["type"] for k, v in schema["properties"].items()}
        assert types == {
            "a": "string", "b": "integer", "c": "number",
            "d": "boolean", "e": "array", "f": "object",
        }

    def test_every_param_is_declared(self):
        def func(query: str, context: str, session: int = 0):
            pass

        schema, required = _build_parameters_schema(func)
        assert list(schema["properties"]) == ["query", "context", "session"]
        assert required == ["query", "context"]

    def test_optional_params_not_required(self):
        def func(name: str, greeting: str = "hi"):
            pass

        schema, required = _build_parameters_schema(func)
        assert required == ["name"]
        assert schema["required"] == ["name"]

    def test_unannotated_param_defaults_to_string(self):
        def func(x):
            pass

        schema, _ = _build_parameters_schema(func)
        assert schema["properties"]["x"]["type"] == "string"


# ---------------------------------------------------------------------------
# Docstring param description parsing (_parse_param_descriptions)
# ---------------------------------------------------------------------------


class TestParseParamDescriptions:
    def test_google_style(self):
        def func(name: str, age: int):
            """Do something.

            Args:
                name: The user's name.
                age (int): The user's age.
            """

        assert _parse_param_descriptions(func) == {
            "name": "The user's name.",
            "age": "The user's age.",
        }

    def test_sphinx_rest_style(self):
        def func(name: str, age: int):
            """Do something.

            :param name: The user's name.
            :param age: The user's age.
            """

        assert _parse_param_descriptions(func) == {
            "name": "The user's name.",
            "age": "The user's age.",
        }

    def test_numpy_style(self):
        def func(name: str, age: int):
            """Do something.

            Parameters
            ----------
            name : str
                The user's name.
            age : int
                The user's age.
            """

        assert _parse_param_descriptions(func) == {
            "name": "The user's name.",
            "age": "The user's age.",
        }

    def test_multiline_description(self):
        def func(query: str):
            """Search.

            Args:
                query: The search query string.
                    Supports boolean operators.
            """

        assert _parse_param_descriptions(func) == {
            "query": "The search query string.\nSupports boolean operators.",
        }

    def test_no_docstring(self):
        def func(x: str):
            pass

        assert _parse_param_descriptions(func) == {}


# ---------------------------------------------------------------------------
# @tool decorator and declarations
# ---------------------------------------------------------------------------


class TestToolDecorator:
    def test_bare_decorator(self):
        @tool
        def greet(name: str):
            """Say hello.

            Args:
                name: Who to greet.
            """
            return f"Hello {name}"

        assert isinstance(greet, Tool)
        assert greet.name == "greet"
        assert greet.description == "Say hello."
        assert greet.parameters_schema["properties"]["name"]["description"] == (
            "Who to greet."
        )

    def test_decorator_with_args(self):
        @tool(name="custom_name", description="Custom desc")
        def greet(name: str):
            """Original docstring."""

        assert greet.name == "custom_name"
        assert greet.description == "Custom desc"

    def test_declaration(self):
        @tool
        def greet(name: str):
            """Say hello."""

        assert greet.declaration() == {
            "name": "greet",
            "description": "Say hello.",
            "parameters": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": ""},
                },
                "required": ["name"],
            },
        }

    def test_model_dump_is_the_field_dump(self):
        @tool
        def greet(name: str):
            """Say hello."""

        dumped = greet.model_dump()
        assert dumped["name"] == "greet"
        assert dumped["description"] == "Say hello."
        assert "type" not in dumped

    def test_declaration_requires_description(self):
        @tool
        def mystery(x: str):
            pass

        with pytest.raises(ToolDeclarationError, match="mystery"):
            mystery.declaration()


class TestToolCall:
    @pytest.mark.asyncio
    async def test_sync_function(self):
        @tool
        def add(a: int, b: int):
            """Add numbers."""
            return a + b

        assert await add(a=2, b=3) == 5

    @pytest.mark.asyncio
    async def test_async_function(self):
        @tool
        async def fetch(url: str):
            """Fake fetch."""
            await asyncio.sleep(0)
            return {"status": 200, "url": url}

        assert await fetch(url="http://example.com") == {
            "status": 200, "url": "http://example.com",
        }

    @pytest.mark.asyncio
    async def test_exceptions_propagate(self):
        @tool
        def broken():
            """Fails."""
            raise ValueError("nope")

        with pytest.raises(ValueError, match="nope"):
            await broken()


class TestToolBind:
    @pytest.mark.asyncio
    async def test_bind_hides_param_and_calls_through(self):
        @tool
        def search(db: str, query: str):
            """Search."""
            return f"{db}:{query}"

        bound = search.bind(db="my_db")
        assert "db" not in bound.parameters_schema["properties"]
        assert bound.parameters_schema["required"] == ["query"]
        assert await bound(query="hello") == "my_db:hello"
        assert "db" in search.parameters_schema["properties"]


# ---------------------------------------------------------------------------
# format_tools
# ---------------------------------------------------------------------------


class TestFormatTools:
    def test_tool_is_wrapped_in_declaration_group(self):
        @tool
        def greet(name: str):
            """Say hello."""

        [group] = format_tools([greet])
        assert isinstance(group, FunctionDeclarations)
        assert group.function_declarations == [greet.declaration()]

    def test_preformatted_group_passes_through(self):
        group = FunctionDeclarations(function_declarations=[
            {"name": "lookup", "description": "Look up.", "parameters": {"type": "OBJECT"}},
        ])
        assert format_tools([group]) == [group]

    def test_preformatted_group_without_name_fails(self):
        group = FunctionDeclarations(function_declarations=[{"description": "?"}])
        with pytest.raises(ToolDeclarationError):
            format_tools([group])

    def test_tool_without_description_fails_fast(self):
        @tool
        def undocumented(x: str):
            pass

        with pytest.raises(ToolDeclarationError, match="does not have a declaration"):
            format_tools([undocumented])

    def test_unsupported_type_fails(self):
        with pytest.raises(ToolDeclarationError, match="Unsupported"):
            format_tools([lambda: None])
