import asyncio
import functools
import inspect
import re
from typing import Any, Callable, Union

from pydantic import BaseModel, Field


class ToolDeclarationError(ValueError):
    """Raised at setup time when a tool cannot be declared to the model."""


_JSON_TYPES = {
    "str": "string",
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "NoneType": "null",
    "dict": "object",
    "list": "array",
    "tuple": "array",
    "set": "array",
}


def _json_type(annotation: Any) -> str:
    if annotation is inspect.Parameter.empty:
        return "string"
    name = getattr(annotation, "__name__", None) or str(annotation)
    return _JSON_TYPES.get(name, "string")


_GOOGLE_SECTION = re.compile(r"^\s*(Args|Arguments|Parameters):\s*$")
_GOOGLE_PARAM = re.compile(r"^(\s*)(\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$")
_REST_PARAM = re.compile(r"^\s*:param\s+(?:\w+\s+)?(\w+)\s*:\s*(.*)$")
_NUMPY_PARAM = re.compile(r"^(\s*)(\w+)\s*:\s*[^\s].*$")


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Extract per-parameter descriptions from a docstring.

    Understands Google (``Args:``), reST (``:param x:``) and numpy
    (``Parameters`` + dashes) styles.  Continuation lines are joined
    with newlines.
    """
    doc = inspect.getdoc(func)
    if not doc:
        return {}
    lines = doc.splitlines()

    rest = {}
    for line in lines:
        m = _REST_PARAM.match(line)
        if m:
            rest[m.group(1)] = m.group(2).strip()
    if rest:
        return rest

    for i, line in enumerate(lines):
        if line.strip() == "Parameters" and i + 1 < len(lines) \
                and set(lines[i + 1].strip()) == {"-"}:
            return _parse_numpy(lines[i + 2:])
        if _GOOGLE_SECTION.match(line):
            return _parse_google(lines[i + 1:])
    return {}


def _parse_google(lines: list[str]) -> dict[str, str]:
    descs: dict[str, list[str]] = {}
    indent = None
    current = None
    for line in lines:
        if not line.strip():
            break
        m = _GOOGLE_PARAM.match(line)
        if m and (indent is None or len(m.group(1)) == indent):
            indent = len(m.group(1))
            current = m.group(2)
            descs[current] = [m.group(3).strip()]
        elif current is not None and len(line) - len(line.lstrip()) > indent:
            descs[current].append(line.strip())
        else:
            break
    return {k: "\n".join(v) for k, v in descs.items()}


def _parse_numpy(lines: list[str]) -> dict[str, str]:
    descs: dict[str, list[str]] = {}
    current = None
    for line in lines:
        if not line.strip():
            continue
        m = _NUMPY_PARAM.match(line)
        if m and not m.group(1):
            current = m.group(2)
            descs[current] = []
        elif current is not None and line.startswith((" ", "\t")):
            descs[current].append(line.strip())
        else:
            break
    return {k: "\n".join(v) for k, v in descs.items()}


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    """Build a JSON schema object for *func*'s parameters.

    Returns:
        ``(schema, required)``; ``required`` is also stored in the schema.
    """
    descriptions = _parse_param_descriptions(func)
    properties = {}
    required = []
    for name, param in inspect.signature(func).parameters.items():
        properties[name] = {
            "type": _json_type(param.annotation),
            "description": descriptions.get(name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(name)
    schema = {
        "type": "object",
        "properties": properties,
        "required": required,
    }
    return schema, required


def _summary(func: Callable) -> str:
    doc = inspect.getdoc(func) or ""
    return doc.split("\n\n", 1)[0].strip()


class Tool(BaseModel):
    """A Python callable exposed to the model as a function tool.

    Build one with the :func:`tool` decorator.  Calling the tool awaits
    the function, running synchronous functions in a worker thread so a
    slow tool does not stall its siblings in a batch.
    """

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters_schema: dict = Field(default_factory=dict)
    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def from_function(
        cls,
        func: Callable,
        name: str | None = None,
        description: str | None = None,
    ) -> "Tool":
        schema, _ = _build_parameters_schema(func)
        return cls(
            func=func,
            name=name or func.__name__,
            description=description if description is not None else _summary(func),
            parameters_schema=schema,
        )

    def declaration(self) -> dict:
        """Return the function declaration sent to the model.

        Raises:
            ToolDeclarationError: If the tool has no description.
        """
        if not self.description:
            raise ToolDeclarationError(
                f"Tool {self.name} does not have a declaration"
            )
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema,
        }

    def bind(self, **bound: Any) -> "Tool":
        """Return a copy with *bound* arguments fixed and hidden from the model."""
        func = functools.partial(self.func, **bound)
        properties = {
            k: v for k, v in self.parameters_schema["properties"].items()
            if k not in bound
        }
        required = [r for r in self.parameters_schema["required"] if r not in bound]
        return Tool(
            func=func,
            name=self.name,
            description=self.description,
            parameters_schema={
                "type": "object",
                "properties": properties,
                "required": required,
            },
        )

    async def __call__(self, **kwargs: Any) -> Any:
        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)
        result = await asyncio.to_thread(self.func, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def tool(
    func: Callable | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
):
    """Turn a function into a :class:`Tool`.

    Works bare (``@tool``) or with overrides
    (``@tool(name="x", description="...")``).
    """
    if func is not None:
        return Tool.from_function(func)

    def wrap(f: Callable) -> Tool:
        return Tool.from_function(f, name=name, description=description)

    return wrap


class FunctionDeclarations(BaseModel):
    """A tool group already in the backend's declaration format.

    Passed through as-is when the catalog is formatted; the engine can
    declare these functions but has nothing to invoke for them.
    """

    function_declarations: list[dict] = Field(default_factory=list)


ToolSpec = Union[Tool, FunctionDeclarations]


def format_tools(tools: list[ToolSpec]) -> list[FunctionDeclarations]:
    """Resolve every tool spec to a declaration group for the backend.

    Raises:
        ToolDeclarationError: If a tool lacks a description or a
            pre-formatted declaration lacks a name.
    """
    formatted = []
    for spec in tools:
        if isinstance(spec, FunctionDeclarations):
            for decl in spec.function_declarations:
                if not decl.get("name"):
                    raise ToolDeclarationError(
                        "Function declaration is missing a name"
                    )
            formatted.append(spec)
        elif isinstance(spec, Tool):
            formatted.append(
                FunctionDeclarations(function_declarations=[spec.declaration()])
            )
        else:
            raise ToolDeclarationError(
                f"Unsupported tool type: {type(spec).__name__}"
            )
    return formatted
