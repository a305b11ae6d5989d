from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_serializer, model_validator


class UIRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"


class UIPart(BaseModel):
    """A fragment of a client message. Only ``text`` parts carry content
    the engine reads; other types pass through validation untouched."""

    type: str
    text: str | None = None
    model_config = {"extra": "allow"}


class UIMessage(BaseModel):
    role: UIRole
    parts: list[UIPart] = Field(default_factory=list)
    id: str | None = None

    @field_serializer("role")
    def serialize_role(self, role: UIRole, _info) -> str:
        return role.value


class ContentRole(Enum):
    USER = "user"
    MODEL = "model"
    TOOL = "tool"


class ResultEnvelope(BaseModel):
    """Uniform outcome of one tool invocation."""

    ok: bool
    payload: Any = None
    error: str | None = None

    @classmethod
    def success(cls, payload: Any) -> "ResultEnvelope":
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, error: str) -> "ResultEnvelope":
        return cls(ok=False, error=error)

    def as_response(self) -> Any:
        if self.ok:
            return self.payload
        return {"error": self.error}


class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class ToolCallRequest(BaseModel):
    """A tool call requested by the model.

    ``arguments`` is normally a mapping; providers that could not decode
    the model's JSON leave the raw string so the dispatcher can report it.
    """

    kind: Literal["tool_call"] = "tool_call"
    name: str
    arguments: dict[str, Any] | str = Field(default_factory=dict)


class ToolCallResult(BaseModel):
    kind: Literal["tool_result"] = "tool_result"
    name: str
    result: ResultEnvelope

    def response(self) -> dict[str, Any]:
        """The body handed back to the model, tagged with the tool name."""
        return {"name": self.name, "content": self.result.as_response()}


Part = Annotated[
    Union[TextPart, ToolCallRequest, ToolCallResult],
    Field(discriminator="kind"),
]

_ALLOWED_PARTS = {
    ContentRole.USER: (TextPart,),
    ContentRole.MODEL: (TextPart, ToolCallRequest),
    ContentRole.TOOL: (ToolCallResult,),
}


class Content(BaseModel):
    role: ContentRole
    parts: list[Part] = Field(default_factory=list)

    @field_serializer("role")
    def serialize_role(self, role: ContentRole, _info) -> str:
        return role.value

    @model_validator(mode="after")
    def check_parts_match_role(self) -> "Content":
        allowed = _ALLOWED_PARTS[self.role]
        for part in self.parts:
            if not isinstance(part, allowed):
                raise ValueError(
                    f"{type(part).__name__} is not allowed in a "
                    f"'{self.role.value}' content"
                )
        return self

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))
