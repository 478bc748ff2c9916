"""Core value types shared by the router, the relay, and backend adapters.

Value objects are immutable; they enforce their invariants at construction
time so the router can pass them between concurrent calls without copying.
"""

from __future__ import annotations

import enum
import json
import mimetypes
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from pydantic import JsonValue, TypeAdapter

_ARGUMENTS_ADAPTER: TypeAdapter[dict[str, JsonValue]] = TypeAdapter(dict[str, JsonValue])
_CONTENT_ADAPTER: TypeAdapter[JsonValue] = TypeAdapter(JsonValue)

# Rough chars-per-token ratio used when a backend reports no usage.
_CHARS_PER_TOKEN = 4


class Role(str, enum.Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class FileKind(str, enum.Enum):
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    OTHER = "other"


class ToolChoice(str, enum.Enum):
    """Well-known tool-choice modes; any tool name is also accepted."""

    AUTO = "auto"
    NONE = "none"


# ═══════════════════════════════════════════════════════════════
#  Messages
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class FileAttachment:
    """Binary attachment carried by a message. Never mutated after creation."""

    kind: FileKind
    mime_type: str
    name: str
    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.kind, FileKind):
            object.__setattr__(self, "kind", FileKind(self.kind))
        if not isinstance(self.data, bytes):
            object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_path(cls, path: str | Path) -> FileAttachment:
        """Read a file from disk, inferring MIME type and kind from its extension."""
        p = Path(path)
        data = p.read_bytes()
        mime_type, _ = mimetypes.guess_type(p.name)
        mime_type = mime_type or "application/octet-stream"
        kind = FileKind.IMAGE if mime_type.startswith("image/") else FileKind.DOCUMENT
        return cls(kind=kind, mime_type=mime_type, name=p.name, data=data)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class Message:
    """One chat turn.

    A ``tool`` message carries the calls a backend asked for together with
    their results, so each adapter can render both halves of the exchange.
    """

    role: Role
    content: str = ""
    files: tuple[FileAttachment, ...] = ()
    tool_results: tuple[ToolCallResult, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))
        for name, item_type in (
            ("files", FileAttachment),
            ("tool_results", ToolCallResult),
            ("tool_calls", ToolCall),
        ):
            items = tuple(
                item_type(**item) if isinstance(item, Mapping) else item
                for item in getattr(self, name)
            )
            for item in items:
                if not isinstance(item, item_type):
                    raise TypeError(
                        f"{name} entries must be {item_type.__name__} or a mapping, "
                        f"got {type(item).__name__}"
                    )
            object.__setattr__(self, name, items)

    @classmethod
    def user(cls, content: str, *files: FileAttachment) -> Message:
        return cls(Role.USER, content, files)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(Role.ASSISTANT, content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(Role.SYSTEM, content)

    @classmethod
    def tool(
        cls, results: Iterable[ToolCallResult], calls: Iterable[ToolCall] = ()
    ) -> Message:
        return cls(Role.TOOL, "", (), tuple(results), tuple(calls))

    @classmethod
    def coerce(cls, value: Message | Mapping[str, Any]) -> Message:
        """Build a fresh ``Message`` from a message or a plain mapping."""
        if isinstance(value, Message):
            return cls(
                value.role,
                value.content,
                tuple(value.files),
                tuple(value.tool_results),
                tuple(value.tool_calls),
            )
        return cls(
            role=value["role"],
            content=value.get("content", ""),
            files=tuple(value.get("files", ())),
            tool_results=tuple(value.get("tool_results", ())),
            tool_calls=tuple(value.get("tool_calls", ())),
        )


def validate_roles(messages: Sequence[Message], allowed: Iterable[Role | str]) -> None:
    """Raise ``ValueError`` naming the first message whose role is not allowed."""
    allowed_roles = {Role(r) for r in allowed}
    for idx, message in enumerate(messages):
        if message.role not in allowed_roles:
            names = ", ".join(sorted(r.value for r in allowed_roles))
            raise ValueError(
                f"message {idx}: role {message.role.value!r} not supported (allowed: {names})"
            )


def estimate_tokens(messages: Sequence[Message]) -> int:
    """Approximate token count of a conversation's text content."""
    chars = sum(len(m.content) for m in messages)
    return max(1, chars // _CHARS_PER_TOKEN) if chars else 0


# ═══════════════════════════════════════════════════════════════
#  Tools
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ToolDefinition:
    """A function the backend may ask the caller to run.

    Attributes:
        name:        Unique within one ``QueryOptions.tools`` set.
        description: Natural-language hint for the model.
        parameters:  JSON-Schema object describing the arguments.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ToolCall:
    """A backend's request to run ``function_name`` with ``arguments``.

    ``arguments`` may be given as a JSON object string (the OpenAI wire form);
    either way it is validated into a mapping of JSON values.
    """

    id: str
    function_name: str
    arguments: dict[str, JsonValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        raw: Any = self.arguments
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw) if raw else {}
        object.__setattr__(self, "arguments", _ARGUMENTS_ADAPTER.validate_python(raw))


@dataclass(frozen=True)
class ToolCallResult:
    """Output of one executed ``ToolCall``; ``id`` matches the call's id."""

    id: str
    content: JsonValue = None
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", _CONTENT_ADAPTER.validate_python(self.content))

    def content_text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content)


# ═══════════════════════════════════════════════════════════════
#  Query options / result
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class QueryOptions:
    """Per-query knobs forwarded to the provider.

    ``temperature`` is passed through unvalidated; ``force_model`` pins the
    backend model; ``tool_choice`` is ``"auto"``, ``"none"`` or a tool name.
    """

    temperature: float = 0.7
    force_model: str | None = None
    tools: tuple[ToolDefinition, ...] = ()
    tool_choice: str | None = None
    max_tokens: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.tools, tuple):
            object.__setattr__(self, "tools", tuple(self.tools))
        if isinstance(self.tool_choice, ToolChoice):
            object.__setattr__(self, "tool_choice", self.tool_choice.value)
        names = [t.name for t in self.tools]
        if len(names) != len(set(names)):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"duplicate tool names: {', '.join(dupes)}")

    def with_tools(self, tools: Sequence[ToolDefinition]) -> QueryOptions:
        return replace(self, tools=tuple(tools))

    def with_model(self, model: str) -> QueryOptions:
        return replace(self, force_model=model)


@dataclass(frozen=True)
class QueryResult:
    content: str
    model: str
    tool_calls: tuple[ToolCall, ...] = ()
    finish_reason: str = ""
    provider: str = ""
    total_tokens: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @property
    def is_empty(self) -> bool:
        return not self.content.strip() and not self.tool_calls
