"""Provider-agnostic message and response types."""

from __future__ import annotations

import base64
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class ContentType(str, Enum):
    """Kinds of message content a driver may have to translate."""

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    FILE = "file"
    DOCUMENT = "document"


@dataclass(frozen=True)
class Content:
    """A single content part.

    For non-text parts ``data`` is an http(s) URL, a ``data:`` URL, raw base64,
    a readable local path, or raw bytes. Drivers normalize it on send.
    """

    type: ContentType
    data: str | bytes
    metadata: dict[str, Any] | None = None

    @classmethod
    def text(cls, text: str) -> Content:
        return cls(ContentType.TEXT, text)

    @classmethod
    def image(cls, data: str | bytes, metadata: dict[str, Any] | None = None) -> Content:
        return cls(ContentType.IMAGE, data, metadata)

    @classmethod
    def audio(cls, data: str | bytes, metadata: dict[str, Any] | None = None) -> Content:
        return cls(ContentType.AUDIO, data, metadata)

    @classmethod
    def file(cls, data: str | bytes, metadata: dict[str, Any] | None = None) -> Content:
        return cls(ContentType.FILE, data, metadata)

    @classmethod
    def document(
        cls, data: str | bytes, metadata: dict[str, Any] | None = None
    ) -> Content:
        return cls(ContentType.DOCUMENT, data, metadata)

    @property
    def meta(self) -> dict[str, Any]:
        """Metadata as a dict, never None."""
        return self.metadata or {}

    def to_dict(self) -> dict[str, Any]:
        data = self.data
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode("ascii")
        return {
            "type": self.type.value,
            "data": data,
            "metadata": dict(self.metadata) if self.metadata is not None else None,
        }


@dataclass(frozen=True)
class Message:
    """A conversational turn. A bare string is sugar for one text part."""

    role: str
    content: str | Content | list[Content]
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def user(cls, content: str | Content | list[Content]) -> Message:
        return cls("user", content)

    @classmethod
    def system(cls, content: str | Content | list[Content]) -> Message:
        return cls("system", content)

    @classmethod
    def assistant(cls, content: str | Content | list[Content]) -> Message:
        return cls("assistant", content)

    def parts(self) -> list[Content]:
        """Return the content as an ordered list of parts."""
        if isinstance(self.content, str):
            return [Content.text(self.content)]
        if isinstance(self.content, Content):
            return [self.content]
        return list(self.content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": [part.to_dict() for part in self.parts()],
            **self.extra,
        }


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model, with decoded arguments."""

    id: str
    name: str
    type: str = "function"
    arguments: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", MappingProxyType(dict(self.arguments)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "arguments": dict(self.arguments),
        }


@dataclass(frozen=True)
class Response:
    """The canonical result of one successful driver execution.

    ``metadata`` is stored as a read-only mapping and ``tool_calls`` as a
    tuple, whatever the driver passed in. Values nested inside them are not
    copied.
    """

    content: str
    driver: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    finish_reason: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None
    structured_output: Any = None
    #: Client names tried by the Manager, in order, ending with the one that answered.
    attempted_clients: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
        if self.tool_calls is not None:
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "driver": self.driver,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost": self.cost,
            "metadata": dict(self.metadata),
            "finish_reason": self.finish_reason,
            "tool_calls": (
                [call.to_dict() for call in self.tool_calls]
                if self.tool_calls
                else None
            ),
            "structured_output": self.structured_output,
            "attempted_clients": list(self.attempted_clients),
        }
