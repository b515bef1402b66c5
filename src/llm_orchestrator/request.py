"""Canonical request and its fluent builder."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from llm_orchestrator.schema import Schema, Tool
from llm_orchestrator.types import Content, Message


@dataclass(frozen=True)
class Request:
    """An immutable, provider-agnostic chat/completion request.

    When ``raw_payload`` is set, drivers send it verbatim and ignore every
    other field.
    """

    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    messages: list[Message] = field(default_factory=list)
    tools: list[Tool] = field(default_factory=list)
    #: Merged last into the provider payload, overriding computed fields.
    options: dict[str, Any] = field(default_factory=dict)
    response_format: dict[str, Any] | None = None
    raw_payload: dict[str, Any] | None = None

    @staticmethod
    def builder() -> RequestBuilder:
        return RequestBuilder()

    def with_model(self, model: str) -> Request:
        return replace(self, model=model)

    def without_model(self) -> Request:
        return replace(self, model=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [message.to_dict() for message in self.messages],
            "tools": [tool.to_dict() for tool in self.tools],
            "options": dict(self.options),
            "response_format": self.response_format,
            "raw_payload": self.raw_payload,
        }


class RequestBuilder:
    """Fluent construction of a ``Request``.

    Example:
        request = (
            Request.builder()
            .system("Answer in one word.")
            .prompt("Capital of France?")
            .temperature(0)
            .build()
        )
    """

    def __init__(self) -> None:
        self._model: str | None = None
        self._max_tokens: int | None = None
        self._temperature: float | None = None
        self._messages: list[Message] = []
        self._tools: list[Tool] = []
        self._options: dict[str, Any] = {}
        self._response_format: dict[str, Any] | None = None
        self._raw_payload: dict[str, Any] | None = None

    def prompt(self, prompt: str) -> RequestBuilder:
        self._messages.append(Message("user", prompt))
        return self

    def system(self, instruction: str) -> RequestBuilder:
        self._messages.append(Message("system", instruction))
        return self

    def model(self, model: str | None) -> RequestBuilder:
        self._model = model
        return self

    def max_tokens(self, max_tokens: int | None) -> RequestBuilder:
        self._max_tokens = max_tokens
        return self

    def temperature(self, temperature: float | None) -> RequestBuilder:
        self._temperature = temperature
        return self

    def options(self, options: dict[str, Any]) -> RequestBuilder:
        self._options.update(options)
        return self

    def add_message(
        self,
        message: Message | None = None,
        *,
        role: str | None = None,
        content: str | Content | list[Content] | None = None,
    ) -> RequestBuilder:
        """Append a message, or build one from ``role`` and ``content``."""
        if message is None:
            if role is None or content is None:
                raise TypeError("add_message() needs a Message or role and content")
            message = Message(role, content)
        self._messages.append(message)
        return self

    def add_messages(self, messages: list[Message]) -> RequestBuilder:
        self._messages.extend(messages)
        return self

    def add_tool(self, tool: Tool) -> RequestBuilder:
        self._tools.append(tool)
        return self

    def add_tools(self, tools: list[Tool]) -> RequestBuilder:
        self._tools.extend(tools)
        return self

    def with_raw_payload(self, payload: dict[str, Any]) -> RequestBuilder:
        """Send *payload* directly to the provider, bypassing translation."""
        self._raw_payload = payload
        return self

    def with_response_format(
        self, response_format: dict[str, Any] | None
    ) -> RequestBuilder:
        self._response_format = response_format
        return self

    def as_structured_output(self, schema: Schema) -> RequestBuilder:
        """Request JSON output matching *schema*."""
        self._response_format = {"type": "json_schema", "json_schema": schema.to_dict()}
        return self

    def as_json(self) -> RequestBuilder:
        """Request JSON output without a schema."""
        self._response_format = {"type": "json_object"}
        return self

    def build(self) -> Request:
        return Request(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            messages=list(self._messages),
            tools=list(self._tools),
            options=dict(self._options),
            response_format=self._response_format,
            raw_payload=self._raw_payload,
        )
