"""Anthropic Messages API driver."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from llm_orchestrator.drivers._media import (
    extract_mime_and_base64,
    is_url,
    normalize_file,
    normalize_image,
)
from llm_orchestrator.drivers.base import (
    HttpDriver,
    parse_structured_output,
    system_text,
)
from llm_orchestrator.errors import MessageValidationError
from llm_orchestrator.types import ContentType, Response, ToolCall

if TYPE_CHECKING:
    from llm_orchestrator.request import Request
    from llm_orchestrator.types import Content

DEFAULT_ANTHROPIC_VERSION = "2023-06-01"


class ClaudeDriver(HttpDriver):
    """``POST /v1/messages``; system turns move to the top-level ``system`` list."""

    @property
    def name(self) -> str:
        return "claude"

    def endpoint(self, model: str) -> str:  # noqa: ARG002
        return f"{self.base_url}/v1/messages"

    def headers(self) -> dict[str, str]:
        headers = {
            "anthropic-version": str(
                self.settings.option("anthropic_version", DEFAULT_ANTHROPIC_VERSION)
            )
        }
        key = self.settings.secret()
        if key:
            headers["x-api-key"] = key
        return headers

    async def translate(self, request: Request, model: str) -> dict[str, Any]:
        system: list[dict[str, Any]] = []
        messages: list[dict[str, Any]] = []
        for message in request.messages:
            if message.role == "system":
                system.extend(
                    {"type": "text", "text": text}
                    for text in system_text(message, self.name)
                )
                continue
            messages.append(
                {
                    "role": message.role,
                    "content": [self._part(part) for part in message.parts()],
                    **message.extra,
                }
            )

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            # The Messages API rejects requests without max_tokens.
            "max_tokens": request.max_tokens or self.settings.max_tokens,
        }
        if system:
            payload["system"] = system
        if request.temperature is not None:
            payload["temperature"] = request.temperature

        response_format = request.response_format or {}
        json_schema = response_format.get("json_schema")
        if isinstance(json_schema, dict):
            payload["output_format"] = {
                "type": "json_schema",
                "schema": json_schema.get("schema", {}),
            }

        if request.tools:
            payload["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters(),
                }
                for tool in request.tools
            ]
        payload.update(request.options)
        return payload

    def _part(self, part: Content) -> dict[str, Any]:
        if part.type is ContentType.TEXT:
            return {"type": "text", "text": part.data}

        if part.type is ContentType.IMAGE:
            image = normalize_image(part, self.name)
            if is_url(image):
                return {"type": "image", "source": {"type": "url", "url": image}}
            mime, data = extract_mime_and_base64(image, "image/jpeg", self.name)
            return {
                "type": "image",
                "source": {"type": "base64", "media_type": mime, "data": data},
            }

        if part.type is ContentType.DOCUMENT:
            document = normalize_file(part, self.name)
            if is_url(document):
                return {"type": "document", "source": {"type": "url", "url": document}}
            return {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": document,
                },
            }

        raise MessageValidationError.for_driver(
            self.name, f"Claude does not accept {part.type.value} content"
        )

    def parse_response(
        self, data: dict[str, Any], request: Request, model: str
    ) -> Response:
        blocks = data.get("content") or []
        text = next(
            (b.get("text") or "" for b in blocks if b.get("type") == "text"), ""
        )
        tool_calls = [
            ToolCall(
                id=str(b.get("id") or b.get("name") or ""),
                name=str(b.get("name") or ""),
                arguments=dict(b.get("input") or {}),
            )
            for b in blocks
            if b.get("type") == "tool_use"
        ]

        usage = data.get("usage") or {}
        input_tokens = int(usage.get("input_tokens") or 0)
        output_tokens = int(usage.get("output_tokens") or 0)

        return Response(
            content=text,
            driver=self.name,
            model=data.get("model") or model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            metadata={"id": data.get("id"), "model": data.get("model")},
            finish_reason=data.get("stop_reason"),
            tool_calls=tool_calls or None,
            structured_output=parse_structured_output(request, text, tool_calls),
        )
