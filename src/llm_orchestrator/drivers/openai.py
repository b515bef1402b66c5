"""OpenAI Chat Completions driver."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from llm_orchestrator.drivers._media import normalize_file, normalize_image
from llm_orchestrator.drivers.base import HttpDriver, parse_structured_output
from llm_orchestrator.errors import MessageValidationError
from llm_orchestrator.types import ContentType, Response, ToolCall

if TYPE_CHECKING:
    from llm_orchestrator.request import Request
    from llm_orchestrator.types import Content, Message


class OpenAIDriver(HttpDriver):
    """``POST /v1/chat/completions`` with bearer authentication."""

    @property
    def name(self) -> str:
        return "openai"

    def endpoint(self, model: str) -> str:  # noqa: ARG002
        return f"{self.base_url}/v1/chat/completions"

    def headers(self) -> dict[str, str]:
        key = self.settings.secret()
        return {"Authorization": f"Bearer {key}"} if key else {}

    async def translate(self, request: Request, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [self._message(m) for m in request.messages],
            "max_completion_tokens": request.max_tokens or self.settings.max_tokens,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.response_format is not None:
            payload["response_format"] = request.response_format
        if request.tools:
            payload["tools"] = [
                {"type": "function", "function": tool.to_dict()}
                for tool in request.tools
            ]
        payload.update(request.options)
        return payload

    def _message(self, message: Message) -> dict[str, Any]:
        if isinstance(message.content, str):
            content: Any = message.content
        else:
            content = [self._part(part) for part in message.parts()]
        return {"role": message.role, "content": content, **message.extra}

    def _part(self, part: Content) -> dict[str, Any]:
        if part.type is ContentType.TEXT:
            return {"type": "text", "text": part.data}

        if part.type is ContentType.IMAGE:
            return {
                "type": "image_url",
                "image_url": {
                    "url": normalize_image(part, self.name),
                    "detail": part.meta.get("detail", "auto"),
                },
            }

        if part.type is ContentType.AUDIO:
            audio_format = part.meta.get("format")
            if not audio_format:
                raise MessageValidationError.for_driver(
                    self.name, "Audio content requires metadata['format'] (e.g. 'wav')"
                )
            return {
                "type": "input_audio",
                "input_audio": {
                    "data": normalize_file(part, self.name),
                    "format": str(audio_format).lower(),
                },
            }

        # File and document parts share the file content block.
        file_id = part.meta.get("file_id")
        if file_id:
            return {"type": "file", "file": {"file_id": file_id}}
        return {
            "type": "file",
            "file": {
                "file_data": normalize_file(part, self.name),
                "filename": part.meta.get("filename", "uploaded-file"),
            },
        }

    def parse_response(
        self, data: dict[str, Any], request: Request, model: str
    ) -> Response:
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        usage = data.get("usage") or {}

        input_tokens = int(usage.get("prompt_tokens") or 0)
        output_tokens = int(usage.get("completion_tokens") or 0)
        total_tokens = int(usage.get("total_tokens") or input_tokens + output_tokens)

        tool_calls = [_tool_call(raw) for raw in message.get("tool_calls") or []]
        content = message.get("content") or ""

        return Response(
            content=content,
            driver=self.name,
            model=data.get("model") or model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            metadata={"id": data.get("id"), "model": data.get("model")},
            finish_reason=choice.get("finish_reason"),
            tool_calls=tool_calls or None,
            structured_output=parse_structured_output(request, content, tool_calls),
        )


def _tool_call(raw: dict[str, Any]) -> ToolCall:
    function = raw.get("function") or {}
    arguments: Any = function.get("arguments") or {}
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except ValueError:
            arguments = {"_raw": arguments}
    return ToolCall(
        id=str(raw.get("id") or function.get("name") or ""),
        name=str(function.get("name") or ""),
        type=str(raw.get("type") or "function"),
        arguments=arguments if isinstance(arguments, dict) else {"value": arguments},
    )
