"""Google Gemini ``generateContent`` driver."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any

import httpx

from llm_orchestrator.drivers._media import (
    extract_mime_and_base64,
    file_mime,
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

_ROLES = {"assistant": "model"}


class GeminiDriver(HttpDriver):
    """``POST /v1beta/models/{model}:generateContent``; media is always inlined."""

    @property
    def name(self) -> str:
        return "gemini"

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/v1beta/models/{model}:generateContent"

    def headers(self) -> dict[str, str]:
        key = self.settings.secret()
        return {"x-goog-api-key": key} if key else {}

    async def translate(self, request: Request, model: str) -> dict[str, Any]:  # noqa: ARG002
        system_parts: list[dict[str, Any]] = []
        contents: list[dict[str, Any]] = []
        for message in request.messages:
            if message.role == "system":
                system_parts.extend(
                    {"text": text} for text in system_text(message, self.name)
                )
                continue
            contents.append(
                {
                    "role": _ROLES.get(message.role, message.role),
                    "parts": [await self._part(part) for part in message.parts()],
                }
            )

        generation_config: dict[str, Any] = {
            "maxOutputTokens": request.max_tokens or self.settings.max_tokens,
        }
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature

        response_format = request.response_format or {}
        json_schema = response_format.get("json_schema")
        if isinstance(json_schema, dict):
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseJsonSchema"] = json_schema.get("schema", {})
        elif response_format.get("type") == "json_object":
            generation_config["responseMimeType"] = "application/json"

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        if request.tools:
            payload["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": tool.name,
                            "description": tool.description,
                            "parameters": tool.parameters(),
                        }
                        for tool in request.tools
                    ]
                }
            ]
        payload.update(request.options)
        return payload

    async def _part(self, part: Content) -> dict[str, Any]:
        if part.type is ContentType.TEXT:
            return {"text": part.data}

        if part.type is ContentType.IMAGE:
            image = normalize_image(part, self.name)
            if is_url(image):
                mime, data = await self._fetch_inline(image, part)
            else:
                mime, data = extract_mime_and_base64(image, "image/jpeg", self.name)
            return {"inlineData": {"mimeType": mime, "data": data}}

        default_mime = "audio/wav" if part.type is ContentType.AUDIO else "application/pdf"
        data = normalize_file(part, self.name)
        if is_url(data):
            mime, data = await self._fetch_inline(data, part, default_mime)
        else:
            mime = file_mime(part, default_mime)
        return {"inlineData": {"mimeType": mime, "data": data}}

    async def _fetch_inline(
        self, url: str, part: Content, default_mime: str = "image/jpeg"
    ) -> tuple[str, str]:
        """Download *url* so it can be inlined; requires ``allow_url`` metadata."""
        if part.meta.get("allow_url") is not True:
            raise MessageValidationError.for_driver(
                self.name,
                "Gemini needs inline data; set metadata['allow_url']=True to fetch "
                f"{part.type.value} URLs",
            )
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout,
                transport=self.transport,
                follow_redirects=True,
            ) as http:
                resp = await http.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise MessageValidationError.for_driver(
                self.name, f"Could not fetch {part.type.value} from {url}: {e}"
            ) from e

        header_mime = resp.headers.get("Content-Type", "").split(";")[0].strip()
        mime = part.meta.get("mime_type") or header_mime or default_mime
        return str(mime), base64.b64encode(resp.content).decode("ascii")

    def parse_response(
        self, data: dict[str, Any], request: Request, model: str
    ) -> Response:
        candidate = (data.get("candidates") or [{}])[0]
        parts = (candidate.get("content") or {}).get("parts") or []

        text = next((p["text"] for p in parts if isinstance(p.get("text"), str)), "")
        tool_calls: list[ToolCall] = []
        for p in parts:
            call = p.get("functionCall")
            if not call:
                continue
            name = str(call.get("name") or "")
            tool_calls.append(
                ToolCall(
                    id=str(call.get("id") or name),
                    name=name,
                    arguments=dict(call.get("args") or {}),
                )
            )

        usage = data.get("usageMetadata") or {}
        input_tokens = int(usage.get("promptTokenCount") or 0)
        output_tokens = int(usage.get("candidatesTokenCount") or 0)
        total_tokens = int(usage.get("totalTokenCount") or input_tokens + output_tokens)

        # modelVersion carries a revision suffix; pricing is keyed by the requested name.
        return Response(
            content=text,
            driver=self.name,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            metadata={"model": data.get("modelVersion") or model},
            finish_reason=candidate.get("finishReason"),
            tool_calls=tool_calls or None,
            structured_output=parse_structured_output(request, text, tool_calls),
        )
