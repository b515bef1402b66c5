"""Offline driver for tests and local wiring checks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from llm_orchestrator.drivers.base import Driver, parse_structured_output
from llm_orchestrator.types import ContentType, Response

if TYPE_CHECKING:
    from llm_orchestrator.request import Request


class MockDriver(Driver):
    """Echo the last user text without any network call.

    Usable as a custom driver: ``{"driver": "custom",
    "via": "llm_orchestrator.drivers.mock:MockDriver"}``. A ``reply`` option
    in the client settings replaces the echo.
    """

    @property
    def name(self) -> str:
        return "mock"

    async def execute(self, request: Request) -> Response:
        prompt = ""
        for message in reversed(request.messages):
            texts = [
                str(p.data) for p in message.parts() if p.type is ContentType.TEXT
            ]
            if message.role == "user" and texts:
                prompt = " ".join(texts)
                break

        reply = self.settings.option("reply")
        content = str(reply) if reply is not None else f"echo: {prompt[:100]}"
        input_tokens = len(prompt.split())
        output_tokens = len(content.split())
        return Response(
            content=content,
            driver=self.name,
            model=request.model or self.default_model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            finish_reason="stop",
            structured_output=parse_structured_output(request, content, None),
        )
