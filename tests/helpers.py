"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off driver subclasses as coverage expands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any

import httpx

from llm_orchestrator.config import ClientSettings
from llm_orchestrator.drivers.base import Driver
from llm_orchestrator.sinks import ExecutionLogEntry, MetricEvent
from llm_orchestrator.types import Response


@dataclass
class CaptureSink:
    """LogSink and MetricsSink that keeps everything it is given."""

    entries: list[ExecutionLogEntry] = field(default_factory=list)
    events: list[MetricEvent] = field(default_factory=list)

    def record_execution(self, entry: ExecutionLogEntry) -> None:
        self.entries.append(entry)

    def record_metric(self, event: MetricEvent) -> None:
        self.events.append(event)


class ScriptedDriver(Driver):
    """Driver that plays back a scripted sequence of responses/exceptions.

    Script items may be a ``Response``, an exception instance, or a string
    (returned as the response content).
    """

    def __init__(
        self,
        client: str,
        settings: ClientSettings | None = None,
        *,
        script: list[Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            client,
            settings or ClientSettings(driver="custom", model=f"{client}-default"),
            **kwargs,
        )
        self.script = list(script or [])
        self.requests: list[Any] = []

    @property
    def name(self) -> str:
        return "scripted"

    async def execute(self, request: Any) -> Response:
        self.requests.append(request)
        item: Any = self.script.pop(0) if self.script else "ok"
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Response):
            return item
        return Response(
            content=str(item),
            driver=self.name,
            model=request.model or self.default_model,
            input_tokens=3,
            output_tokens=2,
            total_tokens=5,
        )


def scripted_factory(script: list[Any], created: dict[str, ScriptedDriver] | None = None):
    """Registry factory that builds one ScriptedDriver per client."""

    def factory(client: str, settings: ClientSettings, **kwargs: Any) -> ScriptedDriver:
        driver = ScriptedDriver(client, settings, script=list(script), **kwargs)
        if created is not None:
            created[client] = driver
        return driver

    return factory


@dataclass
class RecordingTransport:
    """``httpx.MockTransport`` wrapper that records requests and replies in order.

    Replies may be a dict (200 JSON body), an ``httpx.Response``, or an
    exception to raise.
    """

    replies: list[Any] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply: Any = self.replies.pop(0) if self.replies else {}
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    @property
    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)
