"""Driver contract and the shared HTTP request/response skeleton.

A driver translates one canonical ``Request`` into one provider call and
back into a ``Response``. ``Driver.send`` wraps the provider-specific
``execute`` with cost accounting and recording: every execution that
succeeds or fails with ``RequestFailedError`` produces exactly one log entry
and one metric event.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import dataclasses
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from llm_orchestrator._http import JSON_HEADERS
from llm_orchestrator.drivers._errors import wrap_transport_error
from llm_orchestrator.errors import MessageValidationError, RequestFailedError
from llm_orchestrator.retry import RetryPolicy, retry_async
from llm_orchestrator.sinks import (
    ExecutionLogEntry,
    LogSink,
    MetricEvent,
    MetricsSink,
    NullSink,
)
from llm_orchestrator.types import ContentType

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from llm_orchestrator.config import ClientSettings, ModelPrice
    from llm_orchestrator.request import Request
    from llm_orchestrator.types import Message, Response, ToolCall

log = logging.getLogger(__name__)

LOG_TEXT_LIMIT = 500
_TRUNCATED = "... [truncated]"


def truncate_text(text: str, limit: int = LOG_TEXT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + _TRUNCATED


def sanitize_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Render messages for logs: text truncated, media replaced by a marker."""
    sanitized: list[dict[str, Any]] = []
    for message in messages:
        parts: list[str] = []
        for part in message.parts():
            if part.type is ContentType.TEXT:
                parts.append(truncate_text(str(part.data)))
            else:
                parts.append(f"[{part.type.value}]")
        sanitized.append({"role": message.role, "content": parts})
    return sanitized


def system_text(message: Message, driver: str) -> list[str]:
    """Text of a system message; media has no place to go and is rejected."""
    texts: list[str] = []
    for part in message.parts():
        if part.type is not ContentType.TEXT:
            raise MessageValidationError.for_driver(
                driver, f"System messages accept text only, got {part.type.value}"
            )
        texts.append(str(part.data))
    return texts


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def parse_structured_output(
    request: Request, text: str, tool_calls: Sequence[ToolCall] | None
) -> Any:
    """Decode JSON output when the request asked for it.

    Falls back to the first tool call's arguments when the text is not JSON.
    """
    response_format = request.response_format or {}
    wants_json = (
        response_format.get("type") == "json_object" or "json_schema" in response_format
    )
    if not wants_json:
        return None

    result: Any = None
    if text:
        try:
            result = json.loads(text, parse_constant=_reject_constant)
        except ValueError:
            result = None
    if result is None and tool_calls:
        result = dict(tool_calls[0].arguments)
    return result


class Driver(ABC):
    """Base class every driver, built-in or custom, must extend."""

    def __init__(
        self,
        client: str,
        settings: ClientSettings,
        *,
        prices: Mapping[str, ModelPrice] | None = None,
        log_sink: LogSink | None = None,
        metrics_sink: MetricsSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.prices: dict[str, ModelPrice] = dict(prices or {})
        self.log_sink: LogSink = log_sink or NullSink()
        self.metrics_sink: MetricsSink = metrics_sink or NullSink()
        self.transport = transport

    @property
    @abstractmethod
    def name(self) -> str:
        """Driver kind, e.g. ``"openai"``."""

    @property
    def default_model(self) -> str:
        return self.settings.model or ""

    @abstractmethod
    async def execute(self, request: Request) -> Response:
        """Perform one provider call without recording it."""

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """USD cost from per-million-token prices; zero for unpriced models."""
        price = self.prices.get(model)
        if price is None:
            return 0.0
        return (input_tokens / 1_000_000) * price.input + (
            output_tokens / 1_000_000
        ) * price.output

    async def send(self, request: Request) -> Response:
        """Execute *request* and record the outcome."""
        try:
            response = await self.execute(request)
        except RequestFailedError as exc:
            self._record_failure(request, exc)
            raise

        if response.cost is None:
            response = self.with_cost(response)
        self._record_success(request, response)
        return response

    def with_cost(self, response: Response) -> Response:
        return dataclasses.replace(
            response,
            cost=self.calculate_cost(
                response.model, response.input_tokens, response.output_tokens
            ),
        )

    def _request_data(self, request: Request) -> dict[str, Any]:
        return {
            "model": request.model or self.default_model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": sanitize_messages(request.messages),
            "tools": [tool.name for tool in request.tools],
            "raw_payload": request.raw_payload is not None,
        }

    def _record_success(self, request: Request, response: Response) -> None:
        cost = response.cost or 0.0
        entry = ExecutionLogEntry(
            client=self.client,
            driver=self.name,
            model=response.model,
            is_successful=True,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.total_tokens,
            cost=cost,
            finish_reason=response.finish_reason,
            request_data=self._request_data(request),
            response_data={
                "content": truncate_text(response.content),
                "tool_calls": [call.name for call in response.tool_calls or []],
            },
            metadata=dict(response.metadata),
        )
        event = MetricEvent(
            client=self.client,
            driver=self.name,
            model=response.model,
            is_successful=True,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.total_tokens,
            cost=cost,
        )
        self._emit(entry, event)

    def _record_failure(self, request: Request, exc: RequestFailedError) -> None:
        model = request.model or self.default_model
        entry = ExecutionLogEntry(
            client=self.client,
            driver=self.name,
            model=model,
            is_successful=False,
            failed_reason=str(exc),
            request_data=self._request_data(request),
            metadata={"status_code": exc.status_code},
        )
        event = MetricEvent(
            client=self.client, driver=self.name, model=model, is_successful=False
        )
        self._emit(entry, event)

    def _emit(self, entry: ExecutionLogEntry, event: MetricEvent) -> None:
        # Recording must never mask the call's own outcome.
        try:
            self.log_sink.record_execution(entry)
        except Exception as e:
            log.warning("Execution log recording failed for %s: %s", self.client, e)
        try:
            self.metrics_sink.record_metric(event)
        except Exception as e:
            log.warning("Metrics recording failed for %s: %s", self.client, e)


class HttpDriver(Driver):
    """Driver that POSTs one JSON payload and parses one JSON body.

    Subclasses fill in ``build_payload``, ``endpoint``, ``headers`` and
    ``parse_response``.
    """

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=max(1, self.settings.max_retries or 1))

    @property
    def base_url(self) -> str:
        return (self.settings.base_url or "").rstrip("/")

    async def build_payload(self, request: Request, model: str) -> dict[str, Any]:
        """Return ``raw_payload`` verbatim, or translate the request."""
        if request.raw_payload is not None:
            return request.raw_payload
        return await self.translate(request, model)

    @abstractmethod
    async def translate(self, request: Request, model: str) -> dict[str, Any]:
        """Build the provider payload from the canonical request."""

    @abstractmethod
    def endpoint(self, model: str) -> str: ...

    @abstractmethod
    def headers(self) -> dict[str, str]: ...

    @abstractmethod
    def parse_response(
        self, data: dict[str, Any], request: Request, model: str
    ) -> Response:
        """Build a ``Response`` from the decoded provider body."""

    async def execute(self, request: Request) -> Response:
        model = request.model or self.default_model
        payload = await self.build_payload(request, model)
        url = self.endpoint(model)
        headers = {**JSON_HEADERS, **self.headers()}

        log.debug("Sending %s request for client %s to %s", self.name, self.client, url)
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout, transport=self.transport
            ) as http:

                async def attempt() -> dict[str, Any]:
                    resp = await http.post(url, headers=headers, json=payload)
                    resp.raise_for_status()
                    body = resp.json()
                    if not isinstance(body, dict):
                        raise ValueError("Response body is not a JSON object")
                    return body

                data = await retry_async(attempt, policy=self.retry_policy)
            response = self.parse_response(data, request, model)
        except Exception as exc:
            wrapped = wrap_transport_error(
                exc, client=self.client, driver=self.name, payload=payload
            )
            if wrapped is exc:
                raise
            raise wrapped from exc
        return self.with_cost(response)
