"""Recording seams for execution logs and usage metrics.

Drivers hand every execution to a ``LogSink`` and a ``MetricsSink``. Sinks
are injected; the defaults do nothing, so a bare Manager never needs a
database.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from llm_orchestrator.db import ExecutionLogRecord
from llm_orchestrator.errors import ConfigurationError
from llm_orchestrator.metrics import MetricsAggregator

if TYPE_CHECKING:
    from sqlalchemy.orm import sessionmaker

    from llm_orchestrator.config import RecorderSettings, Settings

log = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class ExecutionLogEntry:
    """What one driver execution looked like, with content sanitized."""

    client: str
    driver: str
    model: str
    is_successful: bool
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    finish_reason: str | None = None
    failed_reason: str | None = None
    request_data: dict[str, Any] = field(default_factory=dict)
    response_data: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricEvent:
    """One execution's contribution to the daily counters."""

    client: str
    driver: str
    model: str
    is_successful: bool
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    date: date = field(default_factory=utc_today)


@runtime_checkable
class LogSink(Protocol):
    def record_execution(self, entry: ExecutionLogEntry) -> None: ...


@runtime_checkable
class MetricsSink(Protocol):
    def record_metric(self, event: MetricEvent) -> None: ...


class NullSink:
    """Discards everything."""

    def record_execution(self, entry: ExecutionLogEntry) -> None:  # noqa: ARG002
        return None

    def record_metric(self, event: MetricEvent) -> None:  # noqa: ARG002
        return None


class DatabaseLogSink:
    """Persist execution log entries as ``ExecutionLogRecord`` rows."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def record_execution(self, entry: ExecutionLogEntry) -> None:
        with self._session_factory() as session, session.begin():
            session.add(
                ExecutionLogRecord(
                    client=entry.client,
                    driver=entry.driver,
                    model=entry.model,
                    input_tokens=entry.input_tokens,
                    output_tokens=entry.output_tokens,
                    total_tokens=entry.total_tokens,
                    cost=entry.cost,
                    is_successful=entry.is_successful,
                    finish_reason=entry.finish_reason,
                    failed_reason=entry.failed_reason,
                    request_data=entry.request_data,
                    response_data=entry.response_data,
                    metadata_=entry.metadata,
                )
            )


class BackgroundSink:
    """Hand records to a single worker thread so the caller never blocks.

    Failures in the worker are logged, since there is no caller left to
    receive them.
    """

    def __init__(self, inner: Any, *, name: str = "llm-orchestrator-sink") -> None:
        self._inner = inner
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def record_execution(self, entry: ExecutionLogEntry) -> None:
        self._submit(self._inner.record_execution, entry)

    def record_metric(self, event: MetricEvent) -> None:
        self._submit(self._inner.record_metric, event)

    def close(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _submit(self, fn: Any, record: Any) -> None:
        future = self._executor.submit(fn, record)
        future.add_done_callback(_log_background_failure)


def _log_background_failure(future: Future[Any]) -> None:
    exc = future.exception()
    if exc is not None:
        log.warning("Background recording failed: %s", exc, exc_info=exc)


def _wrap(sink: Any, recorder: RecorderSettings) -> Any:
    if recorder.mechanism == "async":
        return BackgroundSink(sink)
    return sink


def build_sinks(
    settings: Settings, session_factory: sessionmaker | None
) -> tuple[LogSink, MetricsSink]:
    """Build the log and metrics sinks the settings ask for."""
    log_sink: Any = NullSink()
    metrics_sink: Any = NullSink()
    needs_db = settings.logging.enabled or settings.metrics.enabled
    if needs_db and session_factory is None:
        raise ConfigurationError(
            "Execution logging and metrics need a database",
            hint="Set database_url (LLM_DATABASE_URL) or pass a session_factory.",
        )
    if settings.logging.enabled:
        log_sink = _wrap(DatabaseLogSink(session_factory), settings.logging)
    if settings.metrics.enabled:
        metrics_sink = _wrap(MetricsAggregator(session_factory), settings.metrics)
    return log_sink, metrics_sink
