"""llm-orchestrator: one request contract for OpenAI, Claude and Gemini.

Public API:
    - Manager: routing, fallback and process mappings
    - Request / RequestBuilder, Message, Content: the canonical request
    - Response, ToolCall: the canonical result
    - Settings: configuration schema
    - create_manager() / get_manager(): wired-up Manager instances
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from llm_orchestrator import db
from llm_orchestrator.config import ClientSettings, Settings
from llm_orchestrator.drivers import Driver, HttpDriver
from llm_orchestrator.errors import (
    AllClientsFailedError,
    ConfigurationError,
    InvalidClientError,
    InvalidDriverError,
    LlmOrchestratorError,
    MessageValidationError,
    RequestFailedError,
)
from llm_orchestrator.manager import Manager
from llm_orchestrator.mappings import DatabaseProcessMappings
from llm_orchestrator.request import Request, RequestBuilder
from llm_orchestrator.retry import RetryPolicy
from llm_orchestrator.schema import Property, PropertyType, Schema, Tool
from llm_orchestrator.sinks import build_sinks
from llm_orchestrator.types import Content, ContentType, Message, Response, ToolCall

if TYPE_CHECKING:
    import httpx
    from sqlalchemy.orm import sessionmaker

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("llm-orchestrator")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("llm_orchestrator").addHandler(logging.NullHandler())

_default_manager: Manager | None = None
_default_lock = threading.Lock()


def create_manager(
    settings: Settings | None = None,
    *,
    session_factory: sessionmaker | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Manager:
    """Build a Manager with sinks and process mappings wired from *settings*.

    A database is opened from ``settings.database_url`` when no
    ``session_factory`` is given. Without either, logging and metrics must be
    disabled and process mappings come from settings only.
    """
    settings = settings or Settings.from_env()
    if session_factory is None and settings.database_url:
        session_factory = db.session_factory(db.create_engine_for(settings.database_url))

    log_sink, metrics_sink = build_sinks(settings, session_factory)
    mappings = (
        DatabaseProcessMappings(session_factory) if session_factory is not None else None
    )
    return Manager(
        settings,
        mappings=mappings,
        log_sink=log_sink,
        metrics_sink=metrics_sink,
        transport=transport,
    )


def get_manager() -> Manager:
    """Return the process-wide Manager built from the environment."""
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            _default_manager = create_manager()
        return _default_manager


__all__ = [
    "AllClientsFailedError",
    "ClientSettings",
    "ConfigurationError",
    "Content",
    "ContentType",
    "Driver",
    "HttpDriver",
    "InvalidClientError",
    "InvalidDriverError",
    "LlmOrchestratorError",
    "Manager",
    "Message",
    "MessageValidationError",
    "Property",
    "PropertyType",
    "Request",
    "RequestBuilder",
    "RequestFailedError",
    "Response",
    "RetryPolicy",
    "Schema",
    "Settings",
    "Tool",
    "ToolCall",
    "create_manager",
    "get_manager",
]
