"""Client name -> driver instance construction."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any

from llm_orchestrator.config import ClientSettings
from llm_orchestrator.drivers.base import Driver
from llm_orchestrator.drivers.claude import ClaudeDriver
from llm_orchestrator.drivers.gemini import GeminiDriver
from llm_orchestrator.drivers.openai import OpenAIDriver
from llm_orchestrator.errors import InvalidClientError, InvalidDriverError

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from llm_orchestrator.config import Settings
    from llm_orchestrator.sinks import LogSink, MetricsSink

    DriverFactory = Callable[..., Any]

log = logging.getLogger(__name__)

BUILTIN_DRIVER_CLASSES: dict[str, type[Driver]] = {
    "openai": OpenAIDriver,
    "claude": ClaudeDriver,
    "gemini": GeminiDriver,
}


def import_driver(path: str) -> Any:
    """Import ``"package.module:ClassName"`` (a dotted last segment also works)."""
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ImportError(f"Not an import path: {path!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ImportError(f"{module_name} has no attribute {attr!r}") from e


class DriverRegistry:
    """Build drivers for named clients from settings.

    Kinds ``openai``, ``claude`` and ``gemini`` are built in. ``custom``
    clients name their class in ``via``. ``register`` overrides a client
    with any factory taking ``(client, settings, **kwargs)``.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        log_sink: LogSink | None = None,
        metrics_sink: MetricsSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.log_sink = log_sink
        self.metrics_sink = metrics_sink
        self.transport = transport
        self._factories: dict[str, DriverFactory] = {}

    def register(self, client: str, factory: DriverFactory) -> None:
        self._factories[client] = factory

    def names(self) -> list[str]:
        return sorted({*self.settings.clients, *self._factories})

    def create(self, client: str) -> Driver:
        """Build the driver for *client*.

        Raises:
            InvalidClientError: no such client is configured or registered.
            InvalidDriverError: the client's driver cannot be resolved or does
                not extend ``Driver``.
        """
        settings = self._client_settings(client)
        factory = self._factories.get(client) or self._resolve_factory(client, settings)
        return self._check(self._build(factory, client, settings), client)

    def _client_settings(self, client: str) -> ClientSettings:
        if client in self.settings.clients:
            return self.settings.client(client)
        if client in self._factories:
            return ClientSettings(driver="custom").resolve(self.settings.default)
        raise InvalidClientError.for_client(client, self.names())

    def _resolve_factory(self, client: str, settings: ClientSettings) -> Any:
        kind = settings.driver
        if kind in BUILTIN_DRIVER_CLASSES:
            return BUILTIN_DRIVER_CLASSES[kind]
        if kind != "custom":
            raise InvalidDriverError.for_driver(kind, client)

        via = settings.via
        if isinstance(via, str):
            try:
                return import_driver(via)
            except ImportError as e:
                log.debug("Could not import driver %s for %s: %s", via, client, e)
                raise InvalidDriverError.for_driver(via, client) from e
        if via is None:
            raise InvalidDriverError.for_driver("custom (no 'via')", client)
        return via

    def _build(self, factory: Any, client: str, settings: ClientSettings) -> Any:
        if not callable(factory):
            raise InvalidDriverError.for_driver(factory, client)
        if isinstance(factory, type) and not issubclass(factory, Driver):
            raise InvalidDriverError.for_driver(factory, client)
        return factory(
            client,
            settings,
            prices=self.settings.prices_for(client, settings.driver),
            log_sink=self.log_sink,
            metrics_sink=self.metrics_sink,
            transport=self.transport,
        )

    @staticmethod
    def _check(driver: Any, client: str) -> Driver:
        if not isinstance(driver, Driver):
            raise InvalidDriverError.for_driver(driver, client)
        return driver
