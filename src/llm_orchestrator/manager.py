"""Client routing, the fallback chain, and process-name routing."""

from __future__ import annotations

from contextvars import ContextVar
import dataclasses
import itertools
import logging
import threading
from typing import TYPE_CHECKING

from llm_orchestrator.drivers.base import Driver
from llm_orchestrator.errors import (
    AllClientsFailedError,
    InvalidDriverError,
    LlmOrchestratorError,
)
from llm_orchestrator.registry import DriverRegistry
from llm_orchestrator.request import RequestBuilder

if TYPE_CHECKING:
    import httpx

    from llm_orchestrator.config import ProcessRoute, Settings
    from llm_orchestrator.mappings import ProcessMappingLookup
    from llm_orchestrator.request import Request
    from llm_orchestrator.sinks import LogSink, MetricsSink
    from llm_orchestrator.types import Response

log = logging.getLogger(__name__)

_manager_ids = itertools.count()


class Manager:
    """Entry point for sending requests.

    Client selection order for ``send``: the explicit ``client`` argument, then
    the context client set with ``using``, then ``settings.default.client``.

    Example:
        manager = Manager(Settings.from_env())
        response = await manager.prompt("Say hi")
        print(response.content, response.attempted_clients)
    """

    def __init__(
        self,
        settings: Settings,
        registry: DriverRegistry | None = None,
        *,
        mappings: ProcessMappingLookup | None = None,
        log_sink: LogSink | None = None,
        metrics_sink: MetricsSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or DriverRegistry(
            settings,
            log_sink=log_sink,
            metrics_sink=metrics_sink,
            transport=transport,
        )
        self.mappings = mappings
        self._drivers: dict[str, Driver] = {}
        self._lock = threading.Lock()
        self._context_client: ContextVar[str | None] = ContextVar(
            f"llm_orchestrator_client_{next(_manager_ids)}", default=None
        )

    @staticmethod
    def request() -> RequestBuilder:
        return RequestBuilder()

    def using(self, client: str | None) -> Manager:
        """Override the default client for the current context; ``None`` clears it."""
        self._context_client.set(client)
        return self

    @property
    def current_client(self) -> str:
        return self._context_client.get() or self.settings.default.client

    async def prompt(self, prompt: str, client: str | None = None) -> Response:
        return await self.send(self.request().prompt(prompt).build(), client)

    def driver(self, client: str) -> Driver:
        """Return the cached driver for *client*, building it on first use."""
        driver = self._drivers.get(client)
        if driver is not None:
            return driver
        with self._lock:
            driver = self._drivers.get(client)
            if driver is None:
                driver = self.registry.create(client)
                if not isinstance(driver, Driver):
                    raise InvalidDriverError.for_driver(driver, client)
                self._drivers[client] = driver
        return driver

    async def send(self, request: Request, client: str | None = None) -> Response:
        """Send *request*, walking the fallback chain if the first client fails.

        Only retryable errors (``RequestFailedError``) enter the fallback
        chain; validation and configuration errors propagate unchanged.
        """
        primary = client or self.current_client
        attempted = [primary]
        try:
            response = await self.driver(primary).send(request)
        except LlmOrchestratorError as exc:
            if not (self.settings.fallback.enabled and exc.retryable):
                raise
            log.warning("Client %s failed, trying fallbacks: %s", primary, exc)
            return await self._send_via_fallbacks(
                request.without_model(), attempted, {primary: str(exc)}
            )
        return dataclasses.replace(response, attempted_clients=tuple(attempted))

    async def _send_via_fallbacks(
        self, request: Request, attempted: list[str], errors: dict[str, str]
    ) -> Response:
        for client in self.settings.fallback.clients:
            if client in attempted:
                continue
            attempted.append(client)
            try:
                response = await self.driver(client).send(request)
            except LlmOrchestratorError as exc:
                log.warning("Fallback client %s failed: %s", client, exc)
                errors[client] = str(exc)
                continue
            log.info("Fallback client %s answered after %s", client, attempted[:-1])
            return dataclasses.replace(response, attempted_clients=tuple(attempted))

        raise AllClientsFailedError.after_attempts(attempted, errors)

    async def for_process(self, process_name: str, request: Request) -> Response:
        """Route by process name: database mapping, then static mapping, then default."""
        route = self._process_route(process_name)
        if route is None:
            return await self.send(request)
        log.debug(
            "Process %s routed to %s/%s", process_name, route.client, route.model
        )
        return await self.send(request.with_model(route.model), route.client)

    def _process_route(self, process_name: str) -> ProcessRoute | None:
        if self.mappings is not None:
            route = self.mappings.lookup_active(process_name)
            if route is not None:
                return route
        return self.settings.process_mappings.get(process_name)
