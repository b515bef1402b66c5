"""Exception hierarchy for llm-orchestrator.

Every orchestration failure carries a ``retryable`` flag. The Manager reads
that flag to decide whether a failed client may be replaced by a fallback,
so the decision is a property of the error value rather than of the order in
which exception classes are caught.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence


class LlmOrchestratorError(Exception):
    """Base exception for all orchestration failures."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = dict(context or {})
        self.hint = hint


class ConfigurationError(LlmOrchestratorError):
    """Settings validation or resolution failed."""


class MessageValidationError(LlmOrchestratorError):
    """Message content is malformed or unsupported by the target driver."""

    @classmethod
    def for_driver(cls, driver: str, message: str) -> MessageValidationError:
        return cls(message, context={"driver": driver})


class RequestFailedError(LlmOrchestratorError):
    """The remote call failed: transport error, non-2xx status, or bad body.

    Eligible for fallback to another client.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        hint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, context=context, hint=hint)
        self.status_code = status_code

    @property
    def client(self) -> str | None:
        return self.context.get("client")

    @property
    def driver(self) -> str | None:
        return self.context.get("driver")

    @property
    def payload(self) -> Any:
        return self.context.get("payload")


class InvalidClientError(LlmOrchestratorError):
    """A client name was requested that is not registered."""

    @classmethod
    def for_client(
        cls, client: str, available: Sequence[str] = ()
    ) -> InvalidClientError:
        names = ", ".join(sorted(available)) or "none"
        return cls(
            f"Invalid LLM client requested: {client}",
            context={"requested_client": client, "available_clients": list(available)},
            hint=f"Registered clients: {names}.",
        )


class InvalidDriverError(LlmOrchestratorError):
    """A client resolves to something that does not implement the Driver contract."""

    @classmethod
    def for_driver(cls, driver: object, client: str) -> InvalidDriverError:
        if isinstance(driver, str):
            driver_name = driver
        elif isinstance(driver, type):
            driver_name = f"{driver.__module__}.{driver.__qualname__}"
        else:
            driver_name = f"{type(driver).__module__}.{type(driver).__qualname__}"
        return cls(
            f"Driver [{driver_name}] for client [{client}] is invalid or does not "
            "implement the required driver interface",
            context={"client": client, "driver": driver_name},
            hint="Custom drivers must subclass llm_orchestrator.drivers.Driver.",
        )


class AllClientsFailedError(LlmOrchestratorError):
    """The primary client and every fallback client failed."""

    def __init__(
        self,
        message: str,
        *,
        attempted_clients: Sequence[str],
        errors: Mapping[str, str],
    ) -> None:
        super().__init__(
            message,
            context={
                "attempted_clients": list(attempted_clients),
                "errors": dict(errors),
            },
        )
        self.attempted_clients: list[str] = list(attempted_clients)
        self.errors: dict[str, str] = dict(errors)

    @classmethod
    def after_attempts(
        cls, attempted_clients: Sequence[str], errors: Mapping[str, str]
    ) -> AllClientsFailedError:
        return cls(
            "All LLM clients failed: " + ", ".join(attempted_clients),
            attempted_clients=attempted_clients,
            errors=errors,
        )


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
