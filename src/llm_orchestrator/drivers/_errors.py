"""Map transport, HTTP and decoding failures into ``RequestFailedError``."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from llm_orchestrator.errors import RequestFailedError, _walk_exception_chain

_BODY_PREVIEW_CHARS = 500


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.HTTPStatusError):
            return e.response.status_code
        value = getattr(e, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def _body_preview(exc: BaseException) -> str:
    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.HTTPStatusError):
            try:
                text = e.response.text
            except httpx.ResponseNotRead:
                return ""
            return text[:_BODY_PREVIEW_CHARS]
    return ""


def _auth_hint(client: str, status_code: int | None) -> str | None:
    if status_code in {401, 403}:
        return f"Check the api_key configured for client '{client}'."
    if status_code == 404:
        return f"Check the model name and base_url configured for client '{client}'."
    return None


def wrap_transport_error(
    exc: BaseException,
    *,
    client: str,
    driver: str,
    payload: Any,
) -> RequestFailedError:
    """Wrap *exc* with the client, driver and payload that produced it."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, RequestFailedError):
        exc.context.setdefault("client", client)
        exc.context.setdefault("driver", driver)
        exc.context.setdefault("payload", payload)
        return exc

    status_code = extract_status_code(exc)
    status_note = f" (status={status_code})" if status_code is not None else ""
    detail = _body_preview(exc) or str(exc) or type(exc).__name__
    return RequestFailedError(
        f"{driver} request for client '{client}' failed{status_note}: {detail}",
        context={"client": client, "driver": driver, "payload": payload},
        hint=_auth_hint(client, status_code),
        status_code=status_code,
    )
