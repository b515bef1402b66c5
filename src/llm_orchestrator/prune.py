"""Retention for execution logs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete

from llm_orchestrator.db import ExecutionLogRecord
from llm_orchestrator.errors import ConfigurationError

if TYPE_CHECKING:
    from sqlalchemy.orm import sessionmaker

log = logging.getLogger(__name__)


def prune_logs(
    session_factory: sessionmaker,
    hours: int | None = None,
    *,
    now: datetime | None = None,
) -> int:
    """Delete execution logs and return how many were removed.

    With *hours* unset every log goes; otherwise only logs created more than
    *hours* ago are deleted.
    """
    statement = delete(ExecutionLogRecord)
    if hours is not None:
        if hours <= 0:
            raise ConfigurationError(
                f"Hours must be a positive integer, got {hours}",
                hint="Pass --hours 1 or more, or omit it to prune every log.",
            )
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
        statement = statement.where(ExecutionLogRecord.created_at < cutoff)

    with session_factory() as session, session.begin():
        deleted = session.execute(statement).rowcount or 0

    if hours is None:
        log.info("Pruned all %d execution log(s)", deleted)
    else:
        log.info("Pruned %d execution log(s) older than %d hour(s)", deleted, hours)
    return deleted
