"""Concurrency-safe daily usage counters.

Each event is applied in one transaction: lock the (date, client, driver,
model) row if it exists and increment it in SQL, or insert it. Two writers
racing on a missing row collide on the unique key; the loser rolls back and
retries, finds the row, and increments it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from llm_orchestrator.db import MetricRecord
from llm_orchestrator.errors import _walk_exception_chain
from llm_orchestrator.retry import RetryPolicy, retry_call

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from llm_orchestrator.sinks import MetricEvent

log = logging.getLogger(__name__)

DEFAULT_METRICS_RETRY = RetryPolicy(
    max_attempts=5,
    initial_delay_s=0.1,
    backoff_multiplier=1.0,
    max_delay_s=0.1,
    max_elapsed_s=None,
)


def is_write_conflict(exc: BaseException) -> bool:
    """Unique-key collisions and lock timeouts are worth another attempt."""
    return any(
        isinstance(e, (IntegrityError, OperationalError))
        for e in _walk_exception_chain(exc)
    )


class MetricsAggregator:
    """``MetricsSink`` that upserts ``MetricRecord`` rows."""

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        retry_policy: RetryPolicy = DEFAULT_METRICS_RETRY,
    ) -> None:
        self._session_factory = session_factory
        self._retry_policy = retry_policy

    def record_metric(self, event: MetricEvent) -> None:
        """Fold *event* into its daily row. Raises once the retry budget is spent."""
        retry_call(
            lambda: self._apply(event),
            policy=self._retry_policy,
            should_retry=self._should_retry,
        )

    def _should_retry(self, exc: BaseException) -> bool:
        if is_write_conflict(exc):
            log.debug("Metrics write conflict, retrying: %s", exc)
            return True
        return False

    def _apply(self, event: MetricEvent) -> None:
        with self._session_factory() as session, session.begin():
            row_id = self._locked_row_id(session, event)
            succeeded = 1 if event.is_successful else 0
            if row_id is None:
                session.add(
                    MetricRecord(
                        date=event.date,
                        client=event.client,
                        driver=event.driver,
                        model=event.model,
                        total_requests=1,
                        successful_requests=succeeded,
                        failed_requests=1 - succeeded,
                        input_tokens=event.input_tokens,
                        output_tokens=event.output_tokens,
                        total_tokens=event.total_tokens,
                        total_cost=event.cost,
                    )
                )
                return

            session.execute(
                update(MetricRecord)
                .where(MetricRecord.id == row_id)
                .values(
                    total_requests=MetricRecord.total_requests + 1,
                    successful_requests=MetricRecord.successful_requests + succeeded,
                    failed_requests=MetricRecord.failed_requests + (1 - succeeded),
                    input_tokens=MetricRecord.input_tokens + event.input_tokens,
                    output_tokens=MetricRecord.output_tokens + event.output_tokens,
                    total_tokens=MetricRecord.total_tokens + event.total_tokens,
                    total_cost=MetricRecord.total_cost + event.cost,
                )
            )

    @staticmethod
    def _locked_row_id(session: Session, event: MetricEvent) -> int | None:
        stmt = (
            select(MetricRecord.id)
            .where(
                MetricRecord.date == event.date,
                MetricRecord.client == event.client,
                MetricRecord.driver == event.driver,
                MetricRecord.model == event.model,
            )
            .with_for_update()
        )
        return session.execute(stmt).scalar_one_or_none()
