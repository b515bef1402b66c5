"""Process-name routing backed by the ``llm_process_mappings`` table."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import inspect, select

from llm_orchestrator.config import ProcessRoute
from llm_orchestrator.db import ProcessMappingRecord

if TYPE_CHECKING:
    from sqlalchemy.orm import sessionmaker


@runtime_checkable
class ProcessMappingLookup(Protocol):
    def lookup_active(self, process_name: str) -> ProcessRoute | None: ...


class DatabaseProcessMappings:
    """Read and maintain database-held process mappings."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._table_seen = False

    def lookup_active(self, process_name: str) -> ProcessRoute | None:
        """Return the active mapping for *process_name*, if any.

        A database without the mappings table has no mappings.
        """
        with self._session_factory() as session:
            if not self._has_table(session):
                return None
            record = session.execute(
                select(ProcessMappingRecord).where(
                    ProcessMappingRecord.process_name == process_name,
                    ProcessMappingRecord.is_active.is_(True),
                )
            ).scalar_one_or_none()
            if record is None:
                return None
            return ProcessRoute(client=record.client, model=record.model)

    def _has_table(self, session) -> bool:
        if not self._table_seen:
            self._table_seen = inspect(session.get_bind()).has_table(
                ProcessMappingRecord.__tablename__
            )
        return self._table_seen

    def set(self, process_name: str, client: str, model: str) -> None:
        """Create or replace the mapping and mark it active."""
        with self._session_factory() as session, session.begin():
            record = session.execute(
                select(ProcessMappingRecord).where(
                    ProcessMappingRecord.process_name == process_name
                )
            ).scalar_one_or_none()
            if record is None:
                session.add(
                    ProcessMappingRecord(
                        process_name=process_name,
                        client=client,
                        model=model,
                        is_active=True,
                    )
                )
            else:
                record.client = client
                record.model = model
                record.is_active = True

    def deactivate(self, process_name: str) -> bool:
        """Turn a mapping off without deleting it. Returns False if absent."""
        with self._session_factory() as session, session.begin():
            record = session.execute(
                select(ProcessMappingRecord).where(
                    ProcessMappingRecord.process_name == process_name
                )
            ).scalar_one_or_none()
            if record is None:
                return False
            record.is_active = False
            return True
