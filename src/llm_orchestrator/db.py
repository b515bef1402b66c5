"""SQLAlchemy tables and session factory for logs, metrics and process mappings.

Tables:
- llm_execution_logs: one row per driver execution, successful or failed
- llm_metrics: daily counters per (date, client, driver, model)
- llm_process_mappings: process name -> preferred client and model
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionLogRecord(Base):
    """A single driver execution with sanitized request and response data."""

    __tablename__ = "llm_execution_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client = Column(String(100), nullable=False)
    driver = Column(String(100), nullable=False)
    model = Column(String(200), nullable=False)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    cost = Column(Float, nullable=False, default=0.0)
    is_successful = Column(Boolean, nullable=False, default=True)
    finish_reason = Column(String(100))
    failed_reason = Column(Text)
    request_data = Column(JSON)
    response_data = Column(JSON)
    metadata_ = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_llm_execution_logs_created_at", "created_at"),
        Index("ix_llm_execution_logs_client_model", "client", "model"),
    )


class MetricRecord(Base):
    """Aggregated counters; at most one row per (date, client, driver, model)."""

    __tablename__ = "llm_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    client = Column(String(100), nullable=False)
    driver = Column(String(100), nullable=False)
    model = Column(String(200), nullable=False)
    total_requests = Column(Integer, nullable=False, default=0)
    successful_requests = Column(Integer, nullable=False, default=0)
    failed_requests = Column(Integer, nullable=False, default=0)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint("date", "client", "driver", "model", name="uq_llm_metrics_key"),
    )


class ProcessMappingRecord(Base):
    """Database-held routing for a named process; only active rows apply."""

    __tablename__ = "llm_process_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    process_name = Column(String(200), unique=True, nullable=False, index=True)
    client = Column(String(100), nullable=False)
    model = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


def create_engine_for(url: str, **kwargs: object) -> Engine:
    """Create a sync engine; ``pool_pre_ping`` is on for server databases."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """Create any missing orchestrator tables."""
    Base.metadata.create_all(engine)
