"""Execution log retention and the maintenance CLI."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from llm_orchestrator.__main__ import main
from llm_orchestrator.db import ExecutionLogRecord
from llm_orchestrator.errors import ConfigurationError
from llm_orchestrator.prune import prune_logs

pytestmark = pytest.mark.integration

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _add_log(session_factory, age: timedelta) -> None:
    with session_factory() as session, session.begin():
        session.add(
            ExecutionLogRecord(
                client="openai",
                driver="openai",
                model="gpt-4o-mini",
                created_at=NOW - age,
            )
        )


def _count(session_factory) -> int:
    with session_factory() as session:
        return session.execute(select(func.count(ExecutionLogRecord.id))).scalar_one()


def test_prune_deletes_only_old_logs(db_session_factory) -> None:
    _add_log(db_session_factory, timedelta(hours=1))
    _add_log(db_session_factory, timedelta(hours=30))
    _add_log(db_session_factory, timedelta(days=5))

    deleted = prune_logs(db_session_factory, 24, now=NOW)

    assert deleted == 2
    assert _count(db_session_factory) == 1


def test_prune_without_window_deletes_everything(db_session_factory) -> None:
    _add_log(db_session_factory, timedelta(minutes=5))
    _add_log(db_session_factory, timedelta(days=5))

    assert prune_logs(db_session_factory) == 2
    assert _count(db_session_factory) == 0
    assert prune_logs(db_session_factory) == 0


def test_prune_respects_custom_window(db_session_factory) -> None:
    _add_log(db_session_factory, timedelta(hours=30))

    assert prune_logs(db_session_factory, 48, now=NOW) == 0
    assert prune_logs(db_session_factory, 12, now=NOW) == 1


@pytest.mark.parametrize("hours", [0, -3])
def test_prune_rejects_non_positive_window(db_session_factory, hours: int) -> None:
    with pytest.raises(ConfigurationError):
        prune_logs(db_session_factory, hours)


def test_cli_init_db_and_prune(tmp_path, capsys) -> None:
    url = f"sqlite:///{tmp_path / 'cli.db'}"

    assert main(["--database-url", url, "init-db"]) == 0
    assert main(["--database-url", url, "prune-logs", "--hours", "1"]) == 0
    assert "Deleted 0 execution log(s) older than 1 hour(s)" in capsys.readouterr().out
    assert main(["--database-url", url, "prune-logs"]) == 0
    assert "Deleted all 0 execution log(s)" in capsys.readouterr().out


def test_cli_reports_bad_window(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    main(["--database-url", url, "init-db"])

    assert main(["--database-url", url, "prune-logs", "--hours", "0"]) == 1


def test_cli_without_database_fails() -> None:
    assert main(["prune-logs"]) == 2
