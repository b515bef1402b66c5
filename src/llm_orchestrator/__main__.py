"""Command line maintenance for the orchestrator database.

Usage:
    llm-orchestrator init-db
    llm-orchestrator prune-logs --hours 48
    llm-orchestrator --database-url sqlite:///llm.db prune-logs  # every log
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from llm_orchestrator.config import Settings
from llm_orchestrator.db import create_engine_for, create_tables, session_factory
from llm_orchestrator.errors import LlmOrchestratorError
from llm_orchestrator.prune import prune_logs

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger("llm_orchestrator.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="llm-orchestrator",
        description="Maintain llm-orchestrator execution logs and tables",
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy URL (default: LLM_DATABASE_URL)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create any missing tables")

    prune = sub.add_parser("prune-logs", help="Delete execution logs")
    prune.add_argument(
        "--hours",
        type=int,
        help="Only prune logs older than this many hours (default: all logs)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        url = args.database_url or Settings.from_env().database_url
        if not url:
            logger.error("No database configured; pass --database-url or set LLM_DATABASE_URL")
            return 2

        engine = create_engine_for(url)
        if args.command == "init-db":
            create_tables(engine)
            logger.info("Tables are ready")
            return 0

        deleted = prune_logs(session_factory(engine), args.hours)
    except LlmOrchestratorError as e:
        logger.error("%s", e)
        if e.hint:
            logger.error("Hint: %s", e.hint)
        return 1

    if args.hours is None:
        print(f"Deleted all {deleted} execution log(s)")
    else:
        print(f"Deleted {deleted} execution log(s) older than {args.hours} hour(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
