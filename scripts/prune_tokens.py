#!/usr/bin/env python3
"""
Bearer Token Pruning

Deletes tokens that expired or were revoked longer ago than the retention
window, and audit log entries older than the audit retention window.
Meant to be run from cron; reads BEARER_* settings from the environment.

Usage:
    # Prune both tokens and audit logs with configured windows
    python3 prune_tokens.py

    # Tokens only, custom window
    python3 prune_tokens.py --tokens-only --hours 48

    # Audit logs only, keep 30 days
    python3 prune_tokens.py --logs-only --days 30
"""

import argparse
import asyncio
import sys

from bearer.config import ConfigurationError, Settings, get_settings
from bearer.db.session import create_engine, create_session_factory, session_scope
from bearer.models.domain import PruneResult
from bearer.observability.logging import get_logger, setup_logging
from bearer.services.pruning import PruningService

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prune expired/revoked bearer tokens and old audit logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Nightly cron job
  python3 prune_tokens.py

  # Keep revoked tokens for two days
  python3 prune_tokens.py --tokens-only --hours 48
        """,
    )
    parser.add_argument(
        "--hours", type=int, help="Token retention window in hours (default: settings)"
    )
    parser.add_argument(
        "--days", type=int, help="Audit log retention window in days (default: settings)"
    )
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--tokens-only", action="store_true", help="Skip audit log pruning")
    scope.add_argument("--logs-only", action="store_true", help="Skip token pruning")
    return parser


async def prune(args: argparse.Namespace, settings: Settings) -> list[PruneResult]:
    engine = create_engine(settings)
    factory = create_session_factory(engine)
    results: list[PruneResult] = []
    try:
        async with session_scope(factory) as session:
            service = PruningService(session, settings)
            if not args.logs_only:
                results.append(await service.prune_tokens(args.hours))
            if not args.tokens_only:
                results.append(await service.prune_audit_logs(args.days))
    finally:
        await engine.dispose()
    return results


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ConfigurationError:
        return 2

    if not settings.database_url:
        print("BEARER_DATABASE_URL is not set", file=sys.stderr)
        return 2

    setup_logging(settings)

    try:
        results = asyncio.run(prune(args, settings))
    except ValueError as e:
        logger.error("prune_rejected", error=str(e))
        return 2

    for result in results:
        print(result.summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
