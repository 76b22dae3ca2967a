"""Entry point: sync daily report emails into the local store.

Usage:
    python sync.py sync [--user alex] [--max-results 50]
    python sync.py add-child alex Emma --last-name Smith
    python sync.py add-provider alex @tadpoles.com --name "Goddard School" --strategy goddard_tadpoles_v1
    python sync.py runs [--limit 10]
    python sync.py runs 3f9c2a7b1d04
    python sync.py stats alex Emma [--since 2025-05-01]
"""

import argparse
import asyncio
import json
import logging
import sys

from config import db_path, settings, users
from daycare_sync import analytics, database
from daycare_sync.database import ReportStore
from daycare_sync.email_fetcher import GmailMessageSource
from daycare_sync.exceptions import DaycareSyncError
from daycare_sync.models import BatchResult
from daycare_sync.parsers import ParserStrategy
from daycare_sync.processor import sync_user

logger = logging.getLogger(__name__)


async def run_sync(user_id: str, max_results: int) -> BatchResult:
    """Run one sync for a configured user."""
    user = users.get(user_id)
    if user is None:
        raise DaycareSyncError(f"User '{user_id}' is not configured ({', '.join(users)})")

    return await sync_user(
        GmailMessageSource(user=user),
        ReportStore(db_path()),
        user_id,
        query=user.gmail_query,
        max_results=max_results,
        deadline_seconds=settings.sync_deadline_seconds,
    )


def _cmd_sync(args) -> None:
    user_ids = [args.user] if args.user else list(users)
    failed = False
    for user_id in user_ids:
        try:
            batch = asyncio.run(run_sync(user_id, args.max_results))
        except DaycareSyncError as e:
            logger.error("Sync failed for %s: %s", user_id, e)
            failed = True
            continue
        print(f"{user_id}: {batch.message}")
        print(json.dumps(batch.stats(), indent=2))
    if failed:
        sys.exit(1)


def _cmd_add_child(args) -> None:
    child = database.add_child(args.user, args.first_name, args.last_name, db_path=db_path())
    print(f"Added {child.full_name} ({child.id})")


def _cmd_add_provider(args) -> None:
    database.add_provider_binding(
        args.user, args.sender, provider_name=args.name, strategy_id=args.strategy,
        db_path=db_path(),
    )
    print(f"Bound {args.sender} for {args.user}")


def _cmd_runs(args) -> None:
    if args.run_id:
        run = database.get_run(args.run_id, db_path=db_path())
        if run is None:
            logger.error("No sync run %s", args.run_id)
            sys.exit(1)
        print(json.dumps(run, indent=2))
        return

    for run in database.list_runs(limit=args.limit, user_id=args.user, db_path=db_path()):
        stats = run["stats"]
        print(
            f"{run['started_at']}  {run['run_id']}  {run['user_id']:<10} {run['status']:<9} "
            f"found={stats.get('total_found', 0)} imported={stats.get('imported', 0)} "
            f"errors={stats.get('errors', 0)}"
        )


def _cmd_stats(args) -> None:
    children = database.list_children(args.user, db_path=db_path())
    child = next((c for c in children if c.first_name.lower() == args.first_name.lower()), None)
    if child is None:
        logger.error("No child named %s for user %s", args.first_name, args.user)
        sys.exit(1)
    reports = database.list_reports(child.id, start_date=args.since, db_path=db_path())
    print(json.dumps(analytics.summarize_child(reports), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import daycare daily report emails.")
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Fetch and import new report emails")
    sync.add_argument("--user", help="User ID (default: every configured user)")
    sync.add_argument("--max-results", type=int, default=settings.gmail_max_results,
                      help="Maximum emails to consider per user")
    sync.set_defaults(func=_cmd_sync)

    add_child = commands.add_parser("add-child", help="Add a child to a user's roster")
    add_child.add_argument("user")
    add_child.add_argument("first_name")
    add_child.add_argument("--last-name")
    add_child.set_defaults(func=_cmd_add_child)

    add_provider = commands.add_parser("add-provider", help="Bind a sender to a report provider")
    add_provider.add_argument("user")
    add_provider.add_argument("sender", help="Sender address, or @domain for a whole domain")
    add_provider.add_argument("--name", default="", help="Provider name, e.g. 'Goddard School'")
    add_provider.add_argument("--strategy", choices=[s.value for s in ParserStrategy],
                              help="Parser strategy (inferred from sender and name when omitted)")
    add_provider.set_defaults(func=_cmd_add_provider)

    runs = commands.add_parser("runs", help="List recent sync runs, or show one in detail")
    runs.add_argument("run_id", nargs="?", help="Show this run with its per-message outcomes")
    runs.add_argument("--user")
    runs.add_argument("--limit", type=int, default=20)
    runs.set_defaults(func=_cmd_runs)

    stats = commands.add_parser("stats", help="Sleep, meal and activity summaries for a child")
    stats.add_argument("user")
    stats.add_argument("first_name")
    stats.add_argument("--since", help="Only reports on or after this date (YYYY-MM-DD)")
    stats.set_defaults(func=_cmd_stats)

    return parser


def main() -> None:
    """Entry point for the sync CLI."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    args = build_parser().parse_args()
    try:
        args.func(args)
    except KeyboardInterrupt:
        logger.info("Sync interrupted.")
        sys.exit(0)


if __name__ == "__main__":
    main()
