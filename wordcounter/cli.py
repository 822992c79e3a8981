"""Maintenance command line: ``count-words`` and ``purge-orphaned``.

Exit status is 1 when a run reported errors, 2 on configuration errors and 0
otherwise, including runs that found nothing to do.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Callable, List, Optional, Sequence

from wordcounter.config.logger import app_logger
from wordcounter.config.settings import Settings, settings as default_settings
from wordcounter.db.db import init_db
from wordcounter.engine import Engine, build_engine
from wordcounter.errors import ConfigurationError, StoreUnavailableError
from wordcounter.models.reconciliation import CountMode
from wordcounter.services.maintenance import run_count_words, run_purge_orphaned

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_CONFIG = 2

PAGE_SEPARATOR = "|"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wordcounter", description="WordCounter maintenance tasks")
    sub = parser.add_subparsers(dest="command", required=True)

    count = sub.add_parser("count-words", help="Count words in pages and update the database")
    mode = count.add_mutually_exclusive_group()
    mode.add_argument("--force", action="store_true", help="Recount all pages, even if already counted")
    mode.add_argument("--outdated", action="store_true", help="Recount pages edited since they were counted")
    count.add_argument("--limit", type=int, default=0, help="Maximum number of pages to process (0: no limit)")
    count.add_argument("--pages", help="Process only these pages, separated by '|'")
    count.add_argument("--batch-size", type=int, default=None, help="Pages per batch")
    count.add_argument("--dry-run", action="store_true", help="Show what would be done without making changes")

    purge = sub.add_parser(
        "purge-orphaned",
        help="Remove orphaned or invalid word count entries (missing page, wrong namespace, redirect etc.)",
    )
    purge.add_argument("--limit", type=int, default=0, help="Maximum number of entries to delete (0: no limit)")
    purge.add_argument("--batch-size", type=int, default=None, help="Entries per batch")
    purge.add_argument("--dry-run", action="store_true", help="Show what would be deleted, but do not delete")

    return parser


def parse_pages(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [page for page in value.split(PAGE_SEPARATOR) if page.strip()]


async def count_words_command(args: argparse.Namespace, engine: Engine, output: Callable[[str], None]) -> int:
    mode = CountMode.INCREMENTAL
    if args.force:
        mode = CountMode.FORCE_ALL
    elif args.outdated:
        mode = CountMode.OUTDATED

    summary = await run_count_words(
        engine.count_task(output_callback=output),
        batch_size=args.batch_size or engine.settings.WORDCOUNTER_COUNT_BATCH_SIZE,
        total_limit=args.limit,
        mode=mode,
        pages=parse_pages(args.pages),
        dry_run=args.dry_run,
        replication_wait=engine.settings.WORDCOUNTER_REPLICATION_WAIT,
        output=output,
    )
    return EXIT_ERRORS if summary.errors > 0 else EXIT_OK


async def purge_orphaned_command(args: argparse.Namespace, engine: Engine, output: Callable[[str], None]) -> int:
    await run_purge_orphaned(
        engine.purge_task(output_callback=output),
        batch_size=args.batch_size or engine.settings.WORDCOUNTER_PURGE_BATCH_SIZE,
        total_limit=args.limit,
        dry_run=args.dry_run,
        replication_wait=engine.settings.WORDCOUNTER_REPLICATION_WAIT,
        output=output,
    )
    return EXIT_OK


COMMANDS = {
    "count-words": count_words_command,
    "purge-orphaned": purge_orphaned_command,
}


async def _run(args: argparse.Namespace, engine: Engine, output: Callable[[str], None]) -> int:
    try:
        await init_db(engine.db_engine)
        return await COMMANDS[args.command](args, engine, output)
    except StoreUnavailableError as e:
        output(f"Aborted: {e}")
        return EXIT_ERRORS
    finally:
        await engine.close()


def main(
    argv: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
    output: Callable[[str], None] = print,
) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or default_settings

    try:
        engine = build_engine(settings)
    except ConfigurationError as e:
        app_logger.error(f"Configuration error: {e}")
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    return asyncio.run(_run(args, engine, output))


if __name__ == "__main__":
    sys.exit(main())
