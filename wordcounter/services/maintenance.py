"""Maintenance drivers: run count/purge tasks in batches until the work runs out.

Between batches the driver sleeps for ``replication_wait`` seconds so
database replicas can catch up before the next read.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from wordcounter.models.reconciliation import (
    CountMode,
    CountTaskOptions,
    PageIdentity,
    ReconciliationCursor,
)
from wordcounter.services.tasks import CountWordsTask, PurgeOrphanedTask


@dataclass
class CountSummary:
    processed: int = 0
    errors: int = 0
    batches: int = 0


@dataclass
class PurgeSummary:
    deleted: int = 0
    batches: int = 0


def _noop(msg: str) -> None:
    return None


async def run_count_words(
    task: CountWordsTask,
    batch_size: int = 100,
    total_limit: int = 0,
    mode: CountMode = CountMode.INCREMENTAL,
    pages: Optional[Sequence[PageIdentity]] = None,
    dry_run: bool = False,
    replication_wait: float = 0.0,
    output: Callable[[str], None] = _noop,
) -> CountSummary:
    """Count pages batch by batch; ``total_limit <= 0`` means no limit."""
    summary = CountSummary()

    if pages:
        result = await task.run(CountTaskOptions(pages=list(pages), dry_run=dry_run))
        summary.processed, summary.errors, summary.batches = result.processed, result.errors, 1
        _print_count_summary(summary, output)
        return summary

    cursor = ReconciliationCursor(offset=0, batch_limit=batch_size, mode=mode, dry_run=dry_run)
    while True:
        if total_limit > 0:
            remaining = total_limit - summary.processed - summary.errors
            if remaining <= 0:
                break
            cursor.batch_limit = min(batch_size, remaining)

        result = await task.run(CountTaskOptions.from_cursor(cursor))
        summary.batches += 1
        summary.processed += result.processed
        summary.errors += result.errors

        if result.fetched < cursor.batch_limit:
            break
        if total_limit > 0 and summary.processed + summary.errors >= total_limit:
            break

        # Counted and disqualified rows drop out of the incremental/outdated
        # candidate sets; retained failures and everything in force or
        # dry-run mode stay in
        if mode is CountMode.FORCE_ALL or dry_run:
            cursor.offset += result.fetched
        else:
            cursor.offset += result.retained

        output(f"Processed {summary.processed} entries so far.")
        await _wait_for_replication(replication_wait, output)

    _print_count_summary(summary, output)
    return summary


async def run_purge_orphaned(
    task: PurgeOrphanedTask,
    batch_size: int = 1000,
    total_limit: int = 0,
    dry_run: bool = False,
    replication_wait: float = 0.0,
    output: Callable[[str], None] = _noop,
) -> PurgeSummary:
    """Purge orphaned counts batch by batch; ``total_limit <= 0`` means no limit."""
    summary = PurgeSummary()
    missing_offset = disqualified_offset = 0

    while True:
        limit = batch_size
        if total_limit > 0:
            remaining = total_limit - summary.deleted
            if remaining <= 0:
                break
            limit = min(batch_size, remaining)

        result = await task.run(
            limit=limit,
            dry_run=dry_run,
            missing_offset=missing_offset,
            disqualified_offset=disqualified_offset,
        )
        summary.batches += 1
        summary.deleted += result.deleted

        if result.deleted < limit:
            break
        if total_limit > 0 and summary.deleted >= total_limit:
            break

        if dry_run:
            missing_offset += result.missing
            disqualified_offset += result.disqualified

        await _wait_for_replication(replication_wait, output)

    output("=== Summary ===")
    output(f"Total {'would delete' if dry_run else 'deleted'}: {summary.deleted} entries.")
    return summary


async def _wait_for_replication(seconds: float, output: Callable[[str], None]) -> None:
    output("Waiting for replication ...")
    if seconds > 0:
        await asyncio.sleep(seconds)


def _print_count_summary(summary: CountSummary, output: Callable[[str], None]) -> None:
    output("=== Summary ===")
    output(f"Total processed: {summary.processed} entries.")
    output(f"Total errors: {summary.errors} entries.")
