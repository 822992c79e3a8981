"""Inputs and results of the reconciliation tasks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Union


class CountMode(str, Enum):
    """Which pages a count batch selects."""

    INCREMENTAL = "incremental"  # qualifying pages without a count yet
    FORCE_ALL = "force"  # every qualifying page
    OUTDATED = "outdated"  # counts older than the page's last touch


PageIdentity = Union[int, str]


@dataclass
class ReconciliationCursor:
    """Position of one reconciliation run. Never persisted."""

    offset: int = 0
    batch_limit: int = 100
    mode: CountMode = CountMode.INCREMENTAL
    dry_run: bool = False


@dataclass
class CountTaskOptions:
    """Options for a single CountTask batch."""

    mode: CountMode = CountMode.INCREMENTAL
    limit: int = 100
    offset: int = 0
    pages: Optional[Sequence[PageIdentity]] = None
    dry_run: bool = False

    @classmethod
    def from_cursor(cls, cursor: ReconciliationCursor) -> "CountTaskOptions":
        return cls(
            mode=cursor.mode,
            limit=cursor.batch_limit,
            offset=cursor.offset,
            dry_run=cursor.dry_run,
        )


@dataclass
class CountResult:
    processed: int = 0
    errors: int = 0
    fetched: int = 0
    # Failed pages still in the candidate set after the batch
    retained: int = 0
    # Stored counts removed for uncountable content
    deleted: int = 0
    failed_ids: List[int] = field(default_factory=list)


@dataclass
class PurgeResult:
    deleted: int = 0
    missing: int = 0
    disqualified: int = 0
