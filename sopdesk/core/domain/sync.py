"""Synchronization and quality models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PageEvent(str, Enum):
    """Change notification pushed by the source webhook."""

    PAGE_CREATED = "page_created"
    PAGE_UPDATED = "page_updated"
    PAGE_REMOVED = "page_removed"


@dataclass
class SyncError:
    """A page that failed during a sync."""

    page_id: str
    error: str


@dataclass
class SyncResult:
    """Counts reported by an incremental sync.

    Attributes:
        total: Pages listed by the source.
        added: Procedures indexed for the first time.
        updated: Procedures re-extracted over an existing entry.
        removed: Procedures dropped from the index.
        errors: Per-page failures; they never abort the sync.
    """

    total: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0
    errors: list[SyncError] = field(default_factory=list)


@dataclass
class QualityReport:
    """Structural quality of one procedure, scored out of 100."""

    score: int
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    MIN_VALID_SCORE = 60

    @property
    def is_valid(self) -> bool:
        """A procedure is usable for grounding at 60 points or more."""
        return self.score >= self.MIN_VALID_SCORE


@dataclass
class IndexReport:
    """Aggregate statistics over the current index.

    Attributes:
        categories: SOP count per category.
        keywords: Occurrences of each document keyword.
        total_sops: Number of indexed procedures.
        avg_quality_score: Mean quality score, 0 for an empty index.
        freshness: SOP count per freshness bucket (fresh, stale, outdated).
        last_sync: When the index was last synced, if ever.
    """

    categories: dict[str, int]
    keywords: dict[str, int]
    total_sops: int
    avg_quality_score: float
    freshness: dict[str, int] = field(default_factory=dict)
    last_sync: datetime | None = None
