"""Context models handed to the downstream answer generator."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from .document import Category, Section
from .search import Priority


class Freshness(str, Enum):
    """Staleness bucket derived from last-modification age."""

    FRESH = "fresh"
    STALE = "stale"
    OUTDATED = "outdated"

    @classmethod
    def from_age(cls, last_modified: datetime, now: datetime) -> "Freshness":
        """Bucket a modification time: under 30 days fresh, under 90 stale."""
        age = now - last_modified
        if age < timedelta(days=30):
            return cls.FRESH
        if age < timedelta(days=90):
            return cls.STALE
        return cls.OUTDATED


@dataclass
class ProcedureContext:
    """One procedure as presented to the answer generator."""

    title: str
    procedure: str
    last_updated: datetime
    url: str
    version: int
    category: Category
    sections: list[Section]
    relevance_score: float


@dataclass
class SourceReference:
    """Citation metadata for response validation."""

    title: str
    url: str
    last_updated: datetime
    version: int


@dataclass
class ConfidenceMetrics:
    """Confidence signals, each in [0, 1]."""

    sop_relevance: float
    content_freshness: float
    query_clarity: float
    overall: float


@dataclass
class EnhancedContext:
    """Structured grounding context for one customer query.

    Attributes:
        customer_issue: The customer's issue text.
        agent_notes: The agent's additional notes.
        ticket_id: Ticket identifier.
        customer_id: Optional CRM customer identifier.
        priority: Optional ticket priority.
        relevant_procedures: Ranked procedures, freshest available versions.
        product_keywords: Product references detected in the issue text.
        sop_sources: Citation metadata, parallel to ``relevant_procedures``.
        confidence: Present when built with confidence scoring.
        built_at: When the context was assembled.
    """

    customer_issue: str
    agent_notes: str
    ticket_id: str
    customer_id: str | None
    priority: Priority | None
    relevant_procedures: list[ProcedureContext] = field(default_factory=list)
    product_keywords: list[str] = field(default_factory=list)
    sop_sources: list[SourceReference] = field(default_factory=list)
    confidence: ConfidenceMetrics | None = None
    built_at: datetime | None = None

    @property
    def total_sops_consulted(self) -> int:
        """Number of procedures included in the context."""
        return len(self.relevant_procedures)

    @property
    def sop_freshness(self) -> Freshness | None:
        """Freshness bucket of the most recently updated source."""
        if not self.sop_sources or self.built_at is None:
            return None
        newest = max(source.last_updated for source in self.sop_sources)
        return Freshness.from_age(newest, self.built_at)


@dataclass
class ContextValidation:
    """Gate result the caller uses to proceed or escalate."""

    is_valid: bool
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
