"""Query and search result models."""

from dataclasses import dataclass, field
from enum import Enum

from .document import Category, ProcedureDocument, Section


class Priority(str, Enum):
    """Ticket priority reported by the agent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class CustomerQuery:
    """An agent's request for grounding procedures.

    Attributes:
        issue: The customer's issue in their own words (voice of customer).
        agent_notes: Additional context typed by the agent.
        ticket_id: Ticket the query belongs to.
        customer_id: Optional CRM customer identifier.
        priority: Optional ticket priority.
        category: Optional category hint from the ticketing system, used when
            the issue text names no category itself.
    """

    issue: str
    agent_notes: str = ""
    ticket_id: str = ""
    customer_id: str | None = None
    priority: Priority | None = None
    category: Category | None = None


@dataclass
class RelevantResult:
    """A document scored against one query.

    Created per query and discarded after context assembly.

    Attributes:
        document: The matched procedure.
        relevance_score: Fused relevance in [0, 1].
        matched_sections: Sections of ``document`` that matched.
        reasoning: Advisory description of which strategies matched.
    """

    document: ProcedureDocument
    relevance_score: float
    matched_sections: list[Section] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class SearchReport:
    """Result of a filtered search."""

    query: str
    results: list[RelevantResult]
    total_found: int
    search_time_ms: float
    strategy: str = "hybrid"
