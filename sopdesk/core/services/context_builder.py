"""Assembles grounding context for the downstream answer generator."""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace

from ...common.utils import Clock, months_before, utc_now
from ..domain import (
    ConfidenceMetrics,
    ContextValidation,
    CustomerQuery,
    EnhancedContext,
    Freshness,
    Priority,
    ProcedureContext,
    RelevantResult,
    SourceReference,
)
from ..domain.exceptions import EmptyQueryError
from ..ports import DocumentSourcePort, EngineObserver
from .document_extractor import DocumentExtractor
from .search_service import SearchService

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_TIMEOUT_SECONDS = 5.0

MAX_PRODUCT_KEYWORDS = 5
PRODUCT_PATTERNS = [
    re.compile(r"\b[A-Z][a-z]+ \d+"),  # Product names with versions, e.g. "iPhone 12"
    re.compile(r"\b[A-Z]{2,}"),  # Acronyms, e.g. "API"
    re.compile(r"\bmodel \w+", re.IGNORECASE),
    re.compile(r"\bversion \d+", re.IGNORECASE),
]

# Confidence scoring
HIGH_RELEVANCE = 0.8
HIGH_RELEVANCE_BONUS = 0.1
MANY_SOURCES = 3
MANY_SOURCES_BONUS = 0.05
FRESHNESS_CONFIDENCE = {
    Freshness.FRESH: 1.0,
    Freshness.STALE: 0.7,
    Freshness.OUTDATED: 0.4,
}
CLARITY_BASE = 0.5
CLARITY_WORD_RANGE = (5, 50)
CLARITY_WORD_BONUS = 0.2
CLARITY_KEYWORD_BONUS = 0.15
CLARITY_NOTES_BONUS = 0.15
CLARITY_NOTES_MIN_LENGTH = 10
CLARITY_PRIORITY_BONUS = 0.1
SPECIFIC_KEYWORDS = re.compile(
    r"\b(error|issue|problem|help|support|how|why|when|where)\b", re.IGNORECASE
)

# Context validation
MIN_AVG_RELEVANCE = 0.3
SOURCE_REVIEW_MONTHS = 6

SUMMARY_ISSUE_LENGTH = 100
SUMMARY_TOP_CATEGORIES = 3


def extract_product_keywords(text: str) -> list[str]:
    """Product references in free text, first seen first, at most five."""
    keywords: dict[str, None] = {}
    for pattern in PRODUCT_PATTERNS:
        for match in pattern.findall(text):
            keywords.setdefault(match.strip(), None)
    return list(keywords)[:MAX_PRODUCT_KEYWORDS]


class ContextBuilder:
    """Turns a customer query into an :class:`EnhancedContext`.

    Search results are re-checked against the live source before they are
    handed on, so the answer generator always sees the newest published
    procedure. Fresher copies are used for this context only; updating the
    index is left to the sync path.
    """

    def __init__(
        self,
        search_service: SearchService,
        source: DocumentSourcePort,
        extractor: DocumentExtractor | None = None,
        observer: EngineObserver | None = None,
        clock: Clock = utc_now,
        freshness_timeout_seconds: float = DEFAULT_FRESHNESS_TIMEOUT_SECONDS,
    ) -> None:
        self.search_service = search_service
        self.source = source
        self.extractor = extractor or DocumentExtractor()
        self.observer = observer or EngineObserver()
        self.freshness_timeout_seconds = freshness_timeout_seconds
        self._clock = clock

    def build_context(self, query: CustomerQuery) -> EnhancedContext:
        """Search, refresh stale results and package them as context.

        Args:
            query: The agent's query.

        Returns:
            EnhancedContext without confidence metrics.

        Raises:
            EmptyQueryError: If the issue text is blank.
        """
        if not query.issue or not query.issue.strip():
            raise EmptyQueryError(
                "Customer issue must not be empty", context={"ticket_id": query.ticket_id}
            )

        results = self.search_service.find_relevant(
            query.issue, query.agent_notes, query.priority, category_hint=query.category
        )
        logger.debug(f"Ticket {query.ticket_id}: {len(results)} candidate SOPs")
        results = self._refresh_results(results)

        return EnhancedContext(
            customer_issue=query.issue,
            agent_notes=query.agent_notes,
            ticket_id=query.ticket_id,
            customer_id=query.customer_id,
            priority=query.priority,
            relevant_procedures=[
                ProcedureContext(
                    title=result.document.title,
                    procedure=result.document.clean_content,
                    last_updated=result.document.last_modified,
                    url=result.document.url,
                    version=result.document.version,
                    category=result.document.category,
                    sections=list(result.document.sections),
                    relevance_score=result.relevance_score,
                )
                for result in results
            ],
            product_keywords=extract_product_keywords(query.issue),
            sop_sources=[
                SourceReference(
                    title=result.document.title,
                    url=result.document.url,
                    last_updated=result.document.last_modified,
                    version=result.document.version,
                )
                for result in results
            ],
            built_at=self._clock(),
        )

    def build_context_with_confidence(self, query: CustomerQuery) -> EnhancedContext:
        """Build the context and attach confidence metrics."""
        context = self.build_context(query)
        sop_relevance = self.sop_relevance_confidence(context)
        content_freshness = self.content_freshness_confidence(context)
        query_clarity = self.query_clarity_confidence(query)
        context.confidence = ConfidenceMetrics(
            sop_relevance=sop_relevance,
            content_freshness=content_freshness,
            query_clarity=query_clarity,
            overall=(sop_relevance + content_freshness + query_clarity) / 3,
        )
        return context

    def validate_context_quality(self, context: EnhancedContext) -> ContextValidation:
        """Flag contexts the caller should escalate rather than answer from."""
        issues: list[str] = []
        recommendations: list[str] = []

        if not context.relevant_procedures:
            issues.append("No relevant SOPs found")
            recommendations.append("Consider expanding search criteria or updating SOP repository")

        if _mean_relevance(context) < MIN_AVG_RELEVANCE:
            issues.append("Low SOP relevance scores")
            recommendations.append("Review query categorization or SOP keyword tagging")

        cutoff = months_before(context.built_at or self._clock(), SOURCE_REVIEW_MONTHS)
        old_sources = [source for source in context.sop_sources if source.last_updated < cutoff]
        if old_sources:
            issues.append(f"{len(old_sources)} SOPs are over {SOURCE_REVIEW_MONTHS} months old")
            recommendations.append("Schedule SOP review and updates")

        return ContextValidation(
            is_valid=not issues, issues=issues, recommendations=recommendations
        )

    def generate_summary(self, context: EnhancedContext) -> str:
        """Compact JSON summary of a context for logs and debugging."""
        categories = list(
            dict.fromkeys(procedure.category.value for procedure in context.relevant_procedures)
        )
        freshest = max(context.sop_sources, key=lambda source: source.last_updated, default=None)
        summary = {
            "ticketId": context.ticket_id,
            "customerIssue": context.customer_issue[:SUMMARY_ISSUE_LENGTH] + "...",
            "sopCount": context.total_sops_consulted,
            "topCategories": categories[:SUMMARY_TOP_CATEGORIES],
            "avgRelevance": round(_mean_relevance(context), 2),
            "freshestSOP": freshest.title if freshest else "None",
        }
        return json.dumps(summary, indent=2)

    # ------------------------------------------------------------------
    # Confidence
    # ------------------------------------------------------------------

    @staticmethod
    def sop_relevance_confidence(context: EnhancedContext) -> float:
        procedures = context.relevant_procedures
        if not procedures:
            return 0.0
        confidence = _mean_relevance(context)
        if any(procedure.relevance_score > HIGH_RELEVANCE for procedure in procedures):
            confidence += HIGH_RELEVANCE_BONUS
        if len(procedures) >= MANY_SOURCES:
            confidence += MANY_SOURCES_BONUS
        return min(confidence, 1.0)

    def content_freshness_confidence(self, context: EnhancedContext) -> float:
        sources = context.sop_sources
        if not sources:
            return 0.0
        now = context.built_at or self._clock()
        total = sum(
            FRESHNESS_CONFIDENCE[Freshness.from_age(source.last_updated, now)]
            for source in sources
        )
        return min(total / len(sources), 1.0)

    @staticmethod
    def query_clarity_confidence(query: CustomerQuery) -> float:
        confidence = CLARITY_BASE

        low, high = CLARITY_WORD_RANGE
        if low <= len(query.issue.split()) <= high:
            confidence += CLARITY_WORD_BONUS
        if SPECIFIC_KEYWORDS.search(query.issue):
            confidence += CLARITY_KEYWORD_BONUS
        if query.agent_notes and len(query.agent_notes) > CLARITY_NOTES_MIN_LENGTH:
            confidence += CLARITY_NOTES_BONUS
        if query.priority is not None and Priority(query.priority) != Priority.LOW:
            confidence += CLARITY_PRIORITY_BONUS

        return min(confidence, 1.0)

    # ------------------------------------------------------------------
    # Freshness
    # ------------------------------------------------------------------

    def _refresh_results(self, results: list[RelevantResult]) -> list[RelevantResult]:
        """Swap in newer live versions, falling back to the cached copies.

        All checks share one deadline; a slow page never holds up the rest.
        """
        if not results:
            return results

        refreshed = list(results)
        executor = ThreadPoolExecutor(max_workers=len(results), thread_name_prefix="freshness")
        try:
            futures: dict[Future[RelevantResult], int] = {
                executor.submit(self._fetch_latest, result): position
                for position, result in enumerate(results)
            }
            _, pending = wait(futures, timeout=self.freshness_timeout_seconds)

            for future, position in futures.items():
                doc_id = results[position].document.id
                if future in pending:
                    self.observer.freshness_check_failed(
                        doc_id,
                        TimeoutError(
                            f"Freshness check exceeded {self.freshness_timeout_seconds}s"
                        ),
                    )
                    continue
                try:
                    refreshed[position] = future.result()
                except Exception as e:
                    self.observer.freshness_check_failed(doc_id, e)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return refreshed

    def _fetch_latest(self, result: RelevantResult) -> RelevantResult:
        cached = result.document
        page = self.source.get_page_by_id(cached.id)
        if page.version <= cached.version:
            return result

        self.observer.document_stale(cached.id, cached.title, cached.version, page.version)
        return replace(result, document=self.extractor.extract(page))


def _mean_relevance(context: EnhancedContext) -> float:
    procedures = context.relevant_procedures
    if not procedures:
        return 0.0
    return sum(procedure.relevance_score for procedure in procedures) / len(procedures)
