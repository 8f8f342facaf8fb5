"""Multi-strategy procedure search and ranking.

Three strategies run in a fixed order (semantic, keyword, category) over a
single index snapshot. Their results are merged by document id, where a
later strategy only contributes 30% on top of an earlier one, then adjusted
for recency, title overlap, structure and ticket priority.
"""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from functools import partial

from ...common.utils import Clock, age_in_days, ensure_utc, utc_now
from ..domain import (
    Category,
    Priority,
    ProcedureDocument,
    RelevantResult,
    SearchReport,
    Section,
)
from ..domain.exceptions import SearchDegradationError
from ..ports import EngineObserver
from .content_normalizer import MIN_KEYWORD_LENGTH, STOP_WORDS, tokenize
from .document_index import DocumentIndex, IndexSnapshot
from .fuzzy_index import DEFAULT_THRESHOLD, FuzzyIndex
from .quality_validator import QualityValidator

DEFAULT_TOP_K = 5
DEFAULT_KEYWORD_MIN_SCORE = 0.2
MAX_QUERY_KEYWORDS = 10

# First match wins, so order matters
CATEGORY_QUERY_PATTERNS: dict[Category, re.Pattern[str]] = {
    Category.RETURNS: re.compile(r"return|refund|exchange|money back|replacement"),
    Category.BILLING: re.compile(r"billing|payment|invoice|charge|subscription|price|cost|fee"),
    Category.SHIPPING: re.compile(r"shipping|delivery|tracking|shipment|dispatch|mail|post"),
    Category.TECHNICAL: re.compile(
        r"technical|troubleshoot|error|bug|issue|problem|not working|broken"
    ),
    Category.ACCOUNT: re.compile(r"account|login|password|profile|registration|signup|sign up"),
    Category.PRODUCT: re.compile(r"product|feature|functionality|specification|usage|how to"),
    Category.ESCALATION: re.compile(r"escalate|manager|supervisor|complex|urgent|complaint"),
}

# Keyword strategy contributions per query term
KEYWORD_TITLE_SCORE = 0.3
KEYWORD_OCCURRENCE_SCORE = 0.1
KEYWORD_OCCURRENCE_CAP = 0.4
KEYWORD_SET_SCORE = 0.2

CATEGORY_MATCH_SCORE = 0.8
CATEGORY_MATCH_SECTIONS = 2

# Merge weights: the first strategy to find a document keeps 70%
MERGE_EXISTING_WEIGHT = 0.7
MERGE_NEW_WEIGHT = 0.3

# Ranking adjustments
RECENT_DAYS = 30
OLD_DAYS = 180
RECENT_BOOST = 1.1
OLD_PENALTY = 0.9
TITLE_SUBSTRING_SCORE = 0.8
TITLE_MATCH_WEIGHT = 0.2
SECTION_BONUS = 0.05
SECTION_BONUS_CAP = 0.2
PRIORITY_BOOSTS = {Priority.URGENT: 1.15, Priority.HIGH: 1.1}

FILTERED_FIELD_WEIGHTS = {"title": 1.0, "content": 1.0, "keywords": 1.0}


def extract_query_keywords(text: str) -> list[str]:
    """Query terms filtered like document keywords, in order of appearance, at most ten."""
    words = [
        word
        for word in tokenize(text)
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    ]
    return words[:MAX_QUERY_KEYWORDS]


def categorize_query(text: str) -> Category | None:
    """First category whose pattern matches the query text, if any."""
    text_lower = text.lower()
    for category, pattern in CATEGORY_QUERY_PATTERNS.items():
        if pattern.search(text_lower):
            return category
    return None


def title_match_score(title: str, query: str) -> float:
    """0.8 when the title contains the whole query, else word overlap ratio."""
    title_lower = title.lower().strip()
    query_lower = query.lower().strip()
    if not title_lower or not query_lower:
        return 0.0
    if query_lower in title_lower:
        return TITLE_SUBSTRING_SCORE

    title_words = title_lower.split()
    query_words = set(query_lower.split())
    overlap = sum(1 for word in title_words if word in query_words)
    return overlap / max(len(title_words), len(query_lower.split()))


def merge_results(results: Iterable[RelevantResult]) -> list[RelevantResult]:
    """Deduplicate by document id, keeping first-seen order.

    A repeat sighting blends as ``0.7 * existing + 0.3 * new``, unions the
    matched sections by title and appends its reasoning.
    """
    merged: dict[str, RelevantResult] = {}
    for result in results:
        doc_id = result.document.id
        existing = merged.get(doc_id)
        if existing is None:
            merged[doc_id] = result
            continue

        sections = list(existing.matched_sections)
        seen_titles = {section.title for section in sections}
        for section in result.matched_sections:
            if section.title not in seen_titles:
                sections.append(section)
                seen_titles.add(section.title)

        merged[doc_id] = replace(
            existing,
            relevance_score=(
                MERGE_EXISTING_WEIGHT * existing.relevance_score
                + MERGE_NEW_WEIGHT * result.relevance_score
            ),
            matched_sections=sections,
            reasoning=f"{existing.reasoning}; {result.reasoning}",
        )
    return list(merged.values())


class SearchService:
    """Finds the procedures most relevant to a customer issue.

    Reads one :class:`IndexSnapshot` per call and never writes to the
    index. Search degrades instead of failing: a broken strategy contributes
    nothing, and a failure while merging or ranking returns no results.
    """

    def __init__(
        self,
        index: DocumentIndex,
        observer: EngineObserver | None = None,
        quality_validator: QualityValidator | None = None,
        clock: Clock = utc_now,
        fuzzy_threshold: float = DEFAULT_THRESHOLD,
        keyword_min_score: float = DEFAULT_KEYWORD_MIN_SCORE,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self.index = index
        self.observer = observer or EngineObserver()
        self.quality_validator = quality_validator or QualityValidator(clock)
        self.fuzzy_threshold = fuzzy_threshold
        self.keyword_min_score = keyword_min_score
        self.top_k = top_k
        self._clock = clock
        self._fuzzy_cache: tuple[int, FuzzyIndex] | None = None
        self._fuzzy_lock = threading.Lock()

    def find_relevant(
        self,
        issue: str,
        agent_notes: str = "",
        priority: Priority | None = None,
        category_hint: Category | None = None,
    ) -> list[RelevantResult]:
        """Search, merge and rank procedures for one query.

        Args:
            issue: The customer's issue text.
            agent_notes: Extra context from the agent.
            priority: Ticket priority; urgent and high boost every score.
            category_hint: Category used by the category strategy when the
                issue and notes match none.

        Returns:
            At most ``top_k`` results sorted by non-increasing relevance.
            Never raises.
        """
        started = time.perf_counter()
        snapshot = self.index.snapshot

        candidates: list[RelevantResult] = []
        strategies = (
            ("semantic", self._semantic_search),
            ("keyword", self._keyword_search),
            ("category", partial(self._category_search, category_hint=category_hint)),
        )
        for name, strategy in strategies:
            try:
                candidates.extend(strategy(snapshot, issue, agent_notes))
            except Exception as e:
                self.observer.strategy_failed(
                    name,
                    SearchDegradationError(
                        f"{name} search failed", cause=e, context={"strategy": name}
                    ),
                )

        try:
            merged = merge_results(candidates)
            ranked = self.rank_results(merged, issue, priority)[: self.top_k]
        except Exception as e:
            self.observer.strategy_failed(
                "ranking",
                SearchDegradationError("Merging or ranking failed", cause=e),
            )
            return []

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.observer.search_completed(issue, len(ranked), elapsed_ms)
        return ranked

    def rank_results(
        self,
        results: Iterable[RelevantResult],
        issue: str,
        priority: Priority | None = None,
    ) -> list[RelevantResult]:
        """Apply recency, title, structure and priority adjustments, then sort."""
        now = self._clock()
        ranked = []
        for result in results:
            doc = result.document
            score = result.relevance_score

            days_since_update = age_in_days(doc.last_modified, now)
            if days_since_update < RECENT_DAYS:
                score *= RECENT_BOOST
            elif days_since_update > OLD_DAYS:
                score *= OLD_PENALTY

            score += title_match_score(doc.title, issue) * TITLE_MATCH_WEIGHT
            score += min(len(doc.sections) * SECTION_BONUS, SECTION_BONUS_CAP)

            if priority is not None:
                score *= PRIORITY_BOOSTS.get(Priority(priority), 1.0)

            ranked.append(replace(result, relevance_score=min(max(score, 0.0), 1.0)))

        ranked.sort(key=lambda r: r.relevance_score, reverse=True)
        return ranked

    def search_with_filters(
        self,
        query: str,
        categories: Iterable[Category | str] | None = None,
        updated_after: datetime | None = None,
        min_quality_score: int | None = None,
    ) -> SearchReport:
        """Fuzzy search over a filtered subset of the index.

        Args:
            query: Free-text query.
            categories: Keep only documents in these categories.
            updated_after: Keep only documents modified at or after this time.
            min_quality_score: Keep only documents scoring at least this much
                on the quality rubric.

        Returns:
            SearchReport with every match and the elapsed time.
        """
        started = time.perf_counter()
        documents = self.index.snapshot.ordered()

        if categories:
            wanted = {Category(category) for category in categories}
            documents = [doc for doc in documents if doc.category in wanted]
        if updated_after is not None:
            cutoff = ensure_utc(updated_after)
            documents = [doc for doc in documents if doc.last_modified >= cutoff]
        if min_quality_score is not None:
            documents = [
                doc
                for doc in documents
                if self.quality_validator.validate(doc).score >= min_quality_score
            ]

        fuzzy = FuzzyIndex(documents, FILTERED_FIELD_WEIGHTS, self.fuzzy_threshold)
        results = [
            RelevantResult(
                document=match.document,
                relevance_score=match.relevance,
                matched_sections=self._matching_sections(match.document, query),
                reasoning="Filtered search match",
            )
            for match in fuzzy.search(query)
        ]

        return SearchReport(
            query=query,
            results=results,
            total_found=len(results),
            search_time_ms=(time.perf_counter() - started) * 1000,
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _semantic_search(
        self, snapshot: IndexSnapshot, issue: str, agent_notes: str
    ) -> list[RelevantResult]:
        search_query = f"{issue} {agent_notes}".lower()
        results = []
        for match in self._fuzzy_index(snapshot).search(search_query):
            if match.matched_fields:
                reasoning = f"Matched in: {', '.join(match.matched_fields)}"
            else:
                reasoning = "General content match"
            results.append(
                RelevantResult(
                    document=match.document,
                    relevance_score=match.relevance,
                    matched_sections=self._matching_sections(match.document, search_query),
                    reasoning=f"Semantic match: {reasoning}",
                )
            )
        return results

    def _keyword_search(
        self, snapshot: IndexSnapshot, issue: str, agent_notes: str
    ) -> list[RelevantResult]:
        keywords = extract_query_keywords(issue)
        if not keywords:
            return []

        results = []
        for doc in snapshot.ordered():
            score = self._keyword_score(doc, keywords)
            if score < self.keyword_min_score:
                continue
            matched_sections = [
                section
                for section in doc.sections
                if any(keyword in section.content.lower() for keyword in keywords)
            ]
            results.append(
                RelevantResult(
                    document=doc,
                    relevance_score=score,
                    matched_sections=matched_sections,
                    reasoning=f"Keyword matches: {', '.join(keywords)}",
                )
            )

        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results

    def _category_search(
        self,
        snapshot: IndexSnapshot,
        issue: str,
        agent_notes: str,
        category_hint: Category | None = None,
    ) -> list[RelevantResult]:
        category = categorize_query(f"{issue} {agent_notes}") or category_hint
        if category is None:
            return []

        return [
            RelevantResult(
                document=doc,
                relevance_score=CATEGORY_MATCH_SCORE,
                matched_sections=list(doc.sections[:CATEGORY_MATCH_SECTIONS]),
                reasoning=f"Category match: {category.value}",
            )
            for doc in snapshot.ordered()
            if doc.category == category
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _keyword_score(doc: ProcedureDocument, keywords: list[str]) -> float:
        title_lower = doc.title.lower()
        doc_text = f"{doc.title} {doc.clean_content}".lower()
        score = 0.0
        for keyword in keywords:
            if keyword in title_lower:
                score += KEYWORD_TITLE_SCORE
            score += min(doc_text.count(keyword) * KEYWORD_OCCURRENCE_SCORE, KEYWORD_OCCURRENCE_CAP)
            if any(keyword in doc_keyword for doc_keyword in doc.keywords):
                score += KEYWORD_SET_SCORE
        return min(score / len(keywords), 1.0)

    @staticmethod
    def _matching_sections(doc: ProcedureDocument, query: str) -> list[Section]:
        query_words = query.lower().split()
        if not query_words:
            return []
        return [
            section
            for section in doc.sections
            if any(word in f"{section.title} {section.content}".lower() for word in query_words)
        ]

    def _fuzzy_index(self, snapshot: IndexSnapshot) -> FuzzyIndex:
        with self._fuzzy_lock:
            cached = self._fuzzy_cache
            if cached is not None and cached[0] == snapshot.generation:
                return cached[1]
            fuzzy = FuzzyIndex(snapshot.ordered(), threshold=self.fuzzy_threshold)
            self._fuzzy_cache = (snapshot.generation, fuzzy)
            return fuzzy
