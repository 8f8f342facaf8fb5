"""Weighted-field approximate matching over procedure documents."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from rapidfuzz import fuzz, process

from ..domain import ProcedureDocument
from .content_normalizer import tokenize

DEFAULT_FIELD_WEIGHTS: dict[str, float] = {
    "title": 0.3,
    "content": 0.4,
    "keywords": 0.2,
    "category": 0.1,
}

DEFAULT_THRESHOLD = 0.4
MIN_MATCH_CHAR_LENGTH = 3
# A field counts as "matched" in the reasoning above this similarity
FIELD_MATCH_SIMILARITY = 0.6


@dataclass
class FuzzyMatch:
    """One document within the threshold.

    Attributes:
        document: The matched document.
        distance: 0 is a perfect match, 1 no match at all.
        matched_fields: Fields whose similarity reached the match level.
    """

    document: ProcedureDocument
    distance: float
    matched_fields: list[str]

    @property
    def relevance(self) -> float:
        return 1.0 - self.distance


class FuzzyIndex:
    """Per-field token index scored with rapidfuzz.

    Each query term is compared to every token of a field and keeps its best
    ratio; a field's similarity is the mean over query terms. The weighted
    sum of field similarities gives the match, and ``1 - match`` the distance
    compared against ``threshold`` (higher is more permissive).
    """

    def __init__(
        self,
        documents: Iterable[ProcedureDocument],
        weights: Mapping[str, float] | None = None,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.weights = dict(weights or DEFAULT_FIELD_WEIGHTS)
        unknown = set(self.weights) - set(DEFAULT_FIELD_WEIGHTS)
        if unknown:
            raise ValueError(f"Unknown fuzzy fields: {sorted(unknown)}")
        self.threshold = threshold
        self._entries = [(doc, self._field_tokens(doc)) for doc in documents]

    def __len__(self) -> int:
        return len(self._entries)

    def search(self, query: str) -> list[FuzzyMatch]:
        """Documents within the threshold, best match first."""
        terms = [term for term in tokenize(query) if len(term) >= MIN_MATCH_CHAR_LENGTH]
        if not terms or not self._entries:
            return []

        total_weight = sum(self.weights.values()) or 1.0
        matches: list[FuzzyMatch] = []
        for doc, fields in self._entries:
            similarity = 0.0
            matched_fields = []
            for name, weight in self.weights.items():
                field_similarity = self._field_similarity(terms, fields[name])
                similarity += weight * field_similarity
                if field_similarity >= FIELD_MATCH_SIMILARITY:
                    matched_fields.append(name)

            distance = 1.0 - similarity / total_weight
            if distance <= self.threshold:
                matches.append(FuzzyMatch(doc, distance, matched_fields))

        matches.sort(key=lambda match: match.distance)
        return matches

    @staticmethod
    def _field_similarity(terms: list[str], tokens: list[str]) -> float:
        if not tokens:
            return 0.0
        total = 0.0
        for term in terms:
            best = process.extractOne(term, tokens, scorer=fuzz.ratio)
            total += best[1] / 100.0 if best else 0.0
        return total / len(terms)

    @staticmethod
    def _field_tokens(doc: ProcedureDocument) -> dict[str, list[str]]:
        # Unique tokens only
        return {
            "title": list(dict.fromkeys(tokenize(doc.title))),
            "content": list(dict.fromkeys(tokenize(doc.clean_content))),
            "keywords": list(doc.keywords),
            "category": [doc.category.value],
        }
