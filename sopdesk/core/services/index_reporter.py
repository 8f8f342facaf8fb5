"""Read-only statistics and export over the procedure index."""

from __future__ import annotations

import json
from collections import Counter

from ...common.utils import Clock, utc_now
from ..domain import Freshness, IndexReport
from .document_index import DocumentIndex
from .quality_validator import QualityValidator


class IndexReporter:
    """Summarizes the current index snapshot without touching the source.

    Works offline: everything is computed from the published snapshot and
    the quality rubric.
    """

    def __init__(
        self,
        index: DocumentIndex,
        quality_validator: QualityValidator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.index = index
        self.quality_validator = quality_validator or QualityValidator(clock)
        self._clock = clock

    def generate_report(self) -> IndexReport:
        """Category, keyword and freshness counts plus mean quality."""
        snapshot = self.index.snapshot
        documents = snapshot.ordered()
        now = self._clock()

        categories: Counter[str] = Counter()
        keywords: Counter[str] = Counter()
        freshness = {bucket.value: 0 for bucket in Freshness}
        total_quality = 0

        for doc in documents:
            categories[doc.category.value] += 1
            keywords.update(doc.keywords)
            freshness[Freshness.from_age(doc.last_modified, now).value] += 1
            total_quality += self.quality_validator.validate(doc).score

        return IndexReport(
            categories=dict(categories),
            keywords=dict(keywords),
            total_sops=len(documents),
            avg_quality_score=total_quality / len(documents) if documents else 0.0,
            freshness=freshness,
            last_sync=snapshot.last_sync,
        )

    def export_json(self) -> str:
        """Export a summary of every indexed procedure as JSON."""
        documents = self.index.snapshot.ordered()
        payload = {
            "exportDate": self._clock().isoformat(),
            "totalSOPs": len(documents),
            "sops": [
                {
                    "id": doc.id,
                    "title": doc.title,
                    "category": doc.category.value,
                    "lastModified": doc.last_modified.isoformat(),
                    "url": doc.url,
                    "keywords": list(doc.keywords),
                    "sectionCount": len(doc.sections),
                    "contentLength": len(doc.clean_content),
                }
                for doc in documents
            ],
        }
        return json.dumps(payload, indent=2)
