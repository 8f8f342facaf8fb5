"""Turns source pages into indexed procedure documents."""

import logging

from ...common.utils import ensure_utc
from ..domain import Page, ProcedureDocument
from ..domain.exceptions import ExtractionError
from .content_normalizer import ContentNormalizer
from .document_classifier import DocumentClassifier

logger = logging.getLogger(__name__)


class DocumentExtractor:
    """Runs normalization, section parsing and classification for one page.

    Extraction is a pure function of the page, so re-extracting an unchanged
    page always yields an equal document.
    """

    def __init__(
        self,
        normalizer: ContentNormalizer | None = None,
        classifier: DocumentClassifier | None = None,
    ) -> None:
        self.normalizer = normalizer or ContentNormalizer()
        self.classifier = classifier or DocumentClassifier()

    def is_procedure(self, page: Page) -> bool:
        """Whether the page should be indexed at all."""
        return self.classifier.is_procedure_document(page.title, page.labels)

    def extract(self, page: Page) -> ProcedureDocument:
        """Build a :class:`ProcedureDocument` from a page.

        Args:
            page: Page fetched from the source.

        Returns:
            The fully built, immutable document.

        Raises:
            ExtractionError: If any step fails on this page's content.
        """
        try:
            clean_content = self.normalizer.normalize(page.raw_body)
            sections = self.normalizer.split_sections(clean_content)
            category = self.classifier.categorize(page.title, clean_content)
            keywords = self.normalizer.extract_keywords(f"{page.title} {clean_content}")
        except Exception as e:
            raise ExtractionError(
                f"Failed to extract page {page.id}",
                cause=e,
                context={"page_id": page.id, "title": page.title},
            ) from e

        logger.debug(f"Extracted '{page.title}' as {category.value} ({len(sections)} sections)")
        return ProcedureDocument(
            id=page.id,
            title=page.title,
            raw_content=page.raw_body,
            clean_content=clean_content,
            url=page.url,
            last_modified=ensure_utc(page.last_modified_at),
            version=page.version,
            labels=tuple(page.labels),
            sections=tuple(sections),
            category=category,
            keywords=tuple(keywords),
        )
