"""SOP discovery, incremental sync and index maintenance."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from ...common.utils import Clock, ensure_utc, utc_now
from ..domain import (
    IndexReport,
    Page,
    PageEvent,
    ProcedureDocument,
    QualityReport,
    SyncError,
    SyncResult,
)
from ..domain.exceptions import SourceError, SourceUnavailableError, StorageError
from ..ports import DocumentSourcePort, EngineObserver, SnapshotStorePort
from .document_extractor import DocumentExtractor
from .document_index import DocumentIndex, IndexSnapshot
from .index_reporter import IndexReporter
from .quality_validator import QualityValidator

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 1.0


class DiscoveryService:
    """Keeps the procedure index in step with the source space.

    The service is the index's only writer. Full discovery replaces the
    index wholesale; incremental sync and webhook events merge into it.
    """

    def __init__(
        self,
        source: DocumentSourcePort,
        index: DocumentIndex,
        space_key: str,
        extractor: DocumentExtractor | None = None,
        quality_validator: QualityValidator | None = None,
        observer: EngineObserver | None = None,
        snapshot_store: SnapshotStorePort | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the service.

        Args:
            source: Document source to crawl.
            index: Index this service publishes into.
            space_key: Source space holding the procedures.
            extractor: Page to document converter.
            quality_validator: Rubric used by :meth:`validate_quality`.
            observer: Receives discovery and sync events.
            snapshot_store: Optional durable copy of each published snapshot.
            batch_size: Pages processed concurrently per batch.
            batch_delay_seconds: Pause between batches to respect rate limits.
            clock: Source of "now" for sync timestamps.
            sleep: Blocking sleep used between batches.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.source = source
        self.index = index
        self.space_key = space_key
        self.extractor = extractor or DocumentExtractor()
        self.quality_validator = quality_validator or QualityValidator(clock)
        self.reporter = IndexReporter(index, self.quality_validator, clock)
        self.observer = observer or EngineObserver()
        self.snapshot_store = snapshot_store
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Full discovery
    # ------------------------------------------------------------------

    def discover_all(self) -> list[ProcedureDocument]:
        """Crawl the whole space and extract every procedure page.

        Pages are processed in batches; pages inside a batch are classified
        and extracted concurrently, and batches are separated by a fixed
        delay. A page that fails is reported and skipped.

        Returns:
            Procedures sorted by category, then title (id breaks ties).

        Raises:
            SourceUnavailableError: If the page listing cannot be fetched.
        """
        pages = self._list_pages("discover_all")
        self.observer.discovery_started(len(pages))

        documents: list[ProcedureDocument] = []
        with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
            for start in range(0, len(pages), self.batch_size):
                batch = pages[start : start + self.batch_size]
                documents.extend(doc for doc in executor.map(self._process_page, batch) if doc)

                if start + self.batch_size < len(pages):
                    self._sleep(self.batch_delay_seconds)

        documents.sort(key=lambda doc: (doc.category.value, doc.title, doc.id))
        self.observer.discovery_completed(len(documents), len(pages))
        return documents

    def rebuild_index(self) -> list[ProcedureDocument]:
        """Run full discovery and replace the index with the result."""
        started = self._clock()
        documents = self.discover_all()
        snapshot = self.index.replace(documents, synced_at=started)
        self._persist(snapshot)
        return documents

    def _process_page(self, page: Page) -> ProcedureDocument | None:
        try:
            if not self.extractor.is_procedure(page):
                return None
            return self.extractor.extract(page)
        except Exception as e:
            self.observer.page_failed(page.id, page.title, e)
            return None

    # ------------------------------------------------------------------
    # Incremental sync
    # ------------------------------------------------------------------

    def incremental_sync(self, last_sync_time: datetime | None = None) -> SyncResult:
        """Re-extract pages modified since the last sync and merge them.

        Args:
            last_sync_time: Only pages modified strictly after this instant
                are re-extracted. Defaults to the index's own last sync; when
                neither exists every page is processed.

        Returns:
            SyncResult with page total, added/updated/removed counts and
            per-page errors.

        Raises:
            SourceUnavailableError: If the page listing cannot be fetched.
        """
        started = self._clock()
        pages = self._list_pages("incremental_sync")
        snapshot = self.index.snapshot
        since = last_sync_time if last_sync_time is not None else snapshot.last_sync
        if since is not None:
            since = ensure_utc(since)

        result = SyncResult(total=len(pages))
        changed = [
            page
            for page in pages
            if since is None or ensure_utc(page.last_modified_at) > since
        ]
        logger.info(f"Found {len(changed)} pages to sync ({len(pages)} total)")

        upserts: list[ProcedureDocument] = []
        removals: list[str] = []
        for page in changed:
            self._sync_page(page, snapshot, result, upserts, removals)

        listed_ids = {page.id for page in pages}
        vanished = [doc_id for doc_id in snapshot.documents if doc_id not in listed_ids]
        removals.extend(vanished)
        result.removed = len(removals)

        published = self.index.merge(upserts, removals, synced_at=started)
        self._persist(published)
        self.observer.sync_completed(result)
        return result

    def apply_page_event(
        self, event: PageEvent, page_id: str, space_key: str | None = None
    ) -> SyncResult:
        """Apply a single webhook notification to the index.

        Events for other spaces are ignored. Failures are recorded in the
        result rather than raised.
        """
        result = SyncResult()
        if space_key is not None and space_key != self.space_key:
            logger.debug(f"Ignoring {event.value} for page {page_id} in space {space_key}")
            return result

        snapshot = self.index.snapshot
        upserts: list[ProcedureDocument] = []
        removals: list[str] = []

        if event == PageEvent.PAGE_REMOVED:
            if page_id in snapshot.documents:
                removals.append(page_id)
        else:
            try:
                page = self.source.get_page_by_id(page_id)
            except Exception as e:
                result.errors.append(SyncError(page_id=page_id, error=str(e)))
                self.observer.page_failed(page_id, "", e)
                return result
            result.total = 1
            self._sync_page(page, snapshot, result, upserts, removals)

        result.removed = len(removals)
        if upserts or removals:
            published = self.index.merge(upserts, removals)
            self._persist(published)
        self.observer.sync_completed(result)
        return result

    def _sync_page(
        self,
        page: Page,
        snapshot: IndexSnapshot,
        result: SyncResult,
        upserts: list[ProcedureDocument],
        removals: list[str],
    ) -> None:
        existing = snapshot.get(page.id)
        try:
            if not self.extractor.is_procedure(page):
                if existing is not None:
                    removals.append(page.id)
                return
            doc = self.extractor.extract(page)
        except Exception as e:
            result.errors.append(SyncError(page_id=page.id, error=str(e)))
            self.observer.page_failed(page.id, page.title, e)
            return

        if existing is None:
            result.added += 1
        elif doc.version < existing.version:
            self.observer.version_regressed(doc.id, existing.version, doc.version)
            return
        else:
            result.updated += 1
        upserts.append(doc)

    # ------------------------------------------------------------------
    # Quality and reporting
    # ------------------------------------------------------------------

    def validate_quality(self, doc: ProcedureDocument) -> QualityReport:
        """Score one document with the structural quality rubric."""
        return self.quality_validator.validate(doc)

    def generate_index_report(self) -> IndexReport:
        """Category, keyword and freshness counts plus mean quality of the index."""
        return self.reporter.generate_report()

    def export_json(self) -> str:
        """Export a summary of every indexed procedure as JSON."""
        return self.reporter.export_json()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _list_pages(self, operation: str) -> list[Page]:
        try:
            return self.source.list_pages(self.space_key)
        except SourceError as e:
            self.observer.source_unavailable(operation, e)
            raise
        except Exception as e:
            error = SourceUnavailableError(
                f"Could not list pages in space {self.space_key}",
                cause=e,
                context={"operation": operation, "space_key": self.space_key},
            )
            self.observer.source_unavailable(operation, error)
            raise error from e

    def _persist(self, snapshot: IndexSnapshot) -> None:
        if self.snapshot_store is None:
            return
        try:
            self.snapshot_store.save(snapshot.ordered(), snapshot.last_sync)
        except StorageError as e:
            logger.warning(f"Could not persist index generation {snapshot.generation}: {e}")
