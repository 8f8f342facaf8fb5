"""Engine observer that writes events to the standard logging module."""

import logging

from ...core.domain import SyncResult
from ...core.ports import EngineObserver

logger = logging.getLogger(__name__)


class LoggingObserver(EngineObserver):
    """Logs every engine event.

    Failures carry the error and the failing operation or strategy as
    ``extra=`` fields for the configured formatter.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def discovery_started(self, total_pages: int) -> None:
        self.log.info(f"Discovering SOPs across {total_pages} pages")

    def page_failed(self, page_id: str, title: str, error: Exception) -> None:
        self.log.warning(
            f"Skipping page {page_id} ({title or 'untitled'}): {error}",
            extra={"event": "page_failed", "page_id": page_id, "error": error},
        )

    def discovery_completed(self, found: int, total_pages: int) -> None:
        self.log.info(f"Discovered {found} SOPs in {total_pages} pages")

    def source_unavailable(self, operation: str, error: Exception) -> None:
        self.log.error(
            f"Confluence unavailable during {operation}: {error}",
            extra={"event": "source_unavailable", "operation": operation, "error": error},
        )

    def sync_completed(self, result: SyncResult) -> None:
        self.log.info(
            f"Sync complete: {result.added} added, {result.updated} updated, "
            f"{result.removed} removed, {len(result.errors)} errors"
        )

    def version_regressed(self, doc_id: str, indexed_version: int, source_version: int) -> None:
        self.log.warning(
            f"Page {doc_id} reported v{source_version} but index has v{indexed_version}; ignored"
        )

    def document_stale(
        self, doc_id: str, title: str, cached_version: int, live_version: int
    ) -> None:
        self.log.info(
            f"SOP outdated: {title}, using v{live_version} instead of v{cached_version}",
            extra={"event": "document_stale", "doc_id": doc_id},
        )

    def freshness_check_failed(self, doc_id: str, error: Exception | None) -> None:
        self.log.warning(f"Failed to check freshness of {doc_id}, using cached copy: {error}")

    def strategy_failed(self, strategy: str, error: Exception) -> None:
        self.log.warning(
            f"Search strategy {strategy} failed: {error}",
            extra={"event": "strategy_failed", "strategy": strategy, "error": error},
        )

    def search_completed(self, query: str, result_count: int, elapsed_ms: float) -> None:
        self.log.info(f"Search completed in {elapsed_ms:.0f}ms, found {result_count} relevant SOPs")
