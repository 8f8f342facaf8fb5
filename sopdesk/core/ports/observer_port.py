"""Observer interface for engine events.

Services report noteworthy events here instead of logging inline, so their
contracts can be exercised without side effects. Every hook is a no-op by
default; implementations override what they care about.
"""

from ..domain import SyncResult


class EngineObserver:
    """Receives events from discovery, search and context assembly."""

    def discovery_started(self, total_pages: int) -> None:
        """A full crawl listed ``total_pages`` pages."""

    def page_failed(self, page_id: str, title: str, error: Exception) -> None:
        """One page could not be classified or extracted."""

    def discovery_completed(self, found: int, total_pages: int) -> None:
        """A full crawl finished."""

    def source_unavailable(self, operation: str, error: Exception) -> None:
        """The source could not be reached; the sync cycle is abandoned."""

    def sync_completed(self, result: SyncResult) -> None:
        """An incremental sync or webhook update was published."""

    def version_regressed(self, doc_id: str, indexed_version: int, source_version: int) -> None:
        """The source reported an older version than the index holds."""

    def document_stale(
        self, doc_id: str, title: str, cached_version: int, live_version: int
    ) -> None:
        """The live source has a newer version than the index."""

    def freshness_check_failed(self, doc_id: str, error: Exception | None) -> None:
        """A live re-fetch failed or timed out; the cached copy is used."""

    def strategy_failed(self, strategy: str, error: Exception) -> None:
        """A ranking strategy raised and contributed nothing."""

    def search_completed(self, query: str, result_count: int, elapsed_ms: float) -> None:
        """A search returned ``result_count`` results."""
