"""
Pytest configuration and shared fixtures.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from sopdesk.core.domain import (
    Category,
    Page,
    ProcedureDocument,
    Section,
    SyncResult,
)
from sopdesk.core.domain.exceptions import PageNotFoundError
from sopdesk.core.ports import DocumentSourcePort, EngineObserver

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (API with mocked services)")
    config.addinivalue_line("markers", "slow: Slow tests")


class FakeSource(DocumentSourcePort):
    """In-memory document source keyed by page id."""

    def __init__(self, pages: list[Page] | None = None) -> None:
        self.pages: dict[str, Page] = {page.id: page for page in pages or []}
        self.list_error: Exception | None = None
        self.fetch_errors: dict[str, Exception] = {}
        self.list_calls = 0
        self.fetch_calls: list[str] = []

    def put(self, page: Page) -> None:
        self.pages[page.id] = page

    def remove(self, page_id: str) -> None:
        self.pages.pop(page_id, None)

    def list_pages(self, space_key: str) -> list[Page]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.pages.values())

    def get_page_by_id(self, page_id: str) -> Page:
        self.fetch_calls.append(page_id)
        if page_id in self.fetch_errors:
            raise self.fetch_errors[page_id]
        if page_id not in self.pages:
            raise PageNotFoundError(f"No page {page_id}")
        return self.pages[page_id]

    def search_pages_by_text(self, query: str) -> list[Page]:
        return [page for page in self.pages.values() if query.lower() in page.raw_body.lower()]

    def verify_access(self) -> str:
        return "Customer Support"


class RecordingObserver(EngineObserver):
    """Observer that records every event as ``(name, args)``."""

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def discovery_started(self, total_pages: int) -> None:
        self.events.append(("discovery_started", (total_pages,)))

    def page_failed(self, page_id: str, title: str, error: Exception) -> None:
        self.events.append(("page_failed", (page_id, title, error)))

    def discovery_completed(self, found: int, total_pages: int) -> None:
        self.events.append(("discovery_completed", (found, total_pages)))

    def source_unavailable(self, operation: str, error: Exception) -> None:
        self.events.append(("source_unavailable", (operation, error)))

    def sync_completed(self, result: SyncResult) -> None:
        self.events.append(("sync_completed", (result,)))

    def version_regressed(self, doc_id: str, indexed_version: int, source_version: int) -> None:
        self.events.append(("version_regressed", (doc_id, indexed_version, source_version)))

    def document_stale(
        self, doc_id: str, title: str, cached_version: int, live_version: int
    ) -> None:
        self.events.append(("document_stale", (doc_id, title, cached_version, live_version)))

    def freshness_check_failed(self, doc_id: str, error: Exception | None) -> None:
        self.events.append(("freshness_check_failed", (doc_id, error)))

    def strategy_failed(self, strategy: str, error: Exception) -> None:
        self.events.append(("strategy_failed", (strategy, error)))

    def search_completed(self, query: str, result_count: int, elapsed_ms: float) -> None:
        self.events.append(("search_completed", (query, result_count)))


@pytest.fixture
def now() -> datetime:
    """The instant every test clock reports."""
    return FIXED_NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Deterministic clock for age-based scoring."""
    return lambda: FIXED_NOW


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def make_page() -> Callable[..., Page]:
    """Factory for source pages with sensible SOP defaults."""

    def _make(
        page_id: str = "100",
        title: str = "Return Policy SOP",
        body: str = (
            "<h2>Overview</h2><p>This procedure explains how to handle refund requests.</p>"
            "<h2>Steps</h2><ol><li>Verify the order number.</li>"
            "<li>Issue the refund to the original payment method.</li></ol>"
        ),
        version: int = 1,
        days_ago: float = 10,
        labels: tuple[str, ...] = (),
    ) -> Page:
        return Page(
            id=page_id,
            title=title,
            raw_body=body,
            version=version,
            last_modified_at=FIXED_NOW - timedelta(days=days_ago),
            labels=labels,
            url=f"https://wiki.example.com/pages/{page_id}",
        )

    return _make


@pytest.fixture
def make_document() -> Callable[..., ProcedureDocument]:
    """Factory for indexed documents built without the extraction pipeline."""

    def _make(
        doc_id: str = "1",
        title: str = "Return Policy SOP",
        content: str = "Customers may request a refund within 30 days of delivery.",
        category: Category = Category.RETURNS,
        days_ago: float = 5,
        sections: int = 1,
        version: int = 1,
        keywords: tuple[str, ...] = (),
    ) -> ProcedureDocument:
        return ProcedureDocument(
            id=doc_id,
            title=title,
            raw_content=f"<p>{content}</p>",
            clean_content=content,
            url=f"https://wiki.example.com/pages/{doc_id}",
            last_modified=FIXED_NOW - timedelta(days=days_ago),
            version=version,
            sections=tuple(
                Section(
                    title=f"Section {i + 1}",
                    content=content,
                    keywords=keywords,
                    order_index=i,
                )
                for i in range(sections)
            ),
            category=category,
            keywords=keywords,
        )

    return _make
