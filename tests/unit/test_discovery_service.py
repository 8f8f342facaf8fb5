"""Unit tests for discovery, incremental sync and webhook events."""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from sopdesk.core.domain import Category, PageEvent
from sopdesk.core.domain.exceptions import (
    ExtractionError,
    PageNotFoundError,
    SourceUnavailableError,
    StorageError,
)
from sopdesk.core.ports import SnapshotStorePort
from sopdesk.core.services.discovery_service import DiscoveryService
from sopdesk.core.services.document_index import DocumentIndex

pytestmark = pytest.mark.unit

BILLING_BODY = (
    "<h2>Overview</h2><p>How to handle a disputed invoice payment.</p>"
    "<h2>Steps</h2><ol><li>Check the invoice.</li><li>Refund any duplicate charge.</li></ol>"
)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(fake_source, observer, clock, sleeps):
    return DiscoveryService(
        fake_source,
        DocumentIndex(),
        "CS",
        observer=observer,
        clock=clock,
        batch_size=2,
        batch_delay_seconds=0.5,
        sleep=sleeps.append,
    )


@pytest.fixture
def seeded(service, fake_source, make_page):
    """Three indexed procedures, all modified ten days ago."""
    fake_source.put(make_page("1", title="Return Policy SOP"))
    fake_source.put(make_page("2", title="Billing Disputes SOP", body=BILLING_BODY, version=3))
    fake_source.put(make_page("3", title="Exchange Procedure"))
    service.rebuild_index()
    return service


def fail_extraction_for(service, monkeypatch, page_id):
    original = service.extractor.extract

    def flaky(page):
        if page.id == page_id:
            raise ExtractionError(f"Failed to extract page {page.id}")
        return original(page)

    monkeypatch.setattr(service.extractor, "extract", flaky)


class TestDiscoverAll:
    """Tests for DiscoveryService.discover_all and rebuild_index."""

    def test_batches_are_separated_by_delay(self, service, fake_source, make_page, sleeps):
        for i in range(7):
            fake_source.put(make_page(str(i), title=f"Refund SOP {i}"))

        documents = service.discover_all()

        assert len(documents) == 7
        assert sleeps == [0.5, 0.5, 0.5]

    def test_non_procedures_are_skipped(self, service, fake_source, make_page, observer):
        fake_source.put(make_page("1"))
        fake_source.put(make_page("2", title="Team Lunch Menu"))

        documents = service.discover_all()

        assert [doc.id for doc in documents] == ["1"]
        assert "page_failed" not in observer.names()
        assert observer.events[0] == ("discovery_started", (2,))
        assert observer.events[-1] == ("discovery_completed", (1, 2))

    def test_sorted_by_category_then_title(self, service, fake_source, make_page):
        fake_source.put(make_page("1", title="Zebra Refund SOP"))
        fake_source.put(make_page("2", title="Billing Disputes SOP", body=BILLING_BODY))
        fake_source.put(make_page("3", title="Apple Refund SOP"))

        documents = service.discover_all()

        assert [doc.category for doc in documents] == [
            Category.BILLING,
            Category.RETURNS,
            Category.RETURNS,
        ]
        assert [doc.id for doc in documents] == ["2", "3", "1"]

    def test_failed_page_is_reported_and_skipped(
        self, service, fake_source, make_page, observer, monkeypatch
    ):
        fake_source.put(make_page("1"))
        fake_source.put(make_page("2"))
        fail_extraction_for(service, monkeypatch, "2")

        documents = service.discover_all()

        assert [doc.id for doc in documents] == ["1"]
        failures = [args for name, args in observer.events if name == "page_failed"]
        assert [(page_id, title) for page_id, title, _ in failures] == [
            ("2", "Return Policy SOP")
        ]

    def test_rebuild_is_idempotent(self, service, fake_source, make_page, now):
        fake_source.put(make_page("1"))
        fake_source.put(make_page("2", title="Billing Disputes SOP", body=BILLING_BODY))

        first = service.rebuild_index()
        second = service.rebuild_index()

        assert first == second
        assert service.index.snapshot.generation == 2
        assert service.index.snapshot.last_sync == now

    def test_source_down_leaves_index_untouched(self, seeded, fake_source, observer):
        before = seeded.index.snapshot
        fake_source.list_error = SourceUnavailableError("Confluence is down")

        with pytest.raises(SourceUnavailableError):
            seeded.rebuild_index()

        assert seeded.index.snapshot is before
        assert observer.names()[-1] == "source_unavailable"

    def test_unexpected_listing_error_is_wrapped(self, service, fake_source, observer):
        fake_source.list_error = ConnectionError("reset by peer")

        with pytest.raises(SourceUnavailableError) as exc_info:
            service.discover_all()

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert observer.events[-1][1][0] == "discover_all"

    def test_batch_size_must_be_positive(self, fake_source):
        with pytest.raises(ValueError):
            DiscoveryService(fake_source, DocumentIndex(), "CS", batch_size=0)


class TestIncrementalSync:
    """Tests for DiscoveryService.incremental_sync."""

    def test_only_changed_pages_are_reextracted(self, seeded, fake_source, make_page, now):
        before = seeded.index.snapshot
        fake_source.put(make_page("1", title="Return Policy SOP", version=2, days_ago=1))

        result = seeded.incremental_sync(now - timedelta(days=5))

        assert (result.total, result.added, result.updated, result.removed) == (3, 0, 1, 0)
        after = seeded.index.snapshot
        assert after.get("1").version == 2
        assert after.get("2") is before.get("2")
        assert after.get("3") is before.get("3")

    def test_new_page_is_added(self, seeded, fake_source, make_page, now):
        fake_source.put(make_page("4", title="Warranty Claims SOP", days_ago=1))

        result = seeded.incremental_sync(now - timedelta(days=5))

        assert result.added == 1
        assert "4" in seeded.index.snapshot.documents

    def test_vanished_page_is_removed(self, seeded, fake_source, now):
        fake_source.remove("3")

        result = seeded.incremental_sync(now - timedelta(days=5))

        assert result.removed == 1
        assert "3" not in seeded.index.snapshot.documents

    def test_page_no_longer_a_procedure_is_removed(self, seeded, fake_source, make_page, now):
        fake_source.put(make_page("2", title="Holiday Calendar", version=4, days_ago=1))

        result = seeded.incremental_sync(now - timedelta(days=5))

        assert result.removed == 1
        assert result.updated == 0
        assert "2" not in seeded.index.snapshot.documents

    def test_version_regression_is_skipped(self, seeded, fake_source, make_page, observer, now):
        fake_source.put(make_page("2", title="Billing Disputes SOP", version=2, days_ago=1))

        result = seeded.incremental_sync(now - timedelta(days=5))

        assert result.updated == 0
        assert seeded.index.snapshot.get("2").version == 3
        assert ("version_regressed", ("2", 3, 2)) in observer.events

    def test_extraction_error_is_recorded(
        self, seeded, fake_source, make_page, monkeypatch, now
    ):
        fake_source.put(make_page("1", version=2, days_ago=1))
        fail_extraction_for(seeded, monkeypatch, "1")

        result = seeded.incremental_sync(now - timedelta(days=5))

        assert [error.page_id for error in result.errors] == ["1"]
        assert seeded.index.snapshot.get("1").version == 1

    def test_defaults_to_index_last_sync(self, seeded, fake_source, make_page, observer):
        # Pages were modified before the rebuild, so nothing is newer
        result = seeded.incremental_sync()

        assert (result.added, result.updated, result.removed) == (0, 0, 0)
        assert observer.events[-1] == ("sync_completed", (result,))

    def test_source_down_raises(self, seeded, fake_source):
        fake_source.list_error = SourceUnavailableError("Confluence is down")
        with pytest.raises(SourceUnavailableError):
            seeded.incremental_sync()


class TestApplyPageEvent:
    """Tests for DiscoveryService.apply_page_event."""

    def test_created_page_is_indexed(self, seeded, fake_source, make_page):
        fake_source.put(make_page("9", title="Gift Card Refund SOP"))

        result = seeded.apply_page_event(PageEvent.PAGE_CREATED, "9", space_key="CS")

        assert result.added == 1
        assert "9" in seeded.index.snapshot.documents

    def test_other_space_is_ignored(self, seeded, fake_source):
        generation = seeded.index.snapshot.generation

        result = seeded.apply_page_event(PageEvent.PAGE_UPDATED, "1", space_key="HR")

        assert result.total == 0
        assert fake_source.fetch_calls == []
        assert seeded.index.snapshot.generation == generation

    def test_removed_page_leaves_index(self, seeded):
        result = seeded.apply_page_event(PageEvent.PAGE_REMOVED, "3")
        assert result.removed == 1
        assert "3" not in seeded.index.snapshot.documents

    def test_removing_unknown_page_publishes_nothing(self, seeded):
        generation = seeded.index.snapshot.generation
        result = seeded.apply_page_event(PageEvent.PAGE_REMOVED, "404")
        assert result.removed == 0
        assert seeded.index.snapshot.generation == generation

    def test_fetch_failure_is_recorded_not_raised(self, seeded, fake_source, observer):
        fake_source.fetch_errors["1"] = PageNotFoundError("gone")

        result = seeded.apply_page_event(PageEvent.PAGE_UPDATED, "1")

        assert [error.page_id for error in result.errors] == ["1"]
        assert observer.names()[-1] == "page_failed"
        assert "1" in seeded.index.snapshot.documents


class TestPersistence:
    """Snapshots are written to the store after every publish."""

    def test_rebuild_saves_snapshot(self, fake_source, make_page, clock, now):
        store = MagicMock(spec=SnapshotStorePort)
        service = DiscoveryService(
            fake_source, DocumentIndex(), "CS", snapshot_store=store, clock=clock
        )
        fake_source.put(make_page("1"))

        service.rebuild_index()

        documents, last_sync = store.save.call_args.args
        assert [doc.id for doc in documents] == ["1"]
        assert last_sync == now

    def test_storage_failure_does_not_fail_sync(self, fake_source, make_page, clock):
        store = MagicMock(spec=SnapshotStorePort)
        store.save.side_effect = StorageError("disk full")
        service = DiscoveryService(
            fake_source, DocumentIndex(), "CS", snapshot_store=store, clock=clock
        )
        fake_source.put(make_page("1"))

        assert [doc.id for doc in service.rebuild_index()] == ["1"]
        assert "1" in service.index.snapshot.documents


class TestReporting:
    """Tests for quality validation, index report and export."""

    def test_index_report(self, seeded, now):
        report = seeded.generate_index_report()

        assert report.total_sops == 3
        assert report.freshness == {"fresh": 3, "stale": 0, "outdated": 0}
        assert report.last_sync == now
        assert report.categories == {"billing": 1, "returns": 2}
        assert report.keywords
        assert 0 <= report.avg_quality_score <= 100

    def test_empty_index_report(self, service):
        report = service.generate_index_report()
        assert report.total_sops == 0
        assert report.avg_quality_score == 0.0

    def test_export_json(self, seeded, now):
        payload = json.loads(seeded.export_json())

        assert payload["exportDate"] == now.isoformat()
        assert payload["totalSOPs"] == 3
        first = payload["sops"][0]
        assert first["id"] == "2"
        assert first["category"] == "billing"
        assert set(first) == {
            "id",
            "title",
            "category",
            "lastModified",
            "url",
            "keywords",
            "sectionCount",
            "contentLength",
        }
        assert first["sectionCount"] == 2

    def test_validate_quality_delegates(self, seeded):
        doc = seeded.index.snapshot.get("1")
        assert seeded.validate_quality(doc) == seeded.quality_validator.validate(doc)
