"""Composition root wiring adapters to the engine services."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..adapters.outbound.confluence_adapter import ConfluenceAdapter
from ..adapters.outbound.logging_observer import LoggingObserver
from ..adapters.outbound.sqlite_snapshot_store import SQLiteSnapshotStore
from ..common.rate_limiter import RateLimiter
from ..config import settings
from ..core.domain.exceptions import StorageError
from ..core.services.context_builder import ContextBuilder
from ..core.services.discovery_service import DiscoveryService
from ..core.services.document_extractor import DocumentExtractor
from ..core.services.document_index import DocumentIndex
from ..core.services.index_reporter import IndexReporter
from ..core.services.quality_validator import QualityValidator
from ..core.services.search_service import SearchService

logger = logging.getLogger(__name__)


@lru_cache
def get_observer() -> LoggingObserver:
    return LoggingObserver()


@lru_cache
def get_snapshot_store() -> SQLiteSnapshotStore:
    logger.info("Initializing SQLiteSnapshotStore (composition root)...")
    settings.ensure_directories()
    return SQLiteSnapshotStore(settings.snapshot_db_path)


@lru_cache
def get_index() -> DocumentIndex:
    """The process-wide index, warm-started from the last saved snapshot."""
    index = DocumentIndex()
    try:
        stored = get_snapshot_store().load()
    except StorageError as e:
        logger.warning(f"Starting with an empty index: {e}")
        return index

    if stored is not None:
        documents, last_sync = stored
        index.replace(documents, synced_at=last_sync)
        logger.info(f"Loaded {len(documents)} SOPs from {settings.snapshot_db_path}")
    return index


@lru_cache
def get_source() -> ConfluenceAdapter:
    logger.info("Initializing ConfluenceAdapter...")
    return ConfluenceAdapter(
        base_url=settings.confluence_base_url,
        username=settings.confluence_username,
        api_token=settings.confluence_api_token,
        space_key=settings.confluence_space_key,
        page_limit=settings.confluence_page_limit,
        timeout=settings.request_timeout_seconds,
        rate_limiter=RateLimiter(settings.source_requests_per_minute),
    )


@lru_cache
def get_extractor() -> DocumentExtractor:
    return DocumentExtractor()


@lru_cache
def get_quality_validator() -> QualityValidator:
    return QualityValidator()


@lru_cache
def get_index_reporter() -> IndexReporter:
    return IndexReporter(get_index(), get_quality_validator())


@lru_cache
def get_discovery_service() -> DiscoveryService:
    logger.info("Initializing DiscoveryService...")
    return DiscoveryService(
        source=get_source(),
        index=get_index(),
        space_key=settings.confluence_space_key,
        extractor=get_extractor(),
        quality_validator=get_quality_validator(),
        observer=get_observer(),
        snapshot_store=get_snapshot_store(),
        batch_size=settings.discovery_batch_size,
        batch_delay_seconds=settings.discovery_batch_delay_seconds,
    )


@lru_cache
def get_search_service() -> SearchService:
    logger.info("Initializing SearchService...")
    return SearchService(
        index=get_index(),
        observer=get_observer(),
        quality_validator=get_quality_validator(),
        fuzzy_threshold=settings.fuzzy_threshold,
        keyword_min_score=settings.keyword_min_score,
        top_k=settings.search_top_k,
    )


@lru_cache
def get_context_builder() -> ContextBuilder:
    logger.info("Initializing ContextBuilder...")
    return ContextBuilder(
        search_service=get_search_service(),
        source=get_source(),
        extractor=get_extractor(),
        observer=get_observer(),
        freshness_timeout_seconds=settings.freshness_timeout_seconds,
    )
