"""FastAPI dependencies delegating to the composition root."""

import logging
from functools import lru_cache

from ....composition.container import (
    get_context_builder as _get_context_builder,
    get_discovery_service as _get_discovery_service,
    get_index_reporter as _get_index_reporter,
    get_search_service as _get_search_service,
)
from ....core.services.context_builder import ContextBuilder
from ....core.services.discovery_service import DiscoveryService
from ....core.services.index_reporter import IndexReporter
from ....core.services.search_service import SearchService

logger = logging.getLogger(__name__)


@lru_cache
def get_search_service() -> SearchService:
    logger.info("Delegating to composition root for search service...")
    return _get_search_service()


@lru_cache
def get_context_builder() -> ContextBuilder:
    logger.info("Delegating to composition root for context builder...")
    return _get_context_builder()


@lru_cache
def get_discovery_service() -> DiscoveryService:
    logger.info("Delegating to composition root for discovery service...")
    return _get_discovery_service()


@lru_cache
def get_index_reporter() -> IndexReporter:
    logger.info("Delegating to composition root for index reporter...")
    return _get_index_reporter()
