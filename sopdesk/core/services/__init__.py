"""Engine services: extraction, indexing, discovery, search and context."""

from .context_builder import ContextBuilder
from .discovery_service import DiscoveryService
from .document_extractor import DocumentExtractor
from .document_index import DocumentIndex, IndexSnapshot
from .index_reporter import IndexReporter
from .search_service import SearchService

__all__ = [
    "ContextBuilder",
    "DiscoveryService",
    "DocumentExtractor",
    "DocumentIndex",
    "IndexSnapshot",
    "IndexReporter",
    "SearchService",
]
