"""Domain models for the SOP engine.

This package contains all data models used across the application.
Models are organized by domain area:

- document: Page, Section, ProcedureDocument and Category
- search: CustomerQuery, Priority, RelevantResult and SearchReport
- sync: SyncResult, QualityReport, IndexReport and PageEvent
- context: EnhancedContext and its parts

All models are re-exported here for convenient importing:

    from sopdesk.core.domain import ProcedureDocument, RelevantResult
"""

from .context import (
    ConfidenceMetrics,
    ContextValidation,
    EnhancedContext,
    Freshness,
    ProcedureContext,
    SourceReference,
)
from .document import Category, Page, ProcedureDocument, Section
from .search import CustomerQuery, Priority, RelevantResult, SearchReport
from .sync import IndexReport, PageEvent, QualityReport, SyncError, SyncResult

__all__ = [
    # Document models
    "Category",
    "Page",
    "Section",
    "ProcedureDocument",
    # Search models
    "CustomerQuery",
    "Priority",
    "RelevantResult",
    "SearchReport",
    # Sync models
    "PageEvent",
    "SyncError",
    "SyncResult",
    "QualityReport",
    "IndexReport",
    # Context models
    "Freshness",
    "ProcedureContext",
    "SourceReference",
    "ConfidenceMetrics",
    "EnhancedContext",
    "ContextValidation",
]
