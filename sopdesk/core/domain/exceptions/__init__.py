"""Custom exception hierarchy for the SOP engine.

This package provides structured exceptions with automatic context capture.
Each exception includes:
- Error codes for quick identification
- Automatic capture of class, method, file, and line number
- Cause chaining for underlying exceptions
- JSON serialization for structured logging

Import from this package directly:

    from sopdesk.core.domain.exceptions import SopDeskError, SourceUnavailableError
"""

# Base classes
from .base import RaiseSite, SopDeskError

# Configuration exceptions
from .configuration import ConfigurationError, MissingCredentialsError

# Extraction exceptions
from .extraction import ExtractionError

# Search exceptions
from .search import SearchDegradationError

# Source exceptions
from .source import PageNotFoundError, SourceError, SourceUnavailableError

# Storage exceptions
from .storage import StorageError

# Validation exceptions
from .validation import EmptyQueryError, ValidationError

__all__ = [
    # Base
    "RaiseSite",
    "SopDeskError",
    # Configuration
    "ConfigurationError",
    "MissingCredentialsError",
    # Source
    "SourceError",
    "SourceUnavailableError",
    "PageNotFoundError",
    # Extraction
    "ExtractionError",
    # Search
    "SearchDegradationError",
    # Storage
    "StorageError",
    # Validation
    "ValidationError",
    "EmptyQueryError",
]
