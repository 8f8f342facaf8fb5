"""Document source exceptions."""

from .base import SopDeskError


class SourceError(SopDeskError):
    """Base error for the document source (Confluence)."""

    error_code = "SOP_SRC_001"


class SourceUnavailableError(SourceError):
    """Connection or authentication failure talking to the source.

    Fatal for the current sync cycle. The index is left untouched and the
    next scheduled sync tries again.
    """

    error_code = "SOP_SRC_002"


class PageNotFoundError(SourceError):
    """The source has no page with the requested id."""

    error_code = "SOP_SRC_003"
