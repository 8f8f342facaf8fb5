"""Extraction exceptions."""

from .base import SopDeskError


class ExtractionError(SopDeskError):
    """A single page could not be parsed into a procedure document."""

    error_code = "SOP_EXT_001"
