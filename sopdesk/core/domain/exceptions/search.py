"""Search exceptions."""

from .base import SopDeskError


class SearchDegradationError(SopDeskError):
    """A ranking strategy failed and contributed no results."""

    error_code = "SOP_SEA_001"
