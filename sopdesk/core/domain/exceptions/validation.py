"""Input validation exceptions."""

from .base import SopDeskError


class ValidationError(SopDeskError):
    """Invalid input from a caller."""

    error_code = "SOP_VAL_001"


class EmptyQueryError(ValidationError):
    """Query text is empty or whitespace only."""

    error_code = "SOP_VAL_002"
