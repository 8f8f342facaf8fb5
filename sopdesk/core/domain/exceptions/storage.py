"""Snapshot storage exceptions."""

from .base import SopDeskError


class StorageError(SopDeskError):
    """The snapshot store could not be read or written."""

    error_code = "SOP_STO_001"
