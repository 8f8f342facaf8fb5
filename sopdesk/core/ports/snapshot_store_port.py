"""Snapshot store port interface."""

from abc import ABC, abstractmethod
from datetime import datetime

from ..domain import ProcedureDocument


class SnapshotStorePort(ABC):
    """Durable copy of the last published index snapshot."""

    @abstractmethod
    def save(self, documents: list[ProcedureDocument], last_sync: datetime | None) -> None:
        """Replace the stored snapshot."""
        ...

    @abstractmethod
    def load(self) -> tuple[list[ProcedureDocument], datetime | None] | None:
        """Return the stored documents and sync time, or None if empty."""
        ...
