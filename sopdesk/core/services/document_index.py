"""In-memory procedure index published as immutable snapshots."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from ..domain import ProcedureDocument

logger = logging.getLogger(__name__)


def _sort_key(doc: ProcedureDocument) -> tuple[str, str, str]:
    return (doc.category.value, doc.title, doc.id)


@dataclass(frozen=True)
class IndexSnapshot:
    """One published generation of the index.

    Readers hold a snapshot for the duration of a request; writers never
    mutate it, they publish a new one.

    Attributes:
        generation: Increases by one on every publish.
        last_sync: Start time of the sync that produced this snapshot.
        documents: Read-only mapping of document id to document.
    """

    generation: int = 0
    last_sync: datetime | None = None
    documents: Mapping[str, ProcedureDocument] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __len__(self) -> int:
        return len(self.documents)

    def get(self, doc_id: str) -> ProcedureDocument | None:
        return self.documents.get(doc_id)

    def ordered(self) -> list[ProcedureDocument]:
        """Documents sorted by category, title and id."""
        return sorted(self.documents.values(), key=_sort_key)


class DocumentIndex:
    """Single-writer, multi-reader holder of the current snapshot.

    Writes are serialized by a lock. Reads take :attr:`snapshot` without
    locking; swapping the reference is atomic, so a reader sees either the
    old generation or the new one, never a mix.
    """

    def __init__(self) -> None:
        self._snapshot = IndexSnapshot()
        self._write_lock = threading.Lock()

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    def replace(
        self, documents: Iterable[ProcedureDocument], synced_at: datetime | None
    ) -> IndexSnapshot:
        """Publish a snapshot containing exactly ``documents``."""
        with self._write_lock:
            snapshot = IndexSnapshot(
                generation=self._snapshot.generation + 1,
                last_sync=synced_at,
                documents=MappingProxyType({doc.id: doc for doc in documents}),
            )
            self._snapshot = snapshot
        logger.info(f"Published index generation {snapshot.generation} ({len(snapshot)} SOPs)")
        return snapshot

    def merge(
        self,
        upserts: Iterable[ProcedureDocument] = (),
        removals: Iterable[str] = (),
        synced_at: datetime | None = None,
    ) -> IndexSnapshot:
        """Publish the current snapshot with documents added, replaced or removed.

        An upsert whose version is lower than the indexed version is ignored
        so versions never go backwards. ``synced_at`` of None keeps the
        previous sync time.
        """
        with self._write_lock:
            current = self._snapshot
            documents = dict(current.documents)
            for doc in upserts:
                existing = documents.get(doc.id)
                if existing is not None and doc.version < existing.version:
                    logger.warning(
                        f"Ignoring {doc.id} v{doc.version}; index already has v{existing.version}"
                    )
                    continue
                documents[doc.id] = doc
            for doc_id in removals:
                documents.pop(doc_id, None)

            snapshot = IndexSnapshot(
                generation=current.generation + 1,
                last_sync=synced_at if synced_at is not None else current.last_sync,
                documents=MappingProxyType(documents),
            )
            self._snapshot = snapshot
        logger.info(f"Published index generation {snapshot.generation} ({len(snapshot)} SOPs)")
        return snapshot
