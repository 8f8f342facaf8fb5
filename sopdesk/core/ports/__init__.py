"""Port interfaces between the engine core and its collaborators."""

from .observer_port import EngineObserver
from .snapshot_store_port import SnapshotStorePort
from .source_port import DocumentSourcePort

__all__ = ["DocumentSourcePort", "EngineObserver", "SnapshotStorePort"]
