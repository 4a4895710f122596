"""
Remote collection interface

The document database itself is an external collaborator; the store
adapter only needs ordered live snapshots, single appends and an atomic
counter increment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Protocol


class _ServerTimestamp:
    """Placeholder the backend replaces with its own clock on write"""

    _instance: Optional["_ServerTimestamp"] = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class RemoteDocument:
    """One document of a snapshot, in store insertion order"""
    key: str
    data: Mapping[str, Any] = field(default_factory=dict)


# Called with the full document list and its version. Versions grow with
# every change of the collection; deliveries from different writer threads
# may arrive out of order.
SnapshotCallback = Callable[[List[RemoteDocument], int], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class RemoteCollection(Protocol):
    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        """Deliver the full versioned document list now and after every change"""
        ...

    def append_document(self, path: str, record: Mapping[str, Any]) -> str:
        """Write one document; returns its key once acknowledged"""
        ...

    def increment_counter(self, path: str, name: str, floor: int = 0) -> int:
        """Atomically set counter to max(current, floor) + 1 and return it"""
        ...
