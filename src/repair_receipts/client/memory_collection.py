"""
In-process remote collection

Thread-safe stand-in for the document database with the same ordering,
server timestamp and counter semantics. Used by tests and examples.
"""

import copy
import itertools
import logging
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from repair_receipts.client.remote_collection import (
    SERVER_TIMESTAMP,
    ErrorCallback,
    RemoteDocument,
    SnapshotCallback,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCollection:
    """
    Document collections held in memory

    Listeners are called synchronously on the writing thread, after the
    write is applied and outside the internal lock. Each delivery carries
    the collection version taken together with the document list.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utc_now
        self._lock = threading.RLock()
        self._documents: Dict[str, List[RemoteDocument]] = defaultdict(list)
        self._versions: Dict[str, int] = defaultdict(int)
        self._counters: Dict[Tuple[str, str], int] = {}
        self._listeners: Dict[str, Dict[int, Tuple[SnapshotCallback, Optional[ErrorCallback]]]] = (
            defaultdict(dict)
        )
        self._listener_ids = itertools.count(1)

    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        with self._lock:
            listener_id = next(self._listener_ids)
            self._listeners[path][listener_id] = (on_snapshot, on_error)
            documents = list(self._documents[path])
            version = self._versions[path]

        on_snapshot(documents, version)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners[path].pop(listener_id, None)

        return unsubscribe

    def append_document(self, path: str, record: Mapping[str, Any]) -> str:
        now = self._clock()
        data = {
            key: (now if value is SERVER_TIMESTAMP else copy.deepcopy(value))
            for key, value in record.items()
        }
        key = uuid.uuid4().hex[:20]

        with self._lock:
            self._documents[path].append(RemoteDocument(key=key, data=MappingProxyType(data)))
            self._versions[path] += 1
            documents = list(self._documents[path])
            version = self._versions[path]
            listeners = list(self._listeners[path].values())

        logger.debug(f"Appended {key} to {path} (version {version})")
        for on_snapshot, _ in listeners:
            on_snapshot(documents, version)
        return key

    def increment_counter(self, path: str, name: str, floor: int = 0) -> int:
        with self._lock:
            current = self._counters.get((path, name), 0)
            value = max(current, floor) + 1
            self._counters[(path, name)] = value
        return value

    def documents(self, path: str) -> List[RemoteDocument]:
        """Current documents of a collection, in insertion order"""
        with self._lock:
            return list(self._documents[path])

    def version(self, path: str) -> int:
        with self._lock:
            return self._versions[path]

    def listener_count(self, path: str) -> int:
        with self._lock:
            return len(self._listeners[path])
