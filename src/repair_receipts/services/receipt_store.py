"""
Receipt Store Adapter
Keeps an ordered, live view of all receipts and writes new ones

A single remote subscription feeds any number of consumers. Each remote
change is turned into one immutable, newest-first tuple that every
consumer receives whole.
"""

import itertools
import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from repair_receipts.client.remote_collection import (
    SERVER_TIMESTAMP,
    RemoteCollection,
    RemoteDocument,
    Unsubscribe,
)
from repair_receipts.config.receipt_config import StoreConfig
from repair_receipts.exceptions import StoreSubscriptionError, StoreWriteError
from repair_receipts.models.receipt import Receipt
from repair_receipts.utils.formatting import (
    next_receipt_number,
    receipt_sequence,
    receipt_year,
)

logger = logging.getLogger(__name__)

Snapshot = Tuple[Receipt, ...]
SnapshotConsumer = Callable[[Snapshot], None]
ErrorConsumer = Callable[[StoreSubscriptionError], None]


@dataclass
class _Consumer:
    on_change: SnapshotConsumer
    on_error: Optional[ErrorConsumer]
    # version of the last snapshot handed to on_change
    delivered: int = -1

# Epoch values above this are taken as milliseconds
_MILLISECONDS_THRESHOLD = 1e11


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_timestamp(value: Any, now: datetime) -> datetime:
    """
    Turn a stored timestamp into an aware UTC datetime

    Accepts datetimes, epoch seconds or milliseconds, ISO-8601 strings,
    {"seconds", "nanoseconds"} mappings and objects with to_datetime().
    Missing, pending or unreadable values become now.
    """
    if value is None or value is SERVER_TIMESTAMP:
        return now

    if hasattr(value, "to_datetime") and not isinstance(value, datetime):
        value = value.to_datetime()

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            return normalize_timestamp(seconds + nanos / 1e9, now)
        return now

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return now
        seconds = value / 1000.0 if abs(value) > _MILLISECONDS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return now

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return normalize_timestamp(datetime.fromisoformat(text), now)
        except ValueError:
            return now

    return now


class ReceiptStore:
    """
    Store adapter over a remote ordered collection

    Example:
        >>> store = ReceiptStore(InMemoryCollection(), StoreConfig(app_id="shop"))
        >>> unsubscribe = store.subscribe(lambda receipts: print(len(receipts)))
        0
        >>> unsubscribe()
    """

    def __init__(
        self,
        collection: RemoteCollection,
        config: StoreConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._collection = collection
        self.config = config
        self._clock = clock or _utc_now
        self._lock = threading.RLock()
        self._snapshot: Snapshot = ()
        # remote version of _snapshot; -1 until the first delivery
        self._version = -1
        self._last_error: Optional[StoreSubscriptionError] = None
        self._consumers: Dict[int, _Consumer] = {}
        self._consumer_ids = itertools.count(1)
        self._remote_unsubscribe: Optional[Unsubscribe] = None
        self._opening = False
        self._delivering = False

    @property
    def snapshot(self) -> Snapshot:
        """Last known ordered list, empty before the first delivery"""
        with self._lock:
            return self._snapshot

    @property
    def count(self) -> int:
        return len(self.snapshot)

    @property
    def version(self) -> int:
        """Remote version of the current snapshot, -1 before the first delivery"""
        with self._lock:
            return self._version

    @property
    def last_error(self) -> Optional[StoreSubscriptionError]:
        with self._lock:
            return self._last_error

    @property
    def subscribed(self) -> bool:
        with self._lock:
            return self._remote_unsubscribe is not None

    def count_for_year(self, year: int) -> int:
        """Receipts in the current snapshot numbered within a year"""
        return sum(1 for r in self.snapshot if receipt_year(r.receipt_number) == year)

    def highest_sequence_for_year(self, year: int) -> int:
        """Largest sequence among receipts numbered within a year, 0 if none"""
        sequences = [
            receipt_sequence(r.receipt_number)
            for r in self.snapshot
            if receipt_year(r.receipt_number) == year
        ]
        return max((s for s in sequences if s is not None), default=0)

    def subscribe(
        self,
        on_change: SnapshotConsumer,
        on_error: Optional[ErrorConsumer] = None,
    ) -> Callable[[], None]:
        """
        Register a consumer of live snapshots

        The remote subscription opens with the first consumer and is
        released with the last. Consumers joining later immediately get
        the last known snapshot. Consumers are called without the store
        lock held.

        Returns:
            Callable that stops delivery to this consumer
        """
        with self._lock:
            consumer_id = next(self._consumer_ids)
            self._consumers[consumer_id] = _Consumer(on_change, on_error)
            should_open = self._remote_unsubscribe is None and not self._opening
            if should_open:
                self._opening = True

        if should_open:
            self._open_subscription()
        self._publish()

        def unsubscribe() -> None:
            with self._lock:
                if self._consumers.pop(consumer_id, None) is None:
                    return
                if self._consumers:
                    return
                release, self._remote_unsubscribe = self._remote_unsubscribe, None
            if release is not None:
                release()
                logger.info("Released receipt subscription")

        return unsubscribe

    def _open_subscription(self) -> None:
        path = self.config.collection_path
        try:
            release = self._collection.subscribe(
                path, self._handle_snapshot, self._handle_error
            )
        except Exception as e:
            with self._lock:
                self._opening = False
            self._handle_error(e)
            return

        with self._lock:
            self._opening = False
            orphaned = not self._consumers
            if not orphaned:
                self._remote_unsubscribe = release
        if orphaned:
            # every consumer left while the subscription was opening
            release()
            logger.info("Released receipt subscription")
            return
        logger.info(f"Subscribed to {path}")

    def _parse(self, document: RemoteDocument, now: datetime) -> Optional[Receipt]:
        created_at = normalize_timestamp(document.data.get("createdAt"), now)
        try:
            return Receipt.from_record(document.key, document.data, created_at)
        except PydanticValidationError as e:
            logger.warning(f"Skipping unreadable receipt document {document.key}: {e}")
            return None

    def _handle_snapshot(self, documents: Any, version: int) -> None:
        now = self._clock()
        receipts = [r for r in (self._parse(doc, now) for doc in documents) if r is not None]
        # stable: equal timestamps keep store insertion order
        receipts.sort(key=lambda r: r.created_at, reverse=True)
        snapshot: Snapshot = tuple(receipts)

        with self._lock:
            if version <= self._version:
                logger.debug(
                    f"Ignoring receipt snapshot version {version}, already at {self._version}"
                )
                return
            self._snapshot = snapshot
            self._version = version
            self._last_error = None

        self._publish()

    def _publish(self) -> None:
        """
        Hand the newest snapshot to every consumer that has not seen it

        Only one thread delivers at a time, so each consumer receives
        snapshots in version order and ends on the newest. A thread that
        finds a delivery in progress leaves its snapshot to that thread.
        """
        with self._lock:
            if self._delivering:
                return
            self._delivering = True

        try:
            while True:
                with self._lock:
                    snapshot, version = self._snapshot, self._version
                    pending: List[_Consumer] = [
                        c for c in self._consumers.values() if c.delivered < version
                    ]
                    if not pending:
                        self._delivering = False
                        return
                    for consumer in pending:
                        consumer.delivered = version

                for consumer in pending:
                    try:
                        consumer.on_change(snapshot)
                    except Exception:
                        logger.exception("Receipt snapshot consumer failed")
        except BaseException:
            with self._lock:
                self._delivering = False
            raise

    def _handle_error(self, error: Exception) -> None:
        wrapped = StoreSubscriptionError(
            f"Live receipt updates failed: {error}", cause=error
        )
        logger.warning(f"{wrapped}; keeping last known list of {self.count} receipts")

        with self._lock:
            self._last_error = wrapped
            handlers = [c.on_error for c in self._consumers.values() if c.on_error]

        for on_error in handlers:
            on_error(wrapped)

    def append(self, receipt: Receipt) -> str:
        """
        Write a new receipt; the server assigns key and timestamp

        Returns:
            Store key of the written document

        Raises:
            StoreWriteError: If the write is not acknowledged
        """
        record = receipt.to_record()
        record["createdAt"] = SERVER_TIMESTAMP
        try:
            key = self._collection.append_document(self.config.collection_path, record)
        except Exception as e:
            raise StoreWriteError(
                f"Could not save receipt {receipt.receipt_number}: {e}", cause=e
            ) from e
        logger.info(f"Saved receipt {receipt.receipt_number} as {key}")
        return key

    def allocate_receipt_number(self, year: int, prefix: str, floor: int = 0) -> str:
        """
        Allocate the next number from the atomic per-year counter

        Args:
            year: Numbering year
            prefix: Receipt number prefix
            floor: Lowest sequence already in use, seeds a fresh counter

        Raises:
            StoreWriteError: If the counter transaction fails
        """
        try:
            value = self._collection.increment_counter(
                self.config.counter_path, f"receipts-{year}", floor
            )
        except Exception as e:
            raise StoreWriteError(
                f"Could not allocate a receipt number: {e}", code="STORE02", cause=e
            ) from e
        return next_receipt_number(value - 1, year, prefix)

    def close(self) -> None:
        """Drop every consumer and release the remote subscription"""
        with self._lock:
            self._consumers.clear()
            release, self._remote_unsubscribe = self._remote_unsubscribe, None
        if release is not None:
            release()
