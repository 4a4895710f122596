"""
User notifications

Non-blocking, auto-dismissing messages surfaced to staff. Every
notification is also written to the log at the matching level.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    """Severity of a notification"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    """A message shown to the user until it expires"""
    level: NotificationLevel
    message: str
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


NotificationListener = Callable[[Notification], None]


class NotificationCenter:
    """
    Collects notifications and fans them out to listeners

    Example:
        >>> center = NotificationCenter(ttl=4)
        >>> _ = center.warning("Document could not be rendered")
        >>> [n.message for n in center.active()]
        ['Document could not be rendered']
    """

    def __init__(
        self,
        ttl: float = 4.0,
        max_items: int = 50,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.ttl = ttl
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._items: Deque[Notification] = deque(maxlen=max_items)
        self._listeners: List[NotificationListener] = []

    def add_listener(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(
            level=level,
            message=message,
            created_at=self._clock(),
            ttl=self.ttl,
        )
        with self._lock:
            self._items.append(notification)

        logger.log(_LOG_LEVELS[level], message)
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, message)

    def success(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def warning(self, message: str) -> Notification:
        return self.notify(NotificationLevel.WARNING, message)

    def error(self, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, message)

    def active(self) -> List[Notification]:
        """Notifications that have not yet auto-dismissed"""
        now = self._clock()
        with self._lock:
            return [n for n in self._items if not n.expired(now)]

    def dismiss_expired(self) -> int:
        """Drop expired notifications, returning how many were removed"""
        now = self._clock()
        with self._lock:
            kept = [n for n in self._items if not n.expired(now)]
            removed = len(self._items) - len(kept)
            self._items.clear()
            self._items.extend(kept)
        return removed
