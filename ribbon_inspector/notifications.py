"""
User-facing notifications raised during a comparison run.

A run degrades instead of failing when a source cannot be read; each
degradation is logged and recorded here so callers can show it next to the
result.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

from .dataverse.exceptions import DataverseTransportError, is_permission_error

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NotificationLevel.INFO: logging.DEBUG,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    source: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level.value, "message": self.message, "source": self.source}


class NotificationCollector:
    """Thread-safe accumulator owned by one comparison run."""

    def __init__(self):
        self._items: list[Notification] = []
        self._lock = threading.Lock()

    def add(self, level: NotificationLevel, message: str, source: Optional[str] = None) -> Notification:
        notification = Notification(level, message, source)
        logger.log(_LOG_LEVELS[level], "[%s] %s", source or "ribbon_inspector", message)
        with self._lock:
            self._items.append(notification)
        return notification

    def info(self, message: str, source: Optional[str] = None) -> Notification:
        return self.add(NotificationLevel.INFO, message, source)

    def warning(self, message: str, source: Optional[str] = None) -> Notification:
        return self.add(NotificationLevel.WARNING, message, source)

    def error(self, message: str, source: Optional[str] = None) -> Notification:
        return self.add(NotificationLevel.ERROR, message, source)

    def record_failure(
        self, source: str, description: str, error: BaseException, impersonating: bool = False
    ) -> Notification:
        """
        Record a failed read.

        Permission errors while impersonating are expected (the impersonated
        principal may lack metadata access) and recorded as ``info``.
        Transport failures are errors; everything else is a warning.
        """
        message = f"Failed to {description}: {error}"
        if is_permission_error(error):
            if impersonating:
                return self.info(message, source)
            return self.warning(message, source)
        if isinstance(error, DataverseTransportError):
            return self.error(message, source)
        return self.warning(message, source)

    def __iter__(self) -> Iterator[Notification]:
        with self._lock:
            return iter(list(self._items))

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def to_list(self) -> list[dict[str, Any]]:
        return [notification.to_dict() for notification in self]
