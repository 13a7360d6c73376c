"""In-memory buffer of recent log records for the activity console."""

import logging
import threading
from collections import deque
from datetime import datetime, timezone

from .constants import MAX_LOG_RECORDS


class RecentLogHandler(logging.Handler):
    """Logging handler that keeps the newest records, newest first."""

    def __init__(self, capacity: int = MAX_LOG_RECORDS, level: int = logging.INFO):
        super().__init__(level)
        self._records: deque[dict] = deque(maxlen=capacity)
        self._records_lock = threading.Lock()

    def emit(self, record: logging.LogRecord):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        with self._records_lock:
            self._records.appendleft(entry)

    def records(self) -> list[dict]:
        with self._records_lock:
            return list(self._records)

    def clear(self):
        with self._records_lock:
            self._records.clear()
