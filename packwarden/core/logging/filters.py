# packwarden/core/logging/filters.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from packwarden.core.redaction import redactText

__all__ = ["MAX_KEY_LEN", "normalizeMessage", "RecurringSuppressFilter"]

MAX_KEY_LEN = 512

# Set on summary records so the filter never mutes its own summaries
_SUMMARY_ATTR = "_packwardenSummary"



def normalizeMessage(record: logging.LogRecord) -> str:
    """Redacted message with whitespace collapsed, capped at MAX_KEY_LEN characters."""
    text = " ".join(redactText(record.getMessage()).split())
    return text if len(text) <= MAX_KEY_LEN else text[:MAX_KEY_LEN] + "…"



@dataclass
class _Bucket:
    seen: deque[float] = field(default_factory=deque)
    suppressed: int = 0



class RecurringSuppressFilter(logging.Filter):
    """
    Lets at most `maxPerWindow` identical messages through per sliding `windowSeconds`.

    An import against a flaky catalog repeats the same warning for every file. When a
    muted message is let through again, a one-line summary of how many were dropped
    is logged on the same logger.
    """
    def __init__(
            self,
            *,
            windowSeconds: float = 60,
            maxPerWindow: int = 5,
            summaryLevel: int = logging.INFO,
            normalize: Callable[[logging.LogRecord], str] = normalizeMessage,
            clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.windowSeconds = max(1.0, float(windowSeconds))
        self.maxPerWindow = max(1, int(maxPerWindow))
        self.summaryLevel = summaryLevel
        self.normalize = normalize
        self._clock = clock
        self._buckets: dict[tuple[str, int, str], _Bucket] = {}
        self._lock = threading.Lock()

    def _key(self, record: logging.LogRecord) -> tuple[str, int, str]:
        return record.name, record.levelno, self.normalize(record)

    def suppressedCount(self, record: logging.LogRecord) -> int:
        bucket = self._buckets.get(self._key(record))
        return bucket.suppressed if bucket is not None else 0

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, _SUMMARY_ATTR, False):
            return True

        key = self._key(record)
        now = self._clock()
        with self._lock:
            bucket = self._buckets.setdefault(key, _Bucket())
            while bucket.seen and bucket.seen[0] < now - self.windowSeconds:
                bucket.seen.popleft()
            bucket.seen.append(now)
            if len(bucket.seen) > self.maxPerWindow:
                bucket.suppressed += 1
                return False
            dropped, bucket.suppressed = bucket.suppressed, 0

        if dropped:
            loggerName, _level, message = key
            logging.getLogger(loggerName).log(
                self.summaryLevel, "Suppressed %d repeated logs: %s", dropped, message,
                extra={_SUMMARY_ATTR: True},
            )
        return True
