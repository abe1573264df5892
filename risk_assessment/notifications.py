"""
Risk Assessment Core - Failure Notices.

============================================================
PURPOSE
============================================================
Transient, user-facing notices for store failures.

Only NETWORK-class failures are surfaced. SERVER and AUTH
failures are recovered silently through fallback data so
that patients are not alarmed by recoverable conditions.

============================================================
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Protocol

from .types import ErrorCategory


logger = logging.getLogger(__name__)


NETWORK_NOTICE_TEXT = "Network error. Please check your connection and try again."


class FailureNotifier(Protocol):
    """Anything that can show a short transient message to the user."""

    def notify(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes the notice to the log."""

    def notify(self, message: str) -> None:
        logger.warning(f"[Notice] {message}")


class CollectingNotifier:
    """Keeps notices in memory, for UIs that poll and for tests."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


class NoticeRateLimiter:
    """Suppresses repeated notices inside a cooldown window."""

    def __init__(self, cooldown_seconds: float = 30.0) -> None:
        self._cooldown = timedelta(seconds=cooldown_seconds)
        self._last_sent: Optional[datetime] = None

    def allow(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        if self._last_sent is not None and now - self._last_sent < self._cooldown:
            return False
        self._last_sent = now
        return True


def notify_store_failure(
    notifier: Optional[FailureNotifier],
    category: ErrorCategory,
    rate_limiter: Optional[NoticeRateLimiter] = None,
) -> bool:
    """
    Emit a notice for a failed store call when appropriate.

    Returns:
        True if a notice was sent
    """
    if notifier is None or category != ErrorCategory.NETWORK:
        return False
    if rate_limiter is not None and not rate_limiter.allow():
        return False
    notifier.notify(NETWORK_NOTICE_TEXT)
    return True
