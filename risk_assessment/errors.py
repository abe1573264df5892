"""
Risk Assessment Core - Exceptions and Error Classification.

============================================================
EXCEPTION HIERARCHY
============================================================
RiskAssessmentError (base)
├── StoreError
│   └── RetryExhaustedError
└── AdviceValidationError (also ValueError)

============================================================
ERROR CATEGORIES
============================================================
1. SERVER   - Backend 5xx-class failures, retried with backoff
2. AUTH     - Expired/invalid credential, refreshed once
3. NETWORK  - Connectivity failures
4. UNKNOWN  - Anything else

Store errors never reach callers of the core. They are
retried, logged and degraded to fallback data by the store
layers. Validation errors are caller mistakes and are raised.

============================================================
"""

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp
from sqlalchemy import exc as sa_exc

from .types import ErrorCategory


# ============================================================
# BASE EXCEPTION
# ============================================================


class RiskAssessmentError(Exception):
    """Base exception for all risk assessment errors."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


# ============================================================
# STORE ERRORS
# ============================================================


class StoreError(RiskAssessmentError):
    """
    Failure talking to the persistent store.

    Backends raise this with a category when they know it
    (e.g. from an HTTP status). Otherwise classify_error()
    derives it from the underlying exception.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        category: Optional[ErrorCategory] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, context=context, original_error=original_error)
        self.operation = operation
        self.category = category
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "operation": self.operation,
            "category": self.category.value if self.category else None,
            "status_code": self.status_code,
        })
        return data


class RetryExhaustedError(StoreError):
    """Raised by RetryPolicy once no further attempt is allowed."""

    def __init__(
        self,
        operation: str,
        category: ErrorCategory,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message=f"{operation} failed after {attempts} attempt(s) [{category.value}]",
            operation=operation,
            category=category,
            original_error=last_error,
        )
        self.attempts = attempts

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["attempts"] = self.attempts
        return data


# ============================================================
# VALIDATION ERRORS
# ============================================================


class AdviceValidationError(RiskAssessmentError, ValueError):
    """An admin edit is missing the fields needed to key the upsert."""


# ============================================================
# CLASSIFICATION
# ============================================================


_AUTH_MARKERS = (
    "jwt",
    "token",
    "auth",
    "unauthorized",
    "password authentication",
    "permission denied",
)

# A standalone 5xx status, not digits inside "1500ms" or "port 5000".
_SERVER_STATUS = re.compile(r"\b5\d\d\b")

_NETWORK_MARKERS = (
    "network",
    "connection refused",
    "could not connect",
    "connection reset",
    "name or service not known",
)


def _status_of(error: BaseException) -> int:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return 0


def classify_error(error: Optional[BaseException]) -> ErrorCategory:
    """
    Map an exception onto the store error taxonomy.

    Order matters: an explicit category wins, then HTTP status
    and message markers, then exception types.
    """
    if error is None:
        return ErrorCategory.UNKNOWN

    if isinstance(error, StoreError) and error.category is not None:
        return error.category

    message = str(error).lower()
    status = _status_of(error)

    if status >= 500 or _SERVER_STATUS.search(message):
        return ErrorCategory.SERVER

    if status in (401, 403) or any(marker in message for marker in _AUTH_MARKERS):
        return ErrorCategory.AUTH

    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorCategory.NETWORK

    if isinstance(error, StoreError) and error.original_error is not None:
        return classify_error(error.original_error)

    if isinstance(error, (aiohttp.ClientConnectionError, asyncio.TimeoutError)):
        return ErrorCategory.NETWORK

    if isinstance(error, (sa_exc.DisconnectionError, sa_exc.TimeoutError)):
        return ErrorCategory.NETWORK

    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return ErrorCategory.NETWORK

    if isinstance(error, (sa_exc.OperationalError, sa_exc.InternalError)):
        return ErrorCategory.SERVER

    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK

    return ErrorCategory.UNKNOWN
