"""
Risk Assessment Core - Retry Policy.

============================================================
PURPOSE
============================================================
One retry loop shared by every store call site.

============================================================
POLICY
============================================================
- SERVER / NETWORK / UNKNOWN:
    retried with exponential backoff (1s, 2s, 4s by default)
    up to RetryConfig.max_retries extra attempts
- AUTH:
    one credential refresh, then one immediate retry.
    A second AUTH failure ends the loop.

When no further attempt is allowed RetryExhaustedError is
raised carrying the category of the last failure. Callers
turn that into fallback data.

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .config import RetryConfig
from .errors import RetryExhaustedError, classify_error
from .types import ErrorCategory


logger = logging.getLogger(__name__)

T = TypeVar("T")

CredentialRefresher = Callable[[], Awaitable[None]]
Sleeper = Callable[[float], Awaitable[None]]
ErrorClassifier = Callable[[BaseException], ErrorCategory]


class RetryPolicy:
    """
    Executes coroutines with classification-aware retries.

    The sleep function and the classifier are injectable so the
    schedule can be exercised without real delays.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        refresh_credentials: Optional[CredentialRefresher] = None,
        classifier: ErrorClassifier = classify_error,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.config = config or RetryConfig()
        self._refresh_credentials = refresh_credentials
        self._classify = classifier
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str = "store_call",
    ) -> T:
        """
        Run operation until it succeeds or the policy gives up.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            name: Operation name for logs and errors

        Returns:
            The operation's result

        Raises:
            RetryExhaustedError: When no further attempt is allowed
        """
        attempts = 0
        backoff_retries = 0
        auth_refreshed = False

        while True:
            attempts += 1
            try:
                result = await operation()
                if attempts > 1:
                    logger.info(f"[RetryPolicy] {name} succeeded on attempt {attempts}")
                return result

            except Exception as e:
                category = self._classify(e)
                logger.warning(
                    f"[RetryPolicy] {name} attempt {attempts} failed "
                    f"[{category.value}]: {e}"
                )

                if category == ErrorCategory.AUTH:
                    if auth_refreshed:
                        raise RetryExhaustedError(name, category, attempts, e) from e
                    auth_refreshed = True
                    await self._refresh()
                    continue

                if backoff_retries >= self.config.max_retries:
                    raise RetryExhaustedError(name, category, attempts, e) from e

                backoff_retries += 1
                delay = self.config.delay_for(backoff_retries)
                logger.info(
                    f"[RetryPolicy] Retry {backoff_retries}/{self.config.max_retries} "
                    f"for {name} in {delay:.1f}s"
                )
                await self._sleep(delay)

    async def _refresh(self) -> None:
        if self._refresh_credentials is None:
            logger.info("[RetryPolicy] No credential refresher configured, retrying as-is")
            return
        logger.info("[RetryPolicy] Attempting credential refresh")
        try:
            await self._refresh_credentials()
        except Exception as e:
            # A failed refresh still gets its one retry.
            logger.error(f"[RetryPolicy] Credential refresh failed: {e}")


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    name: str = "store_call",
    config: Optional[RetryConfig] = None,
    refresh_credentials: Optional[CredentialRefresher] = None,
) -> T:
    """Functional shortcut for a one-off RetryPolicy."""
    policy = RetryPolicy(config=config, refresh_credentials=refresh_credentials)
    return await policy.execute(operation, name)
