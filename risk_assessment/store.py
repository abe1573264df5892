"""
Risk Assessment Core - Recommendation Store.

============================================================
PURPOSE
============================================================
Read/write access to the admin advice table with a
single-slot cache that can never be stale relative to the
last admin edit.

============================================================
CACHE RULES
============================================================
- get_advice() invalidates before every read
- update_advice() invalidates before writing, then refetches
  on success so the slot holds the post-write state
- Fallback advice is returned but never cached

============================================================
FAILURE HANDLING
============================================================
Store calls go through the shared RetryPolicy. When it gives
up, reads degrade to the built-in fallback list and writes
return the attempted (unpersisted) record. NETWORK failures
also raise a transient user notice.

============================================================
"""

import logging
from dataclasses import replace
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from .backend import AdviceBackend
from .cache import AdviceCache
from .config import AdviceConfig
from .errors import AdviceValidationError, StoreError, classify_error
from .normalizer import RiskLevelNormalizer
from .notifications import FailureNotifier, NoticeRateLimiter, notify_store_failure
from .retry import RetryPolicy
from .schemas import AdviceUpdate
from .types import AdviceRecord, RiskLevel


logger = logging.getLogger(__name__)


class RecommendationStore:
    """
    Advice access for the calculator and the admin editor.

    Concurrent get_advice() calls each invalidate and refetch;
    there is no request coalescing.
    """

    def __init__(
        self,
        backend: AdviceBackend,
        cache: Optional[AdviceCache] = None,
        normalizer: Optional[RiskLevelNormalizer] = None,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[AdviceConfig] = None,
        notifier: Optional[FailureNotifier] = None,
        rate_limiter: Optional[NoticeRateLimiter] = None,
    ) -> None:
        self._backend = backend
        self._cache = cache if cache is not None else AdviceCache()
        self._normalizer = normalizer or RiskLevelNormalizer()
        self._retry = retry_policy or RetryPolicy(
            refresh_credentials=backend.refresh_credentials
        )
        self._config = config or AdviceConfig()
        self._notifier = notifier
        self._rate_limiter = rate_limiter

    @property
    def cache(self) -> AdviceCache:
        return self._cache

    # --------------------------------------------------------
    # READS
    # --------------------------------------------------------

    async def get_advice(self) -> List[AdviceRecord]:
        """
        Fresh, normalized advice ordered by min_score.

        Returns:
            The stored advice, or the fallback list when the store
            is unavailable or empty
        """
        self._cache.invalidate()

        try:
            records = await self._retry.execute(self._backend.fetch_advice, name="fetch_advice")
        except StoreError as e:
            self._report_failure("fetch_advice", e)
            return self.fallback_advice()

        if not records:
            logger.warning("[RecommendationStore] Advice table is empty, using fallback advice")
            return self.fallback_advice()

        normalized = [self._prepare(record) for record in records]
        self._cache.set(normalized)
        logger.info(f"[RecommendationStore] Loaded {len(normalized)} advice record(s)")
        return list(normalized)

    def cached_advice(self) -> Optional[List[AdviceRecord]]:
        return self._cache.get()

    def fallback_advice(self) -> List[AdviceRecord]:
        return list(self._config.fallback_advice)

    async def get_advice_for_level(self, risk_level: str) -> Optional[AdviceRecord]:
        """
        First record whose risk level matches, ignoring case.

        Matches either the stored text or its normalized form.
        """
        wanted = risk_level.strip().lower()
        for record in await self.get_advice():
            if wanted in (record.risk_level.lower(), record.effective_risk_level.lower()):
                return record
        return None

    def _prepare(self, record: AdviceRecord) -> AdviceRecord:
        prepared = record.with_normalized_level(self._normalizer.normalize(record.risk_level))
        if not prepared.advice_text:
            prepared = replace(prepared, advice_text=self._config.placeholder_text)
        return prepared

    # --------------------------------------------------------
    # WRITES
    # --------------------------------------------------------

    async def update_advice(
        self,
        partial: Union[AdviceUpdate, Mapping[str, Any]],
    ) -> AdviceRecord:
        """
        Upsert one advice record keyed by risk level.

        Args:
            partial: AdviceUpdate or a mapping with the same keys

        Returns:
            The persisted record on success, otherwise the record
            that was attempted

        Raises:
            AdviceValidationError: If the edit has no usable key
        """
        update = self._validate(partial)
        record = self._build_record(update)

        self._cache.invalidate()

        try:
            persisted = await self._retry.execute(
                lambda: self._backend.upsert_advice(record),
                name="upsert_advice",
            )
        except StoreError as e:
            self._report_failure("upsert_advice", e)
            return record

        logger.info(
            f"[RecommendationStore] Saved advice for {record.risk_level} "
            f"({record.min_score}-{record.max_score})"
        )

        await self.get_advice()
        return persisted or record

    def _validate(self, partial: Union[AdviceUpdate, Mapping[str, Any]]) -> AdviceUpdate:
        if isinstance(partial, AdviceUpdate):
            return partial
        try:
            return AdviceUpdate.model_validate(dict(partial))
        except ValidationError as e:
            raise AdviceValidationError(
                f"Invalid advice update: {e.errors()[0].get('msg', e)}",
                context={"fields": sorted(partial.keys())},
                original_error=e,
            ) from e

    def _build_record(self, update: AdviceUpdate) -> AdviceRecord:
        min_score = (
            update.min_score if update.min_score is not None else self._config.default_min_score
        )
        max_score = (
            update.max_score if update.max_score is not None else self._config.default_max_score
        )
        risk_level = update.risk_level or RiskLevel.from_min_score(min_score)

        return AdviceRecord(
            id=update.id,
            min_score=min_score,
            max_score=max_score,
            risk_level=risk_level.value,
            advice_text=update.advice or self._config.placeholder_text,
        )

    # --------------------------------------------------------
    # FAILURES
    # --------------------------------------------------------

    def _report_failure(self, operation: str, error: StoreError) -> None:
        category = classify_error(error)
        logger.error(
            f"[RecommendationStore] {operation} failed [{category.value}]: {error}"
        )
        notify_store_failure(self._notifier, category, self._rate_limiter)
