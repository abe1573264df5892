"""
Recommendation Store Tests.

============================================================
PURPOSE
============================================================
Cache invalidation, fallback and admin write behaviour of
RecommendationStore against the in-memory backend.

============================================================
"""

import pytest

from risk_assessment import (
    AdviceCache,
    AdviceRecord,
    AdviceUpdate,
    AdviceValidationError,
    CollectingNotifier,
    ErrorCategory,
    FALLBACK_ADVICE,
    InMemoryAdviceBackend,
    RecommendationStore,
    RiskLevel,
    StoreError,
)
from risk_assessment.notifications import NETWORK_NOTICE_TEXT


# ============================================================
# READ TESTS
# ============================================================


class TestGetAdvice:
    """Tests for RecommendationStore.get_advice."""

    @pytest.mark.asyncio
    async def test_returns_normalized_records(self, store):
        advice = await store.get_advice()

        assert [r.min_score for r in advice] == [0, 3, 6]
        assert [r.normalized_risk_level for r in advice] == ["Low", "Moderate", "High"]
        assert [r.risk_level for r in advice] == ["Low", "moderate risk", "HIGH"]

    @pytest.mark.asyncio
    async def test_populates_cache(self, store):
        assert store.cached_advice() is None

        advice = await store.get_advice()

        assert store.cached_advice() == advice

    @pytest.mark.asyncio
    async def test_invalidates_before_every_read(self, backend, retry_policy):
        """Test that the cache is cleared before the fetch starts."""
        cache = AdviceCache()
        calls = []

        def spy_invalidate():
            calls.append(("invalidate", cache.is_populated))
            AdviceCache.invalidate(cache)

        cache.invalidate = spy_invalidate
        store = RecommendationStore(backend, cache=cache, retry_policy=retry_policy)

        await store.get_advice()
        await store.get_advice()

        assert calls == [("invalidate", False), ("invalidate", True)]
        assert backend.calls.count("fetch_advice") == 2

    @pytest.mark.asyncio
    async def test_empty_advice_text_gets_placeholder(self, retry_policy):
        backend = InMemoryAdviceBackend(advice=[
            AdviceRecord(min_score=0, max_score=2, risk_level="Low", advice_text=""),
        ])
        store = RecommendationStore(backend, retry_policy=retry_policy)

        advice = await store.get_advice()

        assert advice[0].advice_text == "No specific advice available."

    @pytest.mark.asyncio
    async def test_failure_returns_fallback_uncached(self, backend, store):
        """Test fallback advice on an unreachable store."""
        backend.fail_next(StoreError("offline", category=ErrorCategory.NETWORK), times=4)

        advice = await store.get_advice()

        assert advice == list(FALLBACK_ADVICE)
        assert [(r.min_score, r.max_score) for r in advice] == [(0, 2), (3, 5), (6, 100)]
        assert store.cached_advice() is None

    @pytest.mark.asyncio
    async def test_fallback_replaced_by_next_success(self, backend, store):
        backend.fail_next(StoreError("offline", category=ErrorCategory.NETWORK), times=4)
        await store.get_advice()

        advice = await store.get_advice()

        assert [r.advice_text for r in advice] == ["See optometrist", "Check yearly", "See specialist"]
        assert store.cached_advice() == advice

    @pytest.mark.asyncio
    async def test_empty_table_returns_fallback(self, retry_policy):
        store = RecommendationStore(InMemoryAdviceBackend(), retry_policy=retry_policy)

        advice = await store.get_advice()

        assert len(advice) == 3
        assert store.cached_advice() is None

    @pytest.mark.asyncio
    async def test_failure_clears_previous_cache(self, backend, store):
        await store.get_advice()
        backend.fail_next(StoreError("down", category=ErrorCategory.SERVER), times=4)

        await store.get_advice()

        assert store.cached_advice() is None

    @pytest.mark.asyncio
    async def test_network_failure_notifies(self, backend, retry_policy):
        notifier = CollectingNotifier()
        store = RecommendationStore(backend, retry_policy=retry_policy, notifier=notifier)
        backend.fail_next(StoreError("offline", category=ErrorCategory.NETWORK), times=4)

        await store.get_advice()

        assert notifier.messages == [NETWORK_NOTICE_TEXT]

    @pytest.mark.asyncio
    async def test_server_failure_is_silent(self, backend, retry_policy):
        notifier = CollectingNotifier()
        store = RecommendationStore(backend, retry_policy=retry_policy, notifier=notifier)
        backend.fail_next(StoreError("boom", category=ErrorCategory.SERVER), times=4)

        await store.get_advice()

        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_auth_failure_refreshes_credentials(self, backend, store):
        backend.fail_next(StoreError("JWT expired", category=ErrorCategory.AUTH))

        advice = await store.get_advice()

        assert backend.credential_refreshes == 1
        assert advice[0].advice_text == "See optometrist"

    @pytest.mark.asyncio
    async def test_get_advice_for_level(self, store):
        record = await store.get_advice_for_level("high")

        assert record is not None
        assert record.advice_text == "See specialist"

        record = await store.get_advice_for_level("MODERATE RISK")
        assert record.advice_text == "Check yearly"

        assert await store.get_advice_for_level("Severe") is None


# ============================================================
# WRITE TESTS
# ============================================================


class TestUpdateAdvice:
    """Tests for RecommendationStore.update_advice."""

    @pytest.mark.asyncio
    async def test_update_visible_on_next_read(self, store):
        """Test that a saved edit is never hidden by the cache."""
        await store.get_advice()

        saved = await store.update_advice({
            "risk_level": "High",
            "min_score": 6,
            "max_score": 100,
            "advice": "X",
        })

        assert saved.advice_text == "X"
        assert saved.id is not None
        assert any(r.advice_text == "X" for r in store.cached_advice())
        assert any(r.advice_text == "X" for r in await store.get_advice())

    @pytest.mark.asyncio
    async def test_derives_level_from_range(self, store):
        saved = await store.update_advice({"min_score": 0, "max_score": 2, "advice": "low"})

        assert saved.risk_level == "Low"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("min_score,expected", [(1, "Low"), (3, "Moderate"), (4, "High")])
    async def test_derivation_thresholds(self, store, min_score, expected):
        saved = await store.update_advice({"min_score": min_score, "max_score": 50})

        assert saved.risk_level == expected

    @pytest.mark.asyncio
    async def test_defaults(self, store):
        saved = await store.update_advice({"risk_level": "moderate"})

        assert saved.risk_level == "Moderate"
        assert saved.min_score == 0
        assert saved.max_score == 100
        assert saved.advice_text == "No specific advice available."

    @pytest.mark.asyncio
    async def test_accepts_model(self, store):
        saved = await store.update_advice(
            AdviceUpdate(risk_level=RiskLevel.LOW, min_score=0, max_score=1, advice="Y")
        )

        assert saved.advice_text == "Y"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("partial", [
        {},
        {"advice": "only text"},
        {"min_score": 3},
        {"risk_level": "Very high-ish"},
        {"min_score": 5, "max_score": 1},
    ])
    async def test_rejects_unkeyed_edits(self, store, backend, partial):
        with pytest.raises(AdviceValidationError):
            await store.update_advice(partial)

        assert "upsert_advice" not in backend.calls

    @pytest.mark.asyncio
    async def test_invalidates_before_write(self, backend, store):
        await store.get_advice()
        backend.fail_next(StoreError("down", category=ErrorCategory.SERVER), times=4)

        result = await store.update_advice({"risk_level": "Low", "advice": "Z"})

        assert store.cached_advice() is None
        assert result.advice_text == "Z"
        assert result.id is None

    @pytest.mark.asyncio
    async def test_failed_write_not_persisted(self, backend, store):
        backend.fail_next(StoreError("offline", category=ErrorCategory.NETWORK), times=4)

        await store.update_advice({"risk_level": "Low", "advice": "Z"})
        advice = await store.get_advice()

        assert all(r.advice_text != "Z" for r in advice)

    @pytest.mark.asyncio
    async def test_upsert_keyed_by_level(self, backend, store):
        await store.update_advice({"risk_level": "Low", "min_score": 0, "max_score": 1, "advice": "a"})
        await store.update_advice({"risk_level": "Low", "min_score": 0, "max_score": 2, "advice": "b"})

        advice = await store.get_advice()
        low = [r for r in advice if r.risk_level == "Low"]

        assert len(low) == 1
        assert low[0].advice_text == "b"
        assert low[0].max_score == 2

    @pytest.mark.asyncio
    async def test_edit_carrying_another_rows_id(self, backend, store):
        """Test an id from a different level neither clashes nor duplicates."""
        low = next(r for r in await backend.fetch_advice() if r.risk_level == "Low")

        result = await store.update_advice({
            "id": low.id,
            "risk_level": "Moderate",
            "min_score": 3,
            "max_score": 5,
            "advice": "Re-saved",
        })
        advice = await store.get_advice()

        assert result.id != low.id
        assert len({r.id for r in advice}) == len(advice)
        assert [r.advice_text for r in advice if r.risk_level == "Moderate"] == ["Re-saved"]
        assert [r.advice_text for r in advice if r.risk_level == "Low"] == ["See optometrist"]
