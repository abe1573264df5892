"""
Weight Source Tests.
"""

import pytest
from unittest.mock import AsyncMock

from risk_assessment import (
    ErrorCategory,
    LegacyWeightTable,
    QuestionLabelResolver,
    ScoreConfigStore,
    StoreError,
)


class TestScoreConfigStore:
    """Tests for ScoreConfigStore."""

    @pytest.mark.asyncio
    async def test_lookup_hit(self, backend, retry_policy):
        """Test a configured weight is returned."""
        weights = ScoreConfigStore(backend, retry_policy=retry_policy)

        assert await weights.lookup("familyGlaucoma", "yes") == 3

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self, backend, retry_policy):
        """Test option values match regardless of case."""
        weights = ScoreConfigStore(backend, retry_policy=retry_policy)

        assert await weights.lookup("race", "asian") == 1
        assert await weights.lookup("race", "ASIAN") == 1

    @pytest.mark.asyncio
    async def test_lookup_miss(self, backend, retry_policy):
        weights = ScoreConfigStore(backend, retry_policy=retry_policy)

        assert await weights.lookup("familyGlaucoma", "no") is None

    @pytest.mark.asyncio
    async def test_lookup_failure_reports_none(self, backend, retry_policy, no_sleep):
        """Test that store failures degrade to 'no entry'."""
        backend.fail_next(StoreError("boom", category=ErrorCategory.SERVER), times=4)
        weights = ScoreConfigStore(backend, retry_policy=retry_policy)

        assert await weights.lookup("familyGlaucoma", "yes") is None
        assert no_sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_list_entries(self, backend, retry_policy):
        weights = ScoreConfigStore(backend, retry_policy=retry_policy)

        entries = await weights.list_entries()

        assert {(e.question_id, e.score) for e in entries} == {("familyGlaucoma", 3), ("race", 1)}

    @pytest.mark.asyncio
    async def test_list_entries_failure_is_empty(self, retry_policy):
        failing = AsyncMock()
        failing.list_weights.side_effect = StoreError("down", category=ErrorCategory.NETWORK)
        weights = ScoreConfigStore(failing, retry_policy=retry_policy)

        assert await weights.list_entries() == []
        assert failing.list_weights.await_count == 4

    @pytest.mark.asyncio
    async def test_snapshot_reads_table_once(self, backend, retry_policy):
        weights = ScoreConfigStore(backend, retry_policy=retry_policy)

        snapshot = await weights.snapshot()

        assert await snapshot.lookup("familyGlaucoma", "yes") == 3
        assert await snapshot.lookup("race", "ASIAN") == 1
        assert await snapshot.lookup("race", "black") is None
        assert backend.calls == ["list_weights"]

    @pytest.mark.asyncio
    async def test_snapshot_of_unavailable_store_is_empty(self, backend, retry_policy):
        backend.fail_next(StoreError("down", category=ErrorCategory.NETWORK), times=4)
        weights = ScoreConfigStore(backend, retry_policy=retry_policy)

        snapshot = await weights.snapshot()

        assert await snapshot.lookup("familyGlaucoma", "yes") is None

    @pytest.mark.asyncio
    async def test_legacy_table_is_its_own_snapshot(self):
        legacy = LegacyWeightTable()

        assert await legacy.snapshot() is legacy


class TestLegacyWeightTable:
    """Tests for the hardcoded legacy weights."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question_id,option_value,expected", [
        ("familyGlaucoma", "yes", 2),
        ("ocularSteroid", "yes", 2),
        ("intravitreal", "yes", 2),
        ("systemicSteroid", "yes", 2),
        ("iopBaseline", "22_and_above", 2),
        ("verticalAsymmetry", "0.2_and_above", 2),
        ("verticalRatio", "0.6_and_above", 2),
        ("race", "black", 2),
        ("race", "hispanic", 1),
    ])
    async def test_known_weights(self, question_id, option_value, expected):
        assert await LegacyWeightTable().lookup(question_id, option_value) == expected

    @pytest.mark.asyncio
    async def test_unknown_answers(self):
        table = LegacyWeightTable()

        assert await table.lookup("familyGlaucoma", "no") is None
        assert await table.lookup("race", "asian") is None
        assert await table.lookup("unknownQuestion", "yes") is None

    def test_labels(self):
        table = LegacyWeightTable()

        assert table.label_for("familyGlaucoma") == "Family History of Glaucoma"
        assert table.label_for("race") == "Race"
        assert table.label_for("nothing") is None


class TestQuestionLabelResolver:
    """Tests for contributing-factor labels."""

    def test_catalog_wins(self):
        resolver = QuestionLabelResolver(catalog={"q1": "Do you use eye drops?"})

        assert resolver.label_for("q1") == "Do you use eye drops?"

    def test_catalog_text_by_keyword(self):
        resolver = QuestionLabelResolver(
            catalog={"uuid-1": "Is there a family history of glaucoma?"}
        )

        assert resolver.label_for("familyGlaucoma") == "Is there a family history of glaucoma?"

    def test_legacy_label(self):
        assert QuestionLabelResolver().label_for("iopBaseline") == "IOP Baseline"

    @pytest.mark.parametrize("question_id,expected", [
        ("patient_family_glaucoma_history", "Family History of Glaucoma"),
        ("iopBaselineMmHg", "IOP Baseline"),
        ("raceEthnicity", "Race"),
    ])
    def test_legacy_words_in_id(self, question_id, expected):
        assert QuestionLabelResolver().label_for(question_id) == expected

    @pytest.mark.parametrize("question_id", [
        "ocularHypertension",
        "familyDiabetes",
        "diabetesDuration",
        "patient_family_history",
    ])
    def test_partial_word_overlap_keeps_raw_id(self, question_id):
        assert QuestionLabelResolver().label_for(question_id) == question_id

    def test_raw_id_fallback(self):
        assert QuestionLabelResolver().label_for("q-42") == "q-42"
