"""
SQL Repository Tests.

============================================================
PURPOSE
============================================================
- RiskAssessmentRepository against a real SQLite database
  (aiosqlite, file in a temp directory)
- StoredProcedureRepository against a mocked session

============================================================
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import exc as sa_exc

from database.engine import (
    create_database_engine,
    create_session_factory,
    initialize_database,
    verify_database_connection,
)
from risk_assessment import (
    AdviceRecord,
    ErrorCategory,
    RecommendationStore,
    RetryPolicy,
    RiskAssessmentRepository,
    StoredProcedureRepository,
    StoreError,
)
from risk_assessment.models import RiskAssessmentConfigEntry


@pytest.fixture
async def engine(tmp_path):
    engine = create_database_engine(f"sqlite+aiosqlite:///{tmp_path / 'risk.db'}")
    await initialize_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def repository(session_factory):
    return RiskAssessmentRepository(session_factory)


# ============================================================
# TABLE REPOSITORY TESTS
# ============================================================


class TestRiskAssessmentRepository:
    """Tests for direct-table access."""

    @pytest.mark.asyncio
    async def test_connection_verified(self, engine):
        assert await verify_database_connection(engine) is True

    @pytest.mark.asyncio
    async def test_empty_table(self, repository):
        assert await repository.fetch_advice() == []

    @pytest.mark.asyncio
    async def test_upsert_inserts_then_overwrites(self, repository):
        first = await repository.upsert_advice(
            AdviceRecord(min_score=6, max_score=100, risk_level="High", advice_text="one")
        )
        second = await repository.upsert_advice(
            AdviceRecord(min_score=5, max_score=99, risk_level="High", advice_text="two")
        )

        assert first.id is not None
        assert second.id == first.id
        assert second.advice_text == "two"

        advice = await repository.fetch_advice()
        assert len(advice) == 1
        assert (advice[0].min_score, advice[0].max_score) == (5, 99)

    @pytest.mark.asyncio
    async def test_upsert_ignores_incoming_id(self, repository):
        low = await repository.upsert_advice(
            AdviceRecord(min_score=0, max_score=2, risk_level="Low", advice_text="low")
        )

        moderate = await repository.upsert_advice(
            AdviceRecord(
                id=low.id, min_score=3, max_score=5, risk_level="Moderate", advice_text="moderate"
            )
        )

        assert moderate is not None
        assert moderate.id != low.id
        advice = await repository.fetch_advice()
        assert [(r.risk_level, r.advice_text) for r in advice] == [
            ("Low", "low"),
            ("Moderate", "moderate"),
        ]
        assert len({r.id for r in advice}) == 2

    @pytest.mark.asyncio
    async def test_fetch_ordered_by_min_score(self, repository):
        for level, low, high in (("High", 6, 100), ("Low", 0, 2), ("Moderate", 3, 5)):
            await repository.upsert_advice(
                AdviceRecord(min_score=low, max_score=high, risk_level=level, advice_text=level)
            )

        advice = await repository.fetch_advice()

        assert [r.risk_level for r in advice] == ["Low", "Moderate", "High"]

    @pytest.mark.asyncio
    async def test_weights(self, repository, session_factory):
        async with session_factory() as session:
            session.add_all([
                RiskAssessmentConfigEntry(question_id="race", option_value="Black", score=2),
                RiskAssessmentConfigEntry(question_id="familyGlaucoma", option_value="yes", score=3),
            ])
            await session.commit()

        assert await repository.get_weight("race", "black") == 2
        assert await repository.get_weight("familyGlaucoma", "yes") == 3
        assert await repository.get_weight("familyGlaucoma", "no") is None

        entries = await repository.list_weights()
        assert {(e.question_id, e.score) for e in entries} == {("race", 2), ("familyGlaucoma", 3)}

    @pytest.mark.asyncio
    async def test_relabel(self, repository):
        await repository.upsert_advice(
            AdviceRecord(min_score=0, max_score=2, risk_level="low risk", advice_text="a")
        )

        assert await repository.relabel_advice("low risk", "Low") is True
        assert await repository.relabel_advice("missing", "High") is False

        advice = await repository.fetch_advice()
        assert [r.risk_level for r in advice] == ["Low"]

    @pytest.mark.asyncio
    async def test_store_round_trip(self, repository, no_sleep):
        """Test an admin edit is visible through the store."""
        store = RecommendationStore(repository, retry_policy=RetryPolicy(sleep=no_sleep))

        await store.update_advice({"min_score": 0, "max_score": 2, "advice": "See optometrist"})
        advice = await store.get_advice()

        assert [(r.risk_level, r.advice_text) for r in advice] == [("Low", "See optometrist")]


# ============================================================
# STORED PROCEDURE TESTS
# ============================================================


def _mock_session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    return factory


class TestStoredProcedureRepository:
    """Tests for procedure-based access."""

    @pytest.mark.asyncio
    async def test_fetch_sorts_rows(self):
        result = MagicMock()
        result.mappings.return_value.all.return_value = [
            {"id": "b", "min_score": 6, "max_score": 100, "risk_level": "High", "advice": "h"},
            {"id": "a", "min_score": 0, "max_score": 2, "risk_level": "Low", "advice": "l"},
        ]
        session = AsyncMock()
        session.execute.return_value = result
        repository = StoredProcedureRepository(_mock_session_factory(session))

        advice = await repository.fetch_advice()

        assert [r.id for r in advice] == ["a", "b"]
        statement = session.execute.await_args.args[0]
        assert "get_risk_assessment_advice()" in str(statement)

    @pytest.mark.asyncio
    async def test_update_passes_parameters(self):
        result = MagicMock()
        result.mappings.return_value.first.return_value = {
            "id": "x", "min_score": 6, "max_score": 100, "risk_level": "High", "advice": "h",
        }
        session = AsyncMock()
        session.execute.return_value = result
        repository = StoredProcedureRepository(_mock_session_factory(session))

        saved = await repository.upsert_advice(
            AdviceRecord(min_score=6, max_score=100, risk_level="High", advice_text="h")
        )

        assert saved.id == "x"
        params = session.execute.await_args.args[1]
        assert params == {
            "p_min_score": 6,
            "p_max_score": 100,
            "p_advice": "h",
            "p_risk_level": "High",
        }
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("row", [
        None,
        {"id": None, "min_score": None, "max_score": None, "risk_level": None, "advice": None},
    ])
    async def test_update_without_usable_row_returns_none(self, row):
        result = MagicMock()
        result.mappings.return_value.first.return_value = row
        session = AsyncMock()
        session.execute.return_value = result
        repository = StoredProcedureRepository(_mock_session_factory(session))

        saved = await repository.upsert_advice(
            AdviceRecord(min_score=6, max_score=100, risk_level="High", advice_text="h")
        )

        assert saved is None

    @pytest.mark.asyncio
    async def test_database_errors_wrapped(self):
        session = AsyncMock()
        session.execute.side_effect = sa_exc.OperationalError(
            "SELECT 1", {}, Exception("server closed")
        )
        repository = StoredProcedureRepository(_mock_session_factory(session))

        with pytest.raises(StoreError) as exc_info:
            await repository.fetch_advice()

        assert exc_info.value.category == ErrorCategory.SERVER
        assert exc_info.value.operation == "fetch_advice"
