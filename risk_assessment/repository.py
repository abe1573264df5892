"""
Risk Assessment Core - SQL Repositories.

============================================================
PURPOSE
============================================================
Repository pattern implementation of the persistent store
boundary on top of SQLAlchemy's async ORM.

Provides:
- Reading advice ordered by min_score
- Upserting advice keyed by risk_level
- Weight lookups for (question_id, option_value)

Two flavours share one interface:
- RiskAssessmentRepository: direct table queries
- StoredProcedureRepository: get_risk_assessment_advice() /
  update_risk_assessment_advice(...) procedures

============================================================
ERROR HANDLING
============================================================
Database and socket errors are wrapped in StoreError with a
category attached. No retries happen here.

============================================================
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .backend import AdviceBackend, advice_from_row
from .errors import StoreError, classify_error
from .models import RiskAssessmentAdvice, RiskAssessmentConfigEntry
from .types import AdviceRecord, ScoreConfigEntry


logger = logging.getLogger(__name__)


_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class RiskAssessmentRepository(AdviceBackend):
    """
    Direct-table repository.

    ============================================================
    METHODS
    ============================================================
    - fetch_advice: all advice ordered by min_score
    - upsert_advice: insert or overwrite by risk_level
    - get_weight / list_weights: weight table reads
    - relabel_advice: rename a risk_level key (migration only)

    Each call opens its own session so a retried call never
    reuses a broken connection.
    ============================================================
    """

    name = "sql"

    def __init__(
        self,
        session_factory: async_sessionmaker,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        """
        Args:
            session_factory: async_sessionmaker bound to the database
            engine: Engine to dispose on credential refresh/close
        """
        self._session_factory = session_factory
        self._engine = engine

    def _wrap(self, error: Exception, operation: str) -> StoreError:
        category = classify_error(error)
        logger.debug(f"[{self.name}] {operation} failed [{category.value}]: {error}")
        return StoreError(
            message=f"{operation} failed: {error}",
            operation=operation,
            category=category,
            original_error=error,
        )

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    async def fetch_advice(self) -> List[AdviceRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(RiskAssessmentAdvice).order_by(
                        RiskAssessmentAdvice.min_score.asc()
                    )
                )
                return [row.to_record() for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            raise self._wrap(e, "fetch_advice") from e

    async def get_weight(self, question_id: str, option_value: str) -> Optional[int]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(RiskAssessmentConfigEntry.score)
                    .where(
                        RiskAssessmentConfigEntry.question_id == question_id,
                        func.lower(RiskAssessmentConfigEntry.option_value)
                        == option_value.lower(),
                    )
                    .limit(1)
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise self._wrap(e, "get_weight") from e

    async def list_weights(self) -> List[ScoreConfigEntry]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(RiskAssessmentConfigEntry).order_by(
                        RiskAssessmentConfigEntry.created_at.asc()
                    )
                )
                return [row.to_entry() for row in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            raise self._wrap(e, "list_weights") from e

    # --------------------------------------------------------
    # WRITE OPERATIONS
    # --------------------------------------------------------

    async def upsert_advice(self, record: AdviceRecord) -> Optional[AdviceRecord]:
        values: Dict[str, Any] = {
            "min_score": record.min_score,
            "max_score": record.max_score,
            "risk_level": record.risk_level,
            "advice": record.advice_text,
            "updated_at": record.updated_at or datetime.now(timezone.utc),
        }

        try:
            async with self._session_factory() as session:
                dialect = session.get_bind().dialect.name
                insert_fn = _UPSERT_INSERTS.get(dialect)

                if insert_fn is None:
                    row = await self._upsert_generic(session, values)
                else:
                    stmt = insert_fn(RiskAssessmentAdvice).values(**values)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[RiskAssessmentAdvice.risk_level],
                        set_={
                            "min_score": stmt.excluded.min_score,
                            "max_score": stmt.excluded.max_score,
                            "advice": stmt.excluded.advice,
                            "updated_at": stmt.excluded.updated_at,
                        },
                    ).returning(RiskAssessmentAdvice)
                    result = await session.scalars(
                        stmt,
                        execution_options={"populate_existing": True},
                    )
                    row = result.first()

                persisted = row.to_record() if row is not None else None
                await session.commit()
                return persisted
        except (SQLAlchemyError, OSError) as e:
            raise self._wrap(e, "upsert_advice") from e

    async def _upsert_generic(
        self,
        session: AsyncSession,
        values: Dict[str, Any],
    ) -> RiskAssessmentAdvice:
        """Select-then-write upsert for dialects without ON CONFLICT."""
        result = await session.execute(
            select(RiskAssessmentAdvice).where(
                RiskAssessmentAdvice.risk_level == values["risk_level"]
            )
        )
        row = result.scalar_one_or_none()

        if row is None:
            row = RiskAssessmentAdvice(**values)
            session.add(row)
        else:
            row.min_score = values["min_score"]
            row.max_score = values["max_score"]
            row.advice = values["advice"]
            row.updated_at = values["updated_at"]

        await session.flush()
        return row

    async def relabel_advice(self, old_risk_level: str, new_risk_level: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(RiskAssessmentAdvice)
                    .where(RiskAssessmentAdvice.risk_level == old_risk_level)
                    .values(
                        risk_level=new_risk_level,
                        updated_at=datetime.now(timezone.utc),
                    )
                )
                await session.commit()
                return (result.rowcount or 0) > 0
        except (SQLAlchemyError, OSError) as e:
            raise self._wrap(e, "relabel_advice") from e

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def refresh_credentials(self) -> None:
        # Dropping pooled connections forces new logins on next checkout.
        if self._engine is not None:
            logger.info(f"[{self.name}] Disposing connection pool for re-authentication")
            await self._engine.dispose()

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()


class StoredProcedureRepository(RiskAssessmentRepository):
    """
    Advice access through the two stored procedures.

    Weight lookups and relabelling still use the tables.
    """

    name = "procedure"

    FETCH_SQL = text("SELECT * FROM get_risk_assessment_advice()")
    UPDATE_SQL = text(
        "SELECT * FROM update_risk_assessment_advice("
        ":p_min_score, :p_max_score, :p_advice, :p_risk_level)"
    )

    async def fetch_advice(self) -> List[AdviceRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(self.FETCH_SQL)
                records = [advice_from_row(row) for row in result.mappings().all()]
        except (SQLAlchemyError, OSError) as e:
            raise self._wrap(e, "fetch_advice") from e

        # The procedure does not promise an order.
        return sorted(records, key=lambda r: r.min_score)

    async def upsert_advice(self, record: AdviceRecord) -> Optional[AdviceRecord]:
        params = {
            "p_min_score": record.min_score,
            "p_max_score": record.max_score,
            "p_advice": record.advice_text,
            "p_risk_level": record.risk_level,
        }
        try:
            async with self._session_factory() as session:
                result = await session.execute(self.UPDATE_SQL, params)
                row = result.mappings().first()
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise self._wrap(e, "upsert_advice") from e

        # A void or all-null result means nothing came back to report.
        if row is None or not row.get("risk_level"):
            return None
        return advice_from_row(row)
