"""
Risk Assessment Core - Legacy Risk Level Migration.

============================================================
PURPOSE
============================================================
Rewrite free-text risk levels already stored in the advice
table ("low risk", "MEDIUM", ...) to the canonical tokens.

Rules:
- Canonical labels are left alone
- Labels the normalizer folds onto a token are relabelled in
  place, keeping the record id and advice text
- Empty labels are derived from min_score
- Unrecognised labels are skipped and reported
- A label is never relabelled onto a token that another record
  already holds, since risk_level is the upsert key

Store failures are NOT swallowed here; this is an admin
operation and the caller should see that it did not finish.

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from .backend import AdviceBackend
from .normalizer import RiskLevelNormalizer
from .retry import RetryPolicy
from .types import UNKNOWN_RISK_LEVEL, RiskLevel


logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    examined: int = 0
    updated: int = 0
    skipped: int = 0
    dry_run: bool = False
    changes: List[str] = field(default_factory=list)
    problems: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "examined": self.examined,
            "updated": self.updated,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "changes": list(self.changes),
            "problems": list(self.problems),
        }


def derive_risk_level_from_range(min_score: int) -> RiskLevel:
    """Level implied by the lower bound of an advice range."""
    return RiskLevel.from_min_score(min_score)


async def normalize_stored_risk_levels(
    backend: AdviceBackend,
    normalizer: Optional[RiskLevelNormalizer] = None,
    retry_policy: Optional[RetryPolicy] = None,
    dry_run: bool = False,
) -> MigrationReport:
    """
    Relabel stored advice records to canonical risk levels.

    Args:
        backend: Store holding the advice table
        normalizer: Free-text normalizer
        retry_policy: Shared retry policy for store calls
        dry_run: Report the changes without writing them

    Returns:
        MigrationReport

    Raises:
        RetryExhaustedError: If the store stays unavailable
    """
    normalizer = normalizer or RiskLevelNormalizer()
    retry = retry_policy or RetryPolicy(refresh_credentials=backend.refresh_credentials)
    report = MigrationReport(dry_run=dry_run)

    records = await retry.execute(backend.fetch_advice, name="fetch_advice")
    taken: Set[str] = {r.risk_level for r in records if normalizer.is_canonical(r.risk_level)}

    for record in records:
        report.examined += 1
        current = record.risk_level

        if normalizer.is_canonical(current):
            continue

        target = normalizer.normalize(current)
        if target == UNKNOWN_RISK_LEVEL:
            target = derive_risk_level_from_range(record.min_score).value

        if not normalizer.is_canonical(target):
            report.skipped += 1
            report.problems.append(f"{current!r}: unrecognised risk level")
            logger.warning(f"[Migration] Skipping unrecognised risk level {current!r}")
            continue

        if target in taken:
            report.skipped += 1
            report.problems.append(f"{current!r}: {target} already exists")
            logger.warning(
                f"[Migration] Skipping {current!r}, a record for {target} already exists"
            )
            continue

        report.changes.append(f"{current!r} -> {target}")
        taken.add(target)

        if dry_run:
            report.updated += 1
            continue

        renamed = await retry.execute(
            lambda old=current, new=target: backend.relabel_advice(old, new),
            name="relabel_advice",
        )
        if renamed:
            report.updated += 1
            logger.info(f"[Migration] Relabelled {current!r} -> {target}")
        else:
            report.skipped += 1
            report.problems.append(f"{current!r}: record disappeared")

    logger.info(
        f"[Migration] examined={report.examined} updated={report.updated} "
        f"skipped={report.skipped} dry_run={dry_run}"
    )
    return report
