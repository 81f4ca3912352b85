"""
StageJob — abstract base class for the pipeline's stage jobs.

Each stage reads records at its precondition status, performs its side
effects, and writes its postcondition status.  The orchestrator only
calls run(); timing and outcome bookkeeping live in the helpers below.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from certmint.core.constants import CertificateStatus, OutcomeStatus
from certmint.core.logging import get_logger
from certmint.pipeline.context import StageContext, StageOutcome

logger = get_logger(__name__)


class StageJob(ABC):
    """
    Base class for every stage job.

    Subclasses MUST set:
        - name (str)             — unique identifier, e.g. "mint"
        - description (str)      — human-readable label for logs
        - precondition           — status the stage consumes
        - postcondition          — status the stage produces
    and implement run(ctx).

    run() raises on external-service failure; the orchestrator owns the
    catch.  Unusable records are reported with a SKIPPED outcome.
    """

    name: str = "unnamed_stage"
    description: str = "No description"
    precondition: CertificateStatus
    postcondition: CertificateStatus

    @abstractmethod
    async def run(self, ctx: StageContext) -> StageOutcome:
        """Process one invocation's worth of records.  Must return a StageOutcome."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.precondition} → {self.postcondition}>"

    # ─── Helpers available to all stages ───────────────

    def _outcome(
        self,
        status: OutcomeStatus,
        started_at: datetime,
        record_ids: list[str] | None = None,
        error: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StageOutcome:
        now = self._now()
        return StageOutcome(
            stage_name=self.name,
            status=status,
            started_at=started_at,
            completed_at=now,
            duration_ms=int((now - started_at).total_seconds() * 1000),
            record_ids=record_ids or [],
            error=error,
            metadata=metadata or {},
        )

    def _processed(self, started_at: datetime, record_ids: list[str], metadata: dict[str, Any] | None = None) -> StageOutcome:
        return self._outcome(OutcomeStatus.PROCESSED, started_at, record_ids, metadata=metadata)

    def _idle(self, started_at: datetime) -> StageOutcome:
        logger.info("No records at precondition status", stage=self.name, status=str(self.precondition))
        return self._outcome(OutcomeStatus.IDLE, started_at)

    def _skipped(self, started_at: datetime, record_id: str, error: str) -> StageOutcome:
        return self._outcome(OutcomeStatus.SKIPPED, started_at, [record_id], error=error)

    def _now(self) -> datetime:
        """UTC-aware now."""
        return datetime.now(timezone.utc)
