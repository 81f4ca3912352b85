"""
Orchestrator — the status-driven control loop.

Responsibilities:
    - Poll the record store for the count at each phase's precondition
    - Invoke the phase's stage job once per poll until the count is zero
    - Sleep a fixed step delay between invocations
    - Run the phases in fixed order, then sleep the longer cycle delay
    - Catch and log any error, ending the cycle early, and keep looping

The record store's status field is the only queue.  A record that keeps
failing is retried every cycle with no cap.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from certmint.core.errors import PipelineError, StageExecutionError
from certmint.core.logging import bind_context, clear_context
from certmint.pipeline.context import StageContext
from certmint.pipeline.phases import Phase, default_phases

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class CycleResult:
    """Outcome of one full pass over every phase."""

    cycle: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    invocations: dict[str, int] = field(default_factory=dict)
    outcomes: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def duration_ms(self) -> int:
        if not (self.started_at and self.completed_at):
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": self.cycle,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "invocations": self.invocations,
            "outcomes": self.outcomes,
            "error": self.error,
        }


class Orchestrator:
    """
    Drives records through the phases, one stage invocation at a time.

    Usage::

        orchestrator = Orchestrator(ctx)
        await orchestrator.run_forever()        # polling variant
        result = await orchestrator.run_cycle()  # single pass
    """

    def __init__(
        self,
        ctx: StageContext,
        phases: list[Phase] | None = None,
        *,
        step_delay: float | None = None,
        cycle_delay: float | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.ctx = ctx
        self.phases = phases if phases is not None else default_phases()
        self.step_delay = ctx.settings.ORCHESTRATOR_STEP_DELAY_SECONDS if step_delay is None else step_delay
        self.cycle_delay = ctx.settings.ORCHESTRATOR_CYCLE_DELAY_SECONDS if cycle_delay is None else cycle_delay
        self._sleep = sleep
        self._cycle = 0
        self.logger = structlog.get_logger("pipeline.orchestrator")

    async def run_forever(self, max_cycles: int | None = None) -> None:
        """
        Run cycles back to back with the cycle delay in between.

        Never returns unless ``max_cycles`` is given; no sleep follows the
        final capped cycle.
        """
        completed = 0
        while True:
            await self.run_cycle()
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                return
            self.logger.info("Sleeping before next cycle", seconds=self.cycle_delay)
            await self._sleep(self.cycle_delay)

    async def run_cycle(self) -> CycleResult:
        """One pass over every phase.  Errors end the pass and are recorded."""
        self._cycle += 1
        result = CycleResult(cycle=self._cycle, started_at=datetime.now(timezone.utc))
        bind_context(cycle=self._cycle)
        log = self.logger.bind(cycle=self._cycle)
        log.info("Cycle started", phases=[p.name for p in self.phases])

        try:
            for phase in self.phases:
                result.invocations[phase.name] = await self._drain(phase, result)
            log.info("Cycle finished", invocations=result.invocations)
        except Exception as exc:
            result.error = f"{type(exc).__name__}: {exc}"
            log.exception("Cycle aborted", error=str(exc), invocations=result.invocations)
        finally:
            result.completed_at = datetime.now(timezone.utc)
            clear_context()

        return result

    async def _drain(self, phase: Phase, result: CycleResult) -> int:
        """Invoke ``phase.job`` until its precondition count reaches zero."""
        log = self.logger.bind(cycle=self._cycle, phase=phase.name, stage=phase.job.name)
        invocations = 0
        result.invocations[phase.name] = 0

        while True:
            remaining = await self.ctx.store.count(phase.precondition)
            if remaining == 0:
                break

            log.info("Records remaining", remaining=remaining, status=str(phase.precondition))
            try:
                outcome = await phase.job.run(self.ctx)
            except PipelineError:
                raise
            except Exception as exc:
                raise StageExecutionError(
                    f"Stage {phase.job.name} failed: {exc}",
                    stage_name=phase.job.name,
                ) from exc
            invocations += 1
            result.invocations[phase.name] = invocations
            result.outcomes.append(outcome.to_dict())
            log.info(
                "Stage invocation finished",
                outcome=str(outcome.status),
                record_ids=outcome.record_ids,
                duration_ms=outcome.duration_ms,
            )

            log.debug("Waiting before next invocation", seconds=self.step_delay)
            await self._sleep(self.step_delay)

        log.info("Phase drained", invocations=invocations)
        return invocations
