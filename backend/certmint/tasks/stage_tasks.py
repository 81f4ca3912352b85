"""
Celery tasks — run a stage job or one orchestrator pass on a worker.

These are the out-of-process counterparts of the in-process orchestrator.
Each task builds its own StageContext, runs to completion, and returns
the outcome as a JSON-serialisable dict.
"""

import asyncio

import structlog

from certmint import main
from certmint.core.config import load_settings
from certmint.main import build_context
from certmint.tasks import celery_app

logger = structlog.get_logger("tasks.stages")


@celery_app.task(bind=True, name="certmint.tasks.stage_tasks.run_stage")
def run_stage(self, stage_name: str) -> dict:
    """Run one invocation of ``stage_name`` (prepare_upload, mint, transfer_notify)."""
    task_log = logger.bind(task_id=self.request.id, stage=stage_name)
    task_log.info("Stage task started")

    ctx = build_context(load_settings())
    try:
        outcome = asyncio.run(main.run_stage(ctx, stage_name))
    except Exception as exc:
        task_log.exception("Stage task failed", error=str(exc))
        raise

    task_log.info(
        "Stage task finished",
        outcome=str(outcome.status),
        record_ids=outcome.record_ids,
        duration_ms=outcome.duration_ms,
    )
    return outcome.to_dict()


@celery_app.task(bind=True, name="certmint.tasks.stage_tasks.run_cycle")
def run_cycle(self) -> dict:
    """Run a single orchestrator pass over every phase."""
    task_log = logger.bind(task_id=self.request.id)
    task_log.info("Cycle task started")

    ctx = build_context(load_settings())
    result = asyncio.run(main.run_once(ctx))

    task_log.info("Cycle task finished", ok=result.ok, invocations=result.invocations)
    return result.to_dict()
