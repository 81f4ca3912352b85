"""
Phases — maps each orchestrator phase to the stage job that drains it.

The order of default_phases() is the pipeline order.  STAGE_REGISTRY
lets entry points (CLI, Celery tasks) look a single stage up by name.

To add a stage:
    1. Implement a StageJob in pipeline/stages/
    2. Register it in STAGE_REGISTRY below
    3. Add its phase to default_phases() at the right position
"""

from __future__ import annotations

from dataclasses import dataclass

from certmint.core.constants import CertificateStatus, PhaseName
from certmint.core.errors import PipelineError
from certmint.pipeline.stage import StageJob
from certmint.pipeline.stages import MintStage, PrepareUploadStage, TransferNotifyStage

STAGE_REGISTRY: dict[str, type[StageJob]] = {
    PrepareUploadStage.name: PrepareUploadStage,
    MintStage.name: MintStage,
    TransferNotifyStage.name: TransferNotifyStage,
}


@dataclass(frozen=True)
class Phase:
    """One orchestrator phase: drain ``job.precondition`` by invoking ``job``."""

    name: str
    job: StageJob

    @property
    def precondition(self) -> CertificateStatus:
        return self.job.precondition


def default_phases() -> list[Phase]:
    """DrainReady → DrainLoaded → DrainMinted."""
    return [
        Phase(PhaseName.DRAIN_READY, PrepareUploadStage()),
        Phase(PhaseName.DRAIN_LOADED, MintStage()),
        Phase(PhaseName.DRAIN_MINTED, TransferNotifyStage()),
    ]


def resolve_stage(name: str) -> StageJob:
    """Instantiate a stage job by name."""
    try:
        return STAGE_REGISTRY[name]()
    except KeyError:
        raise PipelineError(
            f"Unknown stage {name!r}; expected one of {', '.join(STAGE_REGISTRY)}",
            stage_name=name,
        ) from None
