"""
Pipeline — status-driven orchestrator and the stage jobs it drives.

Records move Ready Sol → SPL Loaded → SPL Minted → Success, one stage
invocation at a time, with the record store as the only shared state.
"""

from certmint.pipeline.context import StageContext, StageOutcome
from certmint.pipeline.orchestrator import CycleResult, Orchestrator
from certmint.pipeline.phases import Phase, default_phases, resolve_stage
from certmint.pipeline.stage import StageJob

__all__ = [
    "Orchestrator",
    "CycleResult",
    "StageContext",
    "StageOutcome",
    "StageJob",
    "Phase",
    "default_phases",
    "resolve_stage",
]
