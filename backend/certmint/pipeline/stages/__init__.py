"""The three stage jobs, in pipeline order."""

from certmint.pipeline.stages.mint import MintStage
from certmint.pipeline.stages.prepare_upload import PrepareUploadStage
from certmint.pipeline.stages.transfer_notify import TransferNotifyStage

__all__ = ["PrepareUploadStage", "MintStage", "TransferNotifyStage"]
