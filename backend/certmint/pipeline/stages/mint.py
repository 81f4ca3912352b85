"""MintStage — mint one NFT from its candy machine.  SPL Loaded → SPL Minted."""

from __future__ import annotations

from certmint.core.constants import CertificateStatus, RecordField
from certmint.core.logging import get_logger
from certmint.pipeline.context import StageContext, StageOutcome
from certmint.pipeline.stage import StageJob

logger = get_logger(__name__)


class MintStage(StageJob):
    """Mints exactly one record per invocation; minting is serialised by the chain."""

    name = "mint"
    description = "Mint one NFT from its candy machine"
    precondition = CertificateStatus.LOADED
    postcondition = CertificateStatus.MINTED

    async def run(self, ctx: StageContext) -> StageOutcome:
        started_at = self._now()

        record = await ctx.store.fetch_one(self.precondition)
        if record is None:
            return self._idle(started_at)

        log = logger.bind(stage=self.name, record_id=record.id)

        missing = record.missing(RecordField.COLLECTION_ID, RecordField.CERTIFICATE_ID)
        if missing:
            error = f"Record {record.id} missing {' or '.join(missing)}"
            log.error("Cannot mint record", missing=missing)
            return self._skipped(started_at, record.id, error)

        collection_id = str(record.first(RecordField.COLLECTION_ID))
        mint_address = await ctx.chain.mint(collection_id)
        link = ctx.links.address(mint_address)

        await ctx.store.update(record.id, {
            RecordField.NFT_LINK: link,
            RecordField.STATUS: self.postcondition,
        })
        log.info("Minted and updated record", mint=mint_address, collection_id=collection_id)

        return self._processed(started_at, [record.id], metadata={"mint": mint_address, "link": link})
