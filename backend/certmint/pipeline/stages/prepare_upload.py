"""
PrepareUploadStage — render, pin and load a batch of certificates.

Ready Sol → SPL Loaded.  Per record: download the programme background,
draw the overlays, pin the image and its metadata JSON, and write both
references back.  Then one candy machine sized to the batch is created,
every metadata URI is inserted, and each record gets the container ID
and its new status.

Any failure aborts the invocation.  Records already given IPFS refs keep
them but stay at Ready Sol, so a retry pins them again.
"""

from __future__ import annotations

import asyncio
from typing import Any

from certmint.clients.chain import CollectionItem, CollectionSpec
from certmint.core.constants import CertificateStatus, RecordField
from certmint.core.errors import RecordDataError
from certmint.core.logging import get_logger
from certmint.pipeline.context import StageContext, StageOutcome
from certmint.pipeline.stage import StageJob
from certmint.repositories.base import Record

logger = get_logger(__name__)

REQUIRED_FIELDS = (
    RecordField.SOURCE_IMAGE,
    RecordField.PROGRAMME,
    RecordField.LEVEL,
    RecordField.CERTIFICATE_ID,
)


def build_metadata(
    certificate_id: str,
    image_uri: str,
    programme: str,
    level: str,
    *,
    name_prefix: str,
    description: str,
) -> dict[str, Any]:
    """Off-chain NFT metadata document for one certificate."""
    return {
        "name": f"{name_prefix} #{certificate_id}",
        "description": description,
        "image": image_uri,
        "attributes": [
            {"trait_type": "Programme", "value": programme},
            {"trait_type": "Level", "value": level},
        ],
    }


class PrepareUploadStage(StageJob):
    """Render and pin certificates, then provision and load one candy machine."""

    name = "prepare_upload"
    description = "Render certificates, pin to IPFS, create and load candy machine"
    precondition = CertificateStatus.READY
    postcondition = CertificateStatus.LOADED

    async def run(self, ctx: StageContext) -> StageOutcome:
        started_at = self._now()
        settings = ctx.settings

        records = await ctx.store.fetch_batch(self.precondition, settings.LOAD_NUMBER)
        if not records:
            return self._idle(started_at)

        log = logger.bind(stage=self.name, batch_size=len(records))
        log.info("Processing batch")

        metadata_uris: list[str] = []
        for record in records:
            metadata_uris.append(await self._prepare_record(ctx, record))
            log.info("Record uploaded", record_id=record.id)

        log.info("Creating candy machine")
        collection_id = await ctx.chain.create_collection(CollectionSpec(
            items_available=len(records),
            symbol=settings.COLLECTION_SYMBOL,
            seller_fee_basis_points=settings.SELLER_FEE_BASIS_POINTS,
            is_mutable=settings.COLLECTION_IS_MUTABLE,
            max_edition_supply=0,
        ))
        log.info("Candy machine created", collection_id=collection_id)

        items = [
            CollectionItem(name=f"{settings.NFT_NAME_PREFIX} #{index + 1}", uri=uri)
            for index, uri in enumerate(metadata_uris)
        ]
        await ctx.chain.insert_items(collection_id, items)
        log.info("All items loaded", items=len(items))

        for record in records:
            await ctx.store.update(record.id, {
                RecordField.COLLECTION_ID: collection_id,
                RecordField.STATUS: self.postcondition,
            })
            log.info("Record advanced", record_id=record.id, status=str(self.postcondition))

        return self._processed(
            started_at,
            [r.id for r in records],
            metadata={"collection_id": collection_id, "items": len(items)},
        )

    async def _prepare_record(self, ctx: StageContext, record: Record) -> str:
        """Render and pin one certificate.  Returns its metadata URI."""
        missing = record.missing(*REQUIRED_FIELDS)
        if missing:
            raise RecordDataError(
                f"Record {record.id} missing {', '.join(missing)}",
                stage_name=self.name,
                record_id=record.id,
                missing_fields=missing,
            )

        settings = ctx.settings
        image_url = record.attachment_url(RecordField.SOURCE_IMAGE)
        if not image_url:
            raise RecordDataError(
                f"Record {record.id} has no source image URL",
                stage_name=self.name,
                record_id=record.id,
                missing_fields=[RecordField.SOURCE_IMAGE],
            )
        programme = str(record.first(RecordField.PROGRAMME))
        level = str(record.first(RecordField.LEVEL))
        certificate_id = str(record.first(RecordField.CERTIFICATE_ID))

        source = await ctx.download(image_url)
        rendered = await asyncio.to_thread(ctx.renderer.render, source, programme, level, certificate_id)

        image_uri = await ctx.pinning.pin_file(rendered, f"NFT_{certificate_id}.jpg")
        metadata = build_metadata(
            certificate_id,
            image_uri,
            programme,
            level,
            name_prefix=settings.NFT_NAME_PREFIX,
            description=settings.NFT_DESCRIPTION,
        )
        metadata_uri = await ctx.pinning.pin_json(metadata, f"MD_{certificate_id}.json")

        await ctx.store.update(record.id, {
            RecordField.IPFS_IMAGE: image_uri,
            RecordField.IPFS_METADATA: metadata_uri,
        })
        return metadata_uri
