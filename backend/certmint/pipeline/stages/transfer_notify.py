"""
TransferNotifyStage — deliver one minted NFT and email its recipient.

SPL Minted → Success.  The status is written by ``_advance_status()``
before the transfer is submitted, so a failed transfer or email leaves
the record at Success: without a TXN in the first case, with one in
the second.  Neither is retried.  Moving the single ``_advance_status``
call below ``_notify`` makes Success mean "delivered and notified".
"""

from __future__ import annotations

from html import escape

from certmint.core.constants import CertificateStatus, RecordField
from certmint.core.logging import get_logger
from certmint.pipeline.context import StageContext, StageOutcome
from certmint.pipeline.stage import StageJob
from certmint.repositories.base import Record

logger = get_logger(__name__)

REQUIRED_FIELDS = (
    RecordField.NFT_LINK,
    RecordField.RECIPIENT_ADDRESS,
    RecordField.RECIPIENT_EMAIL,
    RecordField.PROGRAMME,
)


def render_email(first_name: str, programme: str, wallet: str, tx_link: str, twitter_handle: str) -> str:
    """HTML body of the delivery email."""
    return f"""<div>
    <p>Hey {escape(first_name)},</p>
    <p>🎉 Your Encode Club NFT for <strong>{escape(programme)}</strong> is now in your wallet <code>{escape(wallet)}</code>.</p>
    <p>🔗 <a href="{escape(tx_link)}" target="_blank">View the transfer transaction</a></p>
    <p>📢 Now show it off! Tweet it at <a href="https://twitter.com/{twitter_handle}" target="_blank">@{twitter_handle}</a> and we'll retweet.</p>
    <p>Thanks for being part of Encode Club! 🚀</p>
  </div>"""


class TransferNotifyStage(StageJob):
    """Transfers exactly one minted NFT per invocation, then emails the owner."""

    name = "transfer_notify"
    description = "Transfer NFT to recipient and send notification email"
    precondition = CertificateStatus.MINTED
    postcondition = CertificateStatus.SUCCESS

    async def run(self, ctx: StageContext) -> StageOutcome:
        started_at = self._now()

        record = await ctx.store.fetch_one(self.precondition)
        if record is None:
            return self._idle(started_at)

        log = logger.bind(stage=self.name, record_id=record.id)

        missing = record.missing(*REQUIRED_FIELDS)
        if missing:
            log.error("Cannot transfer record", missing=missing)
            return self._skipped(started_at, record.id, f"Record {record.id} missing {', '.join(missing)}")

        link = str(record.first(RecordField.NFT_LINK))
        recipient = str(record.first(RecordField.RECIPIENT_ADDRESS)).strip()
        email = str(record.first(RecordField.RECIPIENT_EMAIL)).strip()
        programme = str(record.first(RecordField.PROGRAMME))

        try:
            mint_address = ctx.links.parse_address(link)
        except ValueError as exc:
            log.error("Cannot parse NFT link", link=link)
            return self._skipped(started_at, record.id, str(exc))

        try:
            ctx.chain.validate_address(recipient)
        except ValueError as exc:
            log.error("Invalid recipient address", recipient=recipient)
            return self._skipped(started_at, record.id, f"Invalid recipient address {recipient!r}: {exc}")

        await ctx.chain.resolve_asset(mint_address)
        await self._advance_status(ctx, record)

        log.info("Transferring NFT", mint=mint_address, recipient=recipient)
        signature = await ctx.chain.submit_transfer(mint_address, recipient)
        await ctx.chain.confirm(signature)
        tx_link = ctx.links.transaction(signature)
        log.info("Transfer confirmed", signature=signature)

        await ctx.store.update(record.id, {RecordField.TRANSACTION: tx_link})

        log.info("Sending email", email=email)
        await self._notify(ctx, email, programme, recipient, tx_link)
        log.info("Completed record")

        return self._processed(
            started_at,
            [record.id],
            metadata={"mint": mint_address, "signature": signature, "tx_link": tx_link},
        )

    async def _advance_status(self, ctx: StageContext, record: Record) -> None:
        """Write the terminal status.  Runs before delivery is confirmed."""
        await ctx.store.update(record.id, {RecordField.STATUS: self.postcondition})

    async def _notify(self, ctx: StageContext, email: str, programme: str, wallet: str, tx_link: str) -> None:
        first_name = email.split("@")[0]
        html = render_email(first_name, programme, wallet, tx_link, ctx.settings.TWITTER_HANDLE)
        await ctx.mailer.send(email, ctx.settings.EMAIL_SUBJECT, html)
