"""
Process bootstrap — builds the StageContext and runs the orchestrator.

    python -m certmint.main          # poll forever

manage.py wraps the same functions with single-pass and per-stage
commands.
"""

from __future__ import annotations

import asyncio
import sys

import httpx

from certmint.clients.chain import ExplorerLinks
from certmint.clients.pinata import PinataClient
from certmint.clients.sendgrid import SendGridClient
from certmint.clients.solana import SolanaGateway
from certmint.core.config import Settings, load_settings
from certmint.core.errors import ConfigurationError
from certmint.core.logging import get_logger, setup_logging
from certmint.pipeline.context import StageContext, StageOutcome
from certmint.pipeline.orchestrator import CycleResult, Orchestrator
from certmint.pipeline.phases import resolve_stage
from certmint.rendering.certificate import CertificateRenderer, FontSet
from certmint.repositories.airtable import AirtableRecordStore

EXIT_OK = 0
EXIT_FAILURE = 1


def build_context(settings: Settings) -> StageContext:
    """Wire every production client from one Settings object."""
    chain = SolanaGateway.from_settings(settings)   # parses the wallet key first
    return StageContext(
        settings=settings,
        store=AirtableRecordStore.from_settings(settings),
        pinning=PinataClient.from_settings(settings),
        chain=chain,
        mailer=SendGridClient.from_settings(settings),
        renderer=CertificateRenderer(FontSet.from_settings(settings), margin=settings.RENDER_MARGIN),
        http=httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS),
        links=ExplorerLinks(settings.EXPLORER_BASE_URL, settings.SOLANA_CLUSTER),
    )


async def run_forever(ctx: StageContext) -> None:
    try:
        await Orchestrator(ctx).run_forever()
    finally:
        await ctx.aclose()


async def run_once(ctx: StageContext) -> CycleResult:
    try:
        return await Orchestrator(ctx).run_cycle()
    finally:
        await ctx.aclose()


async def run_stage(ctx: StageContext, stage_name: str) -> StageOutcome:
    try:
        return await resolve_stage(stage_name).run(ctx)
    finally:
        await ctx.aclose()


def bootstrap() -> Settings:
    """Load settings and configure logging.  Exits 1 on missing configuration."""
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    get_logger("startup").info("certmint starting", env=settings.APP_ENV)
    return settings


def main() -> None:
    settings = bootstrap()
    try:
        ctx = build_context(settings)
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    asyncio.run(run_forever(ctx))


if __name__ == "__main__":
    main()
