#!/usr/bin/env python3
"""
certmint — operator entry point for the certificate pipeline.

Runs the orchestrator (forever or for a single pass), invokes one stage
job by name, or reports how many records sit at each status.
Usage: python manage.py <command> [options]
"""

import asyncio
import logging
import os
import sys
from datetime import datetime
from typing import List


# ═══════════════════════════════════════════════════════════
#  Operator Output
# ═══════════════════════════════════════════════════════════

class OperatorFormatter(logging.Formatter):
    """Colours each line by level and prefixes a status glyph.

    Lines logged with ``extra={"ok": True}`` render as success, and lines
    starting with ``===`` render as section titles.
    """

    RESET = "\033[0m"
    BOLD = "\033[1m"
    TITLE = "\033[35m"
    OK = "\033[32m"
    LEVELS = {
        logging.DEBUG: ("\033[34m", "·"),
        logging.INFO: ("\033[36m", "›"),
        logging.WARNING: ("\033[33m", "!"),
        logging.ERROR: ("\033[31m", "✗"),
        logging.CRITICAL: ("\033[1;31m", "✗"),
    }

    def __init__(self, use_colors: bool = True):
        super().__init__("%(message)s")
        self.use_colors = use_colors and sys.stderr.isatty() and os.name != "nt"

    def paint(self, text: str, color: str) -> str:
        return f"{color}{text}{self.RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if text.lstrip("\n").startswith("==="):
            return self.paint(text, self.TITLE)
        color, glyph = self.LEVELS.get(record.levelno, ("", ""))
        if getattr(record, "ok", False):
            color, glyph = self.OK, "✓"
        if not text.startswith(" "):
            text = f"{glyph} {text}"
        return self.paint(text, color)


logger = logging.getLogger("manage")
logger.propagate = False


def _setup_cli_logging() -> None:
    """Console plus a per-day file under logs/."""
    if logger.handlers:
        return
    os.makedirs("logs", exist_ok=True)
    to_file = logging.FileHandler(f"logs/manage-{datetime.now():%Y%m%d}.log", encoding="utf-8")
    to_file.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    to_console = logging.StreamHandler()
    to_console.setFormatter(OperatorFormatter())
    logger.addHandler(to_file)
    logger.addHandler(to_console)
    logger.setLevel(logging.INFO)


OK = {"ok": True}


# ═══════════════════════════════════════════════════════════
#  Pipeline Manager
# ═══════════════════════════════════════════════════════════

class PipelineManager:
    """Runs the certificate pipeline from the command line."""

    def __init__(self):
        from certmint.main import bootstrap

        self.settings = bootstrap()

    def _context(self):
        from certmint.core.errors import ConfigurationError
        from certmint.main import build_context

        try:
            return build_context(self.settings)
        except ConfigurationError as exc:
            logger.error(str(exc))
            sys.exit(1)

    # ─── Commands ─────────────────────────────────────────
    def run(self) -> int:
        """Poll forever."""
        from certmint.main import run_forever

        logger.info("\n=== Certificate pipeline: polling ===")
        logger.info(
            f"step delay {self.settings.ORCHESTRATOR_STEP_DELAY_SECONDS}s, "
            f"cycle delay {self.settings.ORCHESTRATOR_CYCLE_DELAY_SECONDS}s, Ctrl-C stops"
        )
        try:
            asyncio.run(run_forever(self._context()))
        except KeyboardInterrupt:
            logger.info("Orchestrator stopped", extra=OK)
        return 0

    def once(self) -> int:
        """One pass over every phase."""
        from certmint.main import run_once

        logger.info("\n=== Certificate pipeline: single pass ===")
        result = asyncio.run(run_once(self._context()))
        for phase, count in result.invocations.items():
            logger.info(f"  {phase:<12} {count} invocation(s)")
        if not result.ok:
            logger.error(f"Cycle aborted: {result.error}")
            return 1
        logger.info("All phases drained", extra=OK)
        return 0

    def stage(self, name: str) -> int:
        """Invoke a single stage job once."""
        from certmint.main import run_stage

        logger.info(f"\n=== Stage {name} ===")
        try:
            outcome = asyncio.run(run_stage(self._context(), name))
        except Exception as exc:
            logger.error(f"{type(exc).__name__}: {exc}")
            return 1
        records = ", ".join(outcome.record_ids) or "no records"
        if outcome.error:
            logger.warning(f"{outcome.status} {records}: {outcome.error}")
        else:
            logger.info(f"{outcome.status} {records}", extra=OK)
        return 0

    def counts(self) -> int:
        """Show how many records sit at each status."""
        from certmint.core.constants import STATUS_CHAIN
        from certmint.repositories.airtable import AirtableRecordStore

        async def _count() -> List[tuple]:
            store = AirtableRecordStore.from_settings(self.settings)
            try:
                return [(status, await store.count(status)) for status in STATUS_CHAIN]
            finally:
                await store.close()

        logger.info("\n=== Records per status ===")
        cap = self.settings.AIRTABLE_PAGE_SIZE
        for status, count in asyncio.run(_count()):
            logger.info(f"  {status:<12} {count}{'+' if count >= cap else ''}")
        return 0


# ═══════════════════════════════════════════════════════════
#  CLI
# ═══════════════════════════════════════════════════════════

COMMANDS = {
    "run": "Poll and drain every phase, forever",
    "once": "Drain every phase once, then exit (1 if the cycle aborted)",
    "stage NAME": "Invoke one stage once: prepare_upload, mint or transfer_notify",
    "counts": "Show record counts per status",
}


def usage() -> str:
    fmt = OperatorFormatter()
    lines = [
        fmt.paint("certmint — certificate NFT pipeline", fmt.TITLE),
        "",
        f"{fmt.paint('Usage:', fmt.BOLD)} python manage.py <command> [options]",
        "",
        fmt.paint("Commands:", fmt.BOLD),
    ]
    lines += [f"    {fmt.paint(f'{cmd:<12}', fmt.LEVELS[logging.INFO][0])}  {help_}" for cmd, help_ in COMMANDS.items()]
    lines += [
        "",
        fmt.paint("Worker:", fmt.BOLD),
        "    celery -A certmint.tasks worker -Q pipeline",
    ]
    return "\n".join(lines)


def main() -> None:
    args = sys.argv[1:]
    if not args or args[0] in ("-h", "--help"):
        print(usage())
        sys.exit(0)

    _setup_cli_logging()
    command, opts = args[0], args[1:]

    if command not in ("run", "once", "stage", "counts"):
        logger.error(f"Unknown command: {command}")
        print(usage())
        sys.exit(1)
    if command == "stage" and not opts:
        logger.error("stage needs a stage name")
        sys.exit(1)

    mgr = PipelineManager()
    if command == "stage":
        code = mgr.stage(opts[0])
    else:
        code = getattr(mgr, command)()
    sys.exit(code)


if __name__ == "__main__":
    main()
