"""
StageContext — the dependencies every stage job runs against.

Built once per process by ``certmint.main.build_context()`` and passed to
each ``StageJob.run()``.  Stage jobs never construct clients or read the
environment themselves, so tests hand them in-memory fakes instead.
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from certmint.clients.chain import ChainGateway, ExplorerLinks
from certmint.clients.pinata import PinataClient
from certmint.clients.sendgrid import SendGridClient
from certmint.core.config import Settings
from certmint.core.constants import OutcomeStatus
from certmint.core.errors import ExternalServiceError
from certmint.rendering.certificate import CertificateRenderer
from certmint.repositories.base import RecordStore


# ═══════════════════════════════════════════════════════════
#  StageOutcome
# ═══════════════════════════════════════════════════════════

@dataclass
class StageOutcome:
    """Outcome of a single stage invocation."""

    stage_name: str
    status: str                     # OutcomeStatus value
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    record_ids: list[str] = field(default_factory=list)
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def processed(self) -> bool:
        return self.status == OutcomeStatus.PROCESSED

    def to_dict(self) -> dict[str, Any]:
        """Serialise for task results and logs."""
        return {
            "stage_name": self.stage_name,
            "status": str(self.status),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "record_ids": self.record_ids,
            "error": self.error,
            "metadata": self.metadata,
        }


# ═══════════════════════════════════════════════════════════
#  StageContext
# ═══════════════════════════════════════════════════════════

@dataclass
class StageContext:
    """
    Carries configuration and service clients into every stage.

    ``pinning``, ``chain`` and ``mailer`` are typed by their production
    classes; anything with the same async methods works.
    """

    settings: Settings
    store: RecordStore
    pinning: PinataClient
    chain: ChainGateway
    mailer: SendGridClient
    renderer: CertificateRenderer
    http: httpx.AsyncClient
    links: ExplorerLinks = field(default_factory=ExplorerLinks)

    async def download(self, url: str) -> bytes:
        """Fetch a source asset (e.g. the certificate background)."""
        response = await self.http.get(url, follow_redirects=True)
        if not response.is_success:
            raise ExternalServiceError(
                f"Download returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
                details={"url": url},
            )
        return response.content

    async def aclose(self) -> None:
        """Close every client that holds a connection pool."""
        async with AsyncExitStack() as stack:
            stack.push_async_callback(self.http.aclose)
            for closeable in (self.mailer, self.chain, self.pinning, self.store):
                stack.push_async_callback(closeable.close)
