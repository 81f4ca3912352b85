"""HTTP client for the Airtable REST API, backing the RecordStore interface."""

from __future__ import annotations

from typing import Any

import httpx

from certmint.core.config import Settings
from certmint.core.constants import CertificateStatus, RecordField
from certmint.core.errors import RecordStoreError
from certmint.core.logging import get_logger
from certmint.repositories.base import Record, RecordStore

logger = get_logger(__name__)


def status_formula(status: str) -> str:
    """Airtable filterByFormula expression matching one status value."""
    escaped = str(status).replace("\\", "\\\\").replace("'", "\\'")
    return f"{{{RecordField.STATUS}}}='{escaped}'"


class AirtableRecordStore(RecordStore):
    """Reads and writes certificate records through the Airtable REST API."""

    def __init__(
        self,
        table_url: str,
        api_key: str,
        *,
        page_size: int = 100,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.table_url = table_url.rstrip("/")
        self.count_cap = page_size
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_key}"}

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> AirtableRecordStore:
        return cls(
            settings.table_url,
            settings.AIRTABLE_API_KEY,
            page_size=settings.AIRTABLE_PAGE_SIZE,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            client=client,
        )

    async def count(self, status: CertificateStatus | str) -> int:
        records = await self._select(status, params={"pageSize": self.count_cap})
        return len(records)

    async def fetch_batch(self, status: CertificateStatus | str, limit: int) -> list[Record]:
        return await self._select(status, params={"maxRecords": limit})

    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        payload = {"fields": {str(k): _plain(v) for k, v in fields.items()}}
        response = await self._client.patch(
            f"{self.table_url}/{record_id}",
            headers=self._headers,
            json=payload,
        )
        self._raise_for_status(response, "update", record_id=record_id)
        body = response.json()
        logger.debug("Record updated", record_id=record_id, fields=list(payload["fields"]))
        return Record(id=body.get("id", record_id), fields=body.get("fields", {}))

    async def close(self) -> None:
        await self._client.aclose()

    # ─── Helpers ───────────────────────────────────────

    async def _select(self, status: CertificateStatus | str, params: dict[str, Any]) -> list[Record]:
        """First page of records at ``status``; the offset cursor is ignored."""
        query = {"filterByFormula": status_formula(status), **params}
        response = await self._client.get(self.table_url, headers=self._headers, params=query)
        self._raise_for_status(response, "select", status=str(status))
        return [
            Record(id=item["id"], fields=item.get("fields", {}))
            for item in response.json().get("records", [])
        ]

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str, **context: Any) -> None:
        if response.is_success:
            return
        raise RecordStoreError(
            f"Airtable {operation} returned {response.status_code}",
            status_code=response.status_code,
            response_body=response.text,
            record_id=context.get("record_id"),
            details=context,
        )


def _plain(value: Any) -> Any:
    """StrEnum members serialise fine, but keep payloads to plain str."""
    if isinstance(value, CertificateStatus):
        return value.value
    return value
