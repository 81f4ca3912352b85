"""
RecordStore — narrow data-access interface over the certificates table.

Repository rules:
- Pure data-access logic only, no stage decisions
- Status is just another field; filtering is by exact equality
- update() merges fields and never reads first (last write wins)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from certmint.core.constants import CertificateStatus, RecordField


@dataclass
class Record:
    """One row of the certificates table."""

    id: str
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str | None:
        return self.fields.get(RecordField.STATUS)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def first(self, name: str) -> Any:
        """
        First value of a lookup field.

        Lookup and attachment columns come back as lists; plain columns
        as scalars.  Returns None when the field is absent or empty.
        """
        value = self.fields.get(name)
        if isinstance(value, list):
            return value[0] if value else None
        return value

    def attachment_url(self, name: str) -> str | None:
        item = self.first(name)
        if isinstance(item, dict):
            return item.get("url")
        return item or None

    def missing(self, *names: str) -> list[str]:
        """Names from ``names`` whose first value is empty."""
        return [n for n in names if self.first(n) in (None, "", {})]


class RecordStore(ABC):
    """
    Base class for record store implementations.

    Subclasses MUST implement fetch_batch() and update().
    count() and fetch_one() are derived from fetch_batch().
    """

    #: single-page cap used by count(); counts above it under-report
    count_cap: int = 100

    @abstractmethod
    async def fetch_batch(self, status: CertificateStatus | str, limit: int) -> list[Record]:
        """Up to ``limit`` records whose status equals ``status``."""
        ...

    @abstractmethod
    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        """Merge ``fields`` into the record and return the stored result."""
        ...

    async def count(self, status: CertificateStatus | str) -> int:
        """Number of records at ``status``, read from one capped page."""
        records = await self.fetch_batch(status, self.count_cap)
        return len(records)

    async def fetch_one(self, status: CertificateStatus | str) -> Record | None:
        records = await self.fetch_batch(status, 1)
        return records[0] if records else None

    async def close(self) -> None:
        """Release network resources.  Default: nothing to release."""
        pass
