"""
Repositories package — record-store access layer.

The pipeline reads and writes certificate records only through the
RecordStore interface in base.py; airtable.py is the production backend.

Convention:
    - Stores return `Record` objects and accept plain field-name dicts
    - Non-2xx responses raise RecordStoreError; callers never see raw HTTP
"""

from certmint.repositories.base import Record, RecordStore

__all__ = ["Record", "RecordStore"]
